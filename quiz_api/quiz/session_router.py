from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from quiz_api.quiz.dependencies import get_db, get_current_user_id
from quiz_api.quiz.models import StartSessionRequest, SubmitAnswerRequest
from quiz_api.quiz import session_builder, session_state, scoring, session_queries

router = APIRouter(tags=["Quiz Sessions"])

# ==================== SESSION LIFECYCLE ====================

@router.post("/session/start", status_code=201)
async def start_session(
    data: StartSessionRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """
    Start a quiz session for the current user

    - Filters by difficulty unless mixed
    - Keeps the first question_count questions in quiz order
    - Returns the first question without its answer
    """
    session = await session_builder.start_session(
        db,
        user_id=user_id,
        quiz_id=data.quiz_id,
        difficulty=data.difficulty,
        question_count=data.question_count
    )
    return {"success": True, "data": session}

@router.post("/session/{session_id}/answer")
async def submit_answer(
    session_id: str,
    data: SubmitAnswerRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """
    Submit (or resubmit) the answer for one question

    409 once the session is completed or abandoned
    """
    result = await session_state.submit_answer(
        db,
        session_id=session_id,
        question_index=data.question_index,
        answer=data.answer,
        time_spent=data.time_spent,
        user_id=user_id
    )
    return {"success": True, "data": result}

@router.post("/session/{session_id}/complete")
async def complete_session(
    session_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Finalize the session; repeated calls return the stored result"""
    result = await scoring.complete_session(db, session_id, user_id=user_id)
    return {"success": True, "data": result}

# ==================== SESSION VIEWS ====================

@router.get("/session/{session_id}")
async def get_session(
    session_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    view = await session_queries.get_session_view(db, session_id, user_id=user_id)
    return {"success": True, "data": view}

@router.get("/sessions")
async def list_sessions(
    status: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Current user's sessions, newest first, with can_resume flags"""
    sessions = await session_queries.list_sessions(db, user_id, status)
    return {"success": True, "data": sessions}
