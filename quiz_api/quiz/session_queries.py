"""
Session Query Service
Read-only views over stored sessions
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime, timedelta
from typing import List, Optional

from quiz_api.config import ACTIVE_SESSION_WINDOW_HOURS
from quiz_api.quiz import database
from quiz_api.quiz.exceptions import InvalidInputError
from quiz_api.quiz.formatter import next_question_prompt, progress_summary, session_summary
from quiz_api.quiz.models import SessionStatus
from quiz_api.quiz.scoring import build_session_result
from quiz_api.quiz.session_state import hydrate_session, load_session


def parse_status(value: Optional[str]) -> Optional[SessionStatus]:
    if value is None or value == "":
        return None
    try:
        return SessionStatus(value)
    except ValueError:
        raise InvalidInputError("Invalid status. Must be in_progress, completed, or abandoned")


async def list_sessions(db: AsyncIOMotorDatabase, user_id: str, status: Optional[str] = None) -> List[dict]:
    """
    Sessions owned by user_id, most recently started first.
    can_resume tells a client whether to offer "continue" or "start new".
    """
    if not user_id:
        raise InvalidInputError("User ID is required")

    status_filter = parse_status(status)
    docs = await database.find_user_sessions(
        db, user_id, status_filter.value if status_filter else None
    )
    return [session_summary(hydrate_session(doc)) for doc in docs]


async def get_session_view(db: AsyncIOMotorDatabase, session_id: str, user_id: Optional[str] = None) -> dict:
    """Resume view of one session; open sessions never expose correct answers"""
    session = await load_session(db, session_id, user_id)
    view = session_summary(session)

    if session.status == SessionStatus.COMPLETED:
        view["result"] = build_session_result(session)
    elif session.status == SessionStatus.IN_PROGRESS:
        view["current_question"] = next_question_prompt(session)
    return view


async def list_active_sessions(db: AsyncIOMotorDatabase, since_hours: int = ACTIVE_SESSION_WINDOW_HOURS) -> List[dict]:
    """In-progress sessions started within the window, for admin monitoring"""
    if since_hours <= 0:
        raise InvalidInputError("Window must be a positive number of hours")

    since = datetime.utcnow() - timedelta(hours=since_hours)
    docs = await database.find_active_sessions(db, since)

    results = []
    for doc in docs:
        session = hydrate_session(doc)
        results.append({
            "session_id": session.session_id,
            "user_id": session.user_id,
            "category_name": session.category_name,
            "difficulty": session.difficulty.value,
            "status": session.status.value,
            "progress": progress_summary(session.answered_count, session.question_count),
            "started_at": session.started_at
        })
    return results
