from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from quiz_api.config import ACTIVE_SESSION_WINDOW_HOURS
from quiz_api.quiz.dependencies import get_db, get_current_user_id, require_admin
from quiz_api.quiz import performance, session_queries

router = APIRouter(tags=["Quiz Analytics"])


@router.get("/performance")
async def get_my_performance(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Per-question spaced repetition stats, soonest review first"""
    records = await performance.get_user_performance(db, user_id)
    return {"success": True, "data": records}

@router.get("/analytics")
async def get_my_analytics(
    category_name: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    analytics = await performance.get_user_analytics(db, user_id, category_name)
    return {"success": True, "data": analytics}

# ==================== ADMIN ====================

@router.get("/admin/active-sessions")
async def get_active_sessions(
    hours: int = ACTIVE_SESSION_WINDOW_HOURS,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """In-progress sessions started within the last `hours`"""
    sessions = await session_queries.list_active_sessions(db, since_hours=hours)
    return {"success": True, "data": sessions}

@router.get("/admin/analytics")
async def get_admin_analytics(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """
    Platform-wide quiz analytics:
    - Total sessions and questions answered
    - Average completed session time
    - Top categories by attempts
    - Difficulty distribution
    - Engagement (sessions today, weekly active users, sessions per user)
    """
    analytics = await performance.get_admin_analytics(db)
    return {"success": True, "data": analytics}
