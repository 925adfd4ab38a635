from fastapi import Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from quiz_api.auth import verify_access_token


def get_db_instance():
    """Get database from main module"""
    from quiz_api.main import db
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()

async def get_current_user_id(payload: dict = Depends(verify_access_token)) -> str:
    """
    The token subject is the session owner.
    Every session read and write is scoped to it.
    """
    user_id = payload.get("sub") or payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return str(user_id)

async def require_admin(payload: dict = Depends(verify_access_token)) -> dict:
    if not payload.get("is_admin", False):
        raise HTTPException(status_code=403, detail="Admin access required")
    return payload
