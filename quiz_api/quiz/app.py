"""
Quiz Session Engine - route, index and error handler setup
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
import logging

from quiz_api.quiz.session_router import router as session_router
from quiz_api.quiz.analytics_router import router as analytics_router
from quiz_api.quiz.exceptions import QuizEngineError

logger = logging.getLogger(__name__)

# ==================== DATABASE INDEXES ====================

async def create_quiz_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for performance"""

    # Quizzes
    await db.quizzes.create_index("quiz_id", unique=True)
    await db.quizzes.create_index("is_active")

    # Sessions
    await db.quiz_sessions.create_index("session_id", unique=True)
    await db.quiz_sessions.create_index([("user_id", 1), ("started_at", -1)])
    await db.quiz_sessions.create_index([("user_id", 1), ("status", 1)])
    await db.quiz_sessions.create_index([("quiz_id", 1), ("status", 1)])
    await db.quiz_sessions.create_index([("status", 1), ("started_at", -1)])

    # Performance tracking
    await db.question_performance.create_index([("user_id", 1), ("question_id", 1)], unique=True)
    await db.question_performance.create_index([("user_id", 1), ("next_review_date", 1)])
    await db.quiz_analytics.create_index([("user_id", 1), ("category_name", 1)], unique=True)

    logger.info("Quiz indexes created")

# ==================== ERROR HANDLING ====================

async def quiz_engine_error_handler(request: Request, exc: QuizEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()}
    )

# ==================== ROUTER SETUP ====================

def setup_quiz_routes(app: FastAPI):
    """Register quiz routers and the engine error handler"""

    app.include_router(session_router, prefix="/quiz")
    app.include_router(analytics_router, prefix="/quiz")
    app.add_exception_handler(QuizEngineError, quiz_engine_error_handler)

    logger.info("Quiz routes registered")

# ==================== STARTUP ====================

async def startup_quiz_system(db: AsyncIOMotorDatabase):
    """Initialize quiz system on app startup"""
    await create_quiz_indexes(db)
    logger.info("Quiz system initialized")
