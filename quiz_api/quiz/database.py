from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
from datetime import datetime
from typing import List, Optional
from functools import wraps
import logging
import uuid

from quiz_api.quiz.exceptions import InternalError
from quiz_api.quiz.models import SessionStatus

logger = logging.getLogger(__name__)


def store_call(func):
    """Turn driver failures into InternalError so callers see one taxonomy"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.exception("MongoDB call %s failed", func.__name__)
            raise InternalError("Database operation failed") from e
    return wrapper


def serialize_mongo(doc: dict) -> dict:
    doc.pop("_id", None)
    return doc

def serialize_many(docs: list[dict]) -> list[dict]:
    return [serialize_mongo(doc) for doc in docs]


def new_session_id() -> str:
    return f"QSESS_{uuid.uuid4().hex[:12].upper()}"

# ==================== QUESTION BANK ====================

@store_call
async def create_quiz(db: AsyncIOMotorDatabase, quiz_data: dict) -> str:
    """Create quiz definition (seeding and admin tooling)"""
    quiz_id = quiz_data.get("quiz_id") or f"QUIZ_{uuid.uuid4().hex[:12].upper()}"

    quiz = {
        "quiz_id": quiz_id,
        "category_name": quiz_data["category_name"],
        "category_description": quiz_data.get("category_description", ""),
        "category_icon": quiz_data.get("category_icon", ""),
        "questions": quiz_data.get("questions", []),
        "is_active": quiz_data.get("is_active", True),
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow()
    }

    await db.quizzes.insert_one(quiz)
    return quiz_id

@store_call
async def get_quiz(db: AsyncIOMotorDatabase, quiz_id: str) -> Optional[dict]:
    """Get quiz by ID"""
    return await db.quizzes.find_one({"quiz_id": quiz_id})

# ==================== SESSION STORE ====================

@store_call
async def insert_session(db: AsyncIOMotorDatabase, session: dict) -> str:
    now = datetime.utcnow()
    session.setdefault("created_at", now)
    session.setdefault("updated_at", now)
    session.setdefault("version", 0)
    await db.quiz_sessions.insert_one(session)
    return session["session_id"]

@store_call
async def get_session(db: AsyncIOMotorDatabase, session_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    """Get session by ID, scoped to its owner when one is given"""
    query = {"session_id": session_id}
    if user_id is not None:
        query["user_id"] = user_id
    return await db.quiz_sessions.find_one(query)

@store_call
async def set_question_answer(
    db: AsyncIOMotorDatabase,
    session_id: str,
    question_index: int,
    answer_fields: dict,
    user_id: Optional[str] = None
) -> Optional[dict]:
    """
    Write the answer fields of one snapshot question in place.
    Only field paths under questions.<index> are touched, and only while
    the session is still in progress. Each write bumps the session
    version. Returns the updated session or None when the guard did not
    match.
    """
    query = {"session_id": session_id, "status": SessionStatus.IN_PROGRESS.value}
    if user_id is not None:
        query["user_id"] = user_id

    updates = {f"questions.{question_index}.{field}": value for field, value in answer_fields.items()}
    updates["updated_at"] = datetime.utcnow()

    return await db.quiz_sessions.find_one_and_update(
        query,
        {"$set": updates, "$inc": {"version": 1}},
        return_document=ReturnDocument.AFTER
    )

@store_call
async def finalize_session(
    db: AsyncIOMotorDatabase,
    session_id: str,
    result_fields: dict,
    user_id: Optional[str] = None,
    expected_version: Optional[int] = None
) -> Optional[dict]:
    """
    Mark session completed with its computed result.
    Guarded on status == in_progress so exactly one completion wins, and on
    expected_version (when given) so the result matches the answer log it
    was computed from.
    """
    query = {"session_id": session_id, "status": SessionStatus.IN_PROGRESS.value}
    if user_id is not None:
        query["user_id"] = user_id
    if expected_version:
        query["version"] = expected_version
    elif expected_version is not None:
        # Sessions stored before versioning carry no field until first answered
        query["version"] = {"$in": [0, None]}

    updates = dict(result_fields)
    updates["status"] = SessionStatus.COMPLETED.value
    updates["updated_at"] = datetime.utcnow()

    return await db.quiz_sessions.find_one_and_update(
        query,
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )

@store_call
async def find_user_sessions(db: AsyncIOMotorDatabase, user_id: str, status: Optional[str] = None) -> List[dict]:
    """All sessions of a user, most recently started first"""
    query = {"user_id": user_id}
    if status:
        query["status"] = status

    cursor = db.quiz_sessions.find(query).sort("started_at", -1)
    return await cursor.to_list(length=None)

@store_call
async def find_active_sessions(db: AsyncIOMotorDatabase, since: datetime) -> List[dict]:
    cursor = db.quiz_sessions.find({
        "status": SessionStatus.IN_PROGRESS.value,
        "started_at": {"$gte": since}
    }).sort("started_at", -1)
    return await cursor.to_list(length=None)

# ==================== PERFORMANCE STORE ====================

@store_call
async def get_question_performance(db: AsyncIOMotorDatabase, user_id: str, question_id: str) -> Optional[dict]:
    return await db.question_performance.find_one({"user_id": user_id, "question_id": question_id})

@store_call
async def save_question_performance(db: AsyncIOMotorDatabase, record: dict) -> None:
    await db.question_performance.replace_one(
        {"user_id": record["user_id"], "question_id": record["question_id"]},
        serialize_mongo(record),
        upsert=True
    )

@store_call
async def find_question_performance(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.question_performance.find({"user_id": user_id}).sort("next_review_date", 1)
    return serialize_many(await cursor.to_list(length=None))

@store_call
async def get_category_analytics(db: AsyncIOMotorDatabase, user_id: str, category_name: str) -> Optional[dict]:
    return await db.quiz_analytics.find_one({"user_id": user_id, "category_name": category_name})

@store_call
async def save_category_analytics(db: AsyncIOMotorDatabase, record: dict) -> None:
    await db.quiz_analytics.replace_one(
        {"user_id": record["user_id"], "category_name": record["category_name"]},
        serialize_mongo(record),
        upsert=True
    )

@store_call
async def find_user_analytics(db: AsyncIOMotorDatabase, user_id: str, category_name: Optional[str] = None) -> List[dict]:
    query = {"user_id": user_id}
    if category_name:
        query["category_name"] = category_name

    cursor = db.quiz_analytics.find(query).sort("category_name", 1)
    return serialize_many(await cursor.to_list(length=None))

# ==================== ADMIN ANALYTICS ====================

@store_call
async def get_admin_quiz_analytics(
    db: AsyncIOMotorDatabase,
    today_start: datetime,
    week_start: datetime,
    top_categories: int
) -> dict:
    """Platform-wide session and category aggregates"""
    completed = {"$match": {"status": SessionStatus.COMPLETED.value}}

    total_sessions = await db.quiz_sessions.count_documents({})

    questions_answered = await db.quiz_sessions.aggregate([
        completed,
        {"$group": {"_id": None, "total": {"$sum": "$question_count"}}}
    ]).to_list(length=1)

    session_time = await db.quiz_sessions.aggregate([
        completed,
        {"$group": {"_id": None, "avg_time": {"$avg": "$total_time"}}}
    ]).to_list(length=1)

    categories = await db.quiz_analytics.aggregate([
        {
            "$group": {
                "_id": "$category_name",
                "attempts": {"$sum": "$total_attempts"},
                "avg_score": {"$avg": "$average_score"}
            }
        },
        {"$sort": {"attempts": -1, "_id": 1}},
        {"$limit": top_categories}
    ]).to_list(length=None)

    difficulty_stats = await db.quiz_sessions.aggregate([
        {"$group": {"_id": "$difficulty", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}}
    ]).to_list(length=None)

    sessions_today = await db.quiz_sessions.count_documents({"started_at": {"$gte": today_start}})
    weekly_users = await db.quiz_sessions.distinct("user_id", {"started_at": {"$gte": week_start}})
    all_users = await db.quiz_sessions.distinct("user_id")

    return {
        "total_sessions": total_sessions,
        "total_questions_answered": questions_answered[0]["total"] if questions_answered else 0,
        "average_session_time": (session_time[0]["avg_time"] or 0) if session_time else 0,
        "top_categories": categories,
        "difficulty_distribution": {item["_id"]: item["count"] for item in difficulty_stats},
        "sessions_today": sessions_today,
        "weekly_active_users": len(weekly_users),
        "total_users": len(all_users)
    }
