"""
Performance Tracker

Per-question spaced repetition stats (SuperMemo-2) updated on every answer,
and per-category analytics updated on every completed session.
Both run after the session write has committed; a failure here is logged
and never fails the answer or completion that triggered it.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from quiz_api.config import (
    ADMIN_TOP_CATEGORIES, ADMIN_WEEKLY_WINDOW_DAYS, ANALYTICS_SUCCESS_SCORE, ANALYTICS_TIMELINE_LENGTH
)
from quiz_api.quiz import database
from quiz_api.quiz.exceptions import QuizEngineError
from quiz_api.quiz.formatter import round_half_up
from quiz_api.quiz.models import Difficulty

logger = logging.getLogger(__name__)

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3

# ==================== SPACED REPETITION ====================

def response_quality(time_spent: float) -> int:
    """Faster correct answers count as stronger recall"""
    if time_spent < 10:
        return 5
    elif time_spent < 20:
        return 4
    elif time_spent < 30:
        return 3
    return 2

def update_spaced_repetition(record: dict, is_correct: bool, time_spent: float, now: datetime) -> dict:
    interval = record.get("interval", 1)
    ease = record.get("ease_factor", DEFAULT_EASE_FACTOR)

    if is_correct:
        interval = 6 if interval == 1 else round_half_up(interval * ease)
        q = response_quality(time_spent)
        ease = max(MIN_EASE_FACTOR, ease + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)))
    else:
        interval = 1
        ease = max(MIN_EASE_FACTOR, ease - 0.2)

    record["interval"] = interval
    record["ease_factor"] = ease
    record["next_review_date"] = now + timedelta(days=interval)
    return record

def merge_stored(defaults: dict, stored: Optional[dict]) -> dict:
    """Overlay a stored record on fresh defaults so partial records still merge"""
    if not stored:
        return defaults
    for key, value in stored.items():
        if isinstance(value, dict) and isinstance(defaults.get(key), dict):
            defaults[key] = merge_stored(defaults[key], value)
        elif value is not None:
            defaults[key] = value
    return defaults

def new_performance_record(user_id: str, question_id: str, category_name: str, difficulty: str, now: datetime) -> dict:
    return {
        "user_id": user_id,
        "question_id": question_id,
        "category_name": category_name,
        "difficulty": difficulty,
        "attempts": 0,
        "correct_attempts": 0,
        "average_time": 0.0,
        "strength_level": 0.0,
        "last_attempted_at": now,
        "next_review_date": now,
        "ease_factor": DEFAULT_EASE_FACTOR,
        "interval": 1
    }

def apply_answer(record: dict, is_correct: bool, time_spent: float, now: datetime) -> dict:
    record["attempts"] += 1
    if is_correct:
        record["correct_attempts"] += 1

    attempts = record["attempts"]
    record["average_time"] = (record["average_time"] * (attempts - 1) + time_spent) / attempts
    record["strength_level"] = record["correct_attempts"] / attempts

    update_spaced_repetition(record, is_correct, time_spent, now)
    record["last_attempted_at"] = now
    return record

async def record_answer_performance(
    db: AsyncIOMotorDatabase,
    user_id: str,
    question_id: str,
    category_name: str,
    difficulty: str,
    is_correct: bool,
    time_spent: float
) -> Optional[dict]:
    now = datetime.utcnow()
    try:
        stored = await database.get_question_performance(db, user_id, question_id)
        record = merge_stored(
            new_performance_record(user_id, question_id, category_name, difficulty, now), stored
        )

        apply_answer(record, is_correct, time_spent, now)
        await database.save_question_performance(db, record)
        return record
    except QuizEngineError:
        logger.exception("Failed to update performance for user %s question %s", user_id, question_id)
        return None

# ==================== CATEGORY ANALYTICS ====================

def new_analytics_record(user_id: str, category_name: str, now: datetime) -> dict:
    return {
        "user_id": user_id,
        "category_name": category_name,
        "total_attempts": 0,
        "best_score": 0,
        "average_score": 0.0,
        "total_time_spent": 0,
        "difficulty_performance": {
            d.value: {"attempts": 0, "success_rate": 0.0} for d in Difficulty
        },
        "progress_timeline": [],
        "last_attempt_at": now
    }

def apply_session(record: dict, score: int, difficulty: str, time_spent: float, now: datetime) -> dict:
    record["total_attempts"] += 1
    attempts = record["total_attempts"]
    record["best_score"] = max(record["best_score"], score)
    record["average_score"] = (record["average_score"] * (attempts - 1) + score) / attempts
    record["total_time_spent"] += time_spent

    # Mixed sessions are not attributed to a single difficulty
    if difficulty in record["difficulty_performance"]:
        stats = record["difficulty_performance"][difficulty]
        stats["attempts"] += 1
        success = 1 if score >= ANALYTICS_SUCCESS_SCORE else 0
        stats["success_rate"] = (stats["success_rate"] * (stats["attempts"] - 1) + success) / stats["attempts"]

    record["progress_timeline"].append({
        "date": now,
        "score": score,
        "difficulty": difficulty,
        "time_spent": time_spent
    })
    record["progress_timeline"] = record["progress_timeline"][-ANALYTICS_TIMELINE_LENGTH:]

    record["last_attempt_at"] = now
    return record

async def record_session_analytics(
    db: AsyncIOMotorDatabase,
    user_id: str,
    category_name: str,
    score: int,
    difficulty: str,
    time_spent: float
) -> Optional[dict]:
    now = datetime.utcnow()
    try:
        stored = await database.get_category_analytics(db, user_id, category_name)
        record = merge_stored(new_analytics_record(user_id, category_name, now), stored)

        apply_session(record, score, difficulty, time_spent, now)
        await database.save_category_analytics(db, record)
        return record
    except QuizEngineError:
        logger.exception("Failed to update analytics for user %s category %s", user_id, category_name)
        return None

# ==================== READ VIEWS ====================

async def get_user_performance(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Question stats, soonest review first"""
    return await database.find_question_performance(db, user_id)

async def get_user_analytics(db: AsyncIOMotorDatabase, user_id: str, category_name: Optional[str] = None) -> List[dict]:
    now = datetime.utcnow()
    records = [
        merge_stored(new_analytics_record(user_id, r.get("category_name", ""), now), r)
        for r in await database.find_user_analytics(db, user_id, category_name)
    ]
    return [
        {
            "category_name": r["category_name"],
            "total_attempts": r["total_attempts"],
            "best_score": r["best_score"],
            "average_score": round(r["average_score"], 1),
            "total_time_spent": r["total_time_spent"],
            "difficulty_performance": {
                name: {
                    "attempts": stats["attempts"],
                    "success_rate": round_half_up(stats["success_rate"] * 100)
                }
                for name, stats in r["difficulty_performance"].items()
            },
            "progress_timeline": r["progress_timeline"],
            "last_attempt_at": r["last_attempt_at"]
        }
        for r in records
    ]

async def get_admin_analytics(db: AsyncIOMotorDatabase) -> dict:
    """Platform overview for admins: volume, top categories, difficulty mix, engagement"""
    now = datetime.utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    stats = await database.get_admin_quiz_analytics(
        db,
        today_start=today_start,
        week_start=now - timedelta(days=ADMIN_WEEKLY_WINDOW_DAYS),
        top_categories=ADMIN_TOP_CATEGORIES
    )

    total_sessions = stats["total_sessions"]
    total_users = stats["total_users"]

    return {
        "total_sessions": total_sessions,
        "total_questions_answered": stats["total_questions_answered"],
        "average_session_time": round_half_up(stats["average_session_time"]),
        "top_categories": [
            {
                "category_name": c["_id"],
                "attempts": c["attempts"],
                "average_score": round(c["avg_score"] or 0, 1)
            }
            for c in stats["top_categories"]
        ],
        "difficulty_distribution": stats["difficulty_distribution"],
        "engagement": {
            "sessions_today": stats["sessions_today"],
            "weekly_active_users": stats["weekly_active_users"],
            "average_sessions_per_user": round(total_sessions / total_users, 1) if total_users else 0
        }
    }
