"""
Scoring & Rewards Calculator
Turns a session's answer log into score, badge, streak bonus and points,
and finalizes the session exactly once.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Optional
import logging

from quiz_api.config import (
    COMPLETION_ATTEMPTS, POINTS_PER_CORRECT, STREAK_MIN_LENGTH, STREAK_POINTS_PER_ANSWER
)
from quiz_api.quiz import database
from quiz_api.quiz.exceptions import ConflictError, InternalError
from quiz_api.quiz.formatter import ratio_percentage
from quiz_api.quiz.models import BadgeTier, Difficulty, QuizSession, SessionQuestion, SessionStatus
from quiz_api.quiz.performance import record_session_analytics
from quiz_api.quiz.session_state import hydrate_session, load_session

logger = logging.getLogger(__name__)

# ==================== BADGES ====================

BADGE_THRESHOLDS = {
    BadgeTier.PLATINUM: 90,
    BadgeTier.GOLD: 80,
    BadgeTier.SILVER: 70,
    BadgeTier.BRONZE: 0
}

def calculate_badge(percentage: int) -> BadgeTier:
    """Badge tier from percentage, highest threshold first"""
    if percentage >= BADGE_THRESHOLDS[BadgeTier.PLATINUM]:
        return BadgeTier.PLATINUM
    elif percentage >= BADGE_THRESHOLDS[BadgeTier.GOLD]:
        return BadgeTier.GOLD
    elif percentage >= BADGE_THRESHOLDS[BadgeTier.SILVER]:
        return BadgeTier.SILVER
    return BadgeTier.BRONZE

# ==================== STREAKS & POINTS ====================

def longest_correct_streak(questions: List[SessionQuestion]) -> int:
    """Longest run of correct answers in snapshot order; unanswered breaks a run"""
    best = 0
    current = 0
    for question in questions:
        if question.is_correct:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best

def calculate_streak_bonus(streak: int) -> int:
    if streak >= STREAK_MIN_LENGTH:
        return streak * STREAK_POINTS_PER_ANSWER
    return 0

def calculate_points(correct_answers: int, streak_bonus: int) -> int:
    return correct_answers * POINTS_PER_CORRECT + streak_bonus

def difficulty_performance(questions: List[SessionQuestion], difficulty: Difficulty) -> dict:
    attempted = [q for q in questions if q.difficulty == difficulty and q.is_answered]
    correct = sum(1 for q in attempted if q.is_correct)
    return {
        "attempted": len(attempted),
        "correct": correct,
        "percentage": ratio_percentage(correct, len(attempted))
    }

# ==================== SESSION RESULT ====================

def score_session(session: QuizSession) -> dict:
    """Fields persisted on completion"""
    answered = [q for q in session.questions if q.is_answered]
    correct = sum(1 for q in answered if q.is_correct)
    percentage = ratio_percentage(correct, len(answered))
    return {
        "score": percentage,
        "percentage": percentage,
        "total_time": sum(q.time_spent or 0 for q in answered)
    }

def build_session_result(session: QuizSession) -> dict:
    """
    Result view of a completed session.
    Score and percentage come from the stored document; everything else is
    derived from the frozen answer log so repeated calls agree.
    """
    answered = [q for q in session.questions if q.is_answered]
    correct_answers = sum(1 for q in answered if q.is_correct)
    percentage = session.percentage or 0
    streak_bonus = calculate_streak_bonus(longest_correct_streak(session.questions))

    return {
        "session_id": session.session_id,
        "score": session.score,
        "percentage": session.percentage,
        "correct_answers": correct_answers,
        "total_questions": len(answered),
        "total_time": session.total_time or 0,
        "badge_earned": calculate_badge(percentage).value,
        "streak_bonus": streak_bonus,
        "points_earned": calculate_points(correct_answers, streak_bonus),
        "performance": {
            difficulty.value: difficulty_performance(session.questions, difficulty)
            for difficulty in Difficulty
        },
        "detailed_results": [
            {
                "question_index": index,
                "question": q.question,
                "options": list(q.options),
                "correct_answer": q.correct_answer,
                "user_answer": q.user_answer,
                "is_correct": q.is_correct,
                "time_spent": q.time_spent,
                "explanation": q.explanation,
                "detailed_explanation": q.detailed_explanation
            }
            for index, q in enumerate(session.questions)
        ],
        "completed_at": session.completed_at
    }

async def complete_session(db: AsyncIOMotorDatabase, session_id: str, user_id: Optional[str] = None) -> dict:
    """
    Finalize a session and return its result.

    Completing an already completed session returns the stored result.
    Concurrent completions are settled by a conditional write: the loser
    re-reads and returns the winner's result. The write is also pinned to
    the session version the score was computed from, so an answer that
    lands in between causes a re-score rather than a stale result.

    Raises:
        NotFoundError: no such session for this owner
        ConflictError: session was abandoned
    """
    session = await load_session(db, session_id, user_id)
    updated = None

    for _ in range(COMPLETION_ATTEMPTS):
        if session.status == SessionStatus.COMPLETED:
            return build_session_result(session)
        if session.status != SessionStatus.IN_PROGRESS:
            raise ConflictError(f"Session is {session.status.value} and cannot be completed")

        result_fields = score_session(session)
        result_fields["completed_at"] = datetime.utcnow()

        updated = await database.finalize_session(
            db, session_id, result_fields, user_id=user_id, expected_version=session.version
        )
        if updated:
            break

        # Completed elsewhere, or an answer landed after the score was computed
        session = await load_session(db, session_id, user_id)
        if session.status == SessionStatus.COMPLETED:
            logger.info("Session %s was completed concurrently, returning stored result", session_id)
        elif session.status == SessionStatus.IN_PROGRESS:
            logger.info("Session %s changed while completing, re-scoring", session_id)

    if not updated:
        if session.status == SessionStatus.COMPLETED:
            return build_session_result(session)
        if session.status != SessionStatus.IN_PROGRESS:
            raise ConflictError(f"Session is {session.status.value} and cannot be completed")
        raise InternalError("Failed to complete session")

    session = hydrate_session(updated)
    logger.info(
        "Completed session %s for user %s: %s%% in %ss",
        session_id, session.user_id, session.percentage, session.total_time
    )

    await record_session_analytics(
        db,
        user_id=session.user_id,
        category_name=session.category_name,
        score=session.score or 0,
        difficulty=session.difficulty.value,
        time_spent=session.total_time or 0
    )

    return build_session_result(session)
