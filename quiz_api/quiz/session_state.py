"""
Session State Machine

    in_progress --> completed   (complete_session)
    in_progress --> abandoned   (administrative only)

Terminal sessions accept no further writes.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import Optional
from pydantic import ValidationError
import logging

from quiz_api.quiz import database
from quiz_api.quiz.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from quiz_api.quiz.formatter import next_question_prompt, progress_summary
from quiz_api.quiz.models import QuizSession, SessionStatus
from quiz_api.quiz.performance import record_answer_performance

logger = logging.getLogger(__name__)


def hydrate_session(doc: dict) -> QuizSession:
    try:
        return QuizSession(**doc)
    except ValidationError as e:
        logger.error("Session %s failed validation: %s", doc.get("session_id"), e)
        raise InternalError("Stored session is malformed") from e


async def load_session(db: AsyncIOMotorDatabase, session_id: str, user_id: Optional[str] = None) -> QuizSession:
    """Load a session, treating another user's session as missing"""
    if not session_id:
        raise InvalidInputError("Session ID is required")

    doc = await database.get_session(db, session_id, user_id)
    if not doc:
        raise NotFoundError("Session not found")
    return hydrate_session(doc)


def ensure_in_progress(session: QuizSession) -> None:
    if session.status != SessionStatus.IN_PROGRESS:
        raise ConflictError(f"Session is {session.status.value}, no further answers accepted")


def validate_answer_input(question_index: int, answer: int, time_spent: float) -> None:
    if question_index is None or answer is None or time_spent is None:
        raise InvalidInputError("Missing required fields: question_index, answer, time_spent")
    if question_index < 0:
        raise InvalidInputError("Invalid question index")
    if answer < 0:
        raise InvalidInputError("Invalid answer")
    if time_spent < 0:
        raise InvalidInputError("Invalid time spent")


async def submit_answer(
    db: AsyncIOMotorDatabase,
    session_id: str,
    question_index: int,
    answer: int,
    time_spent: float,
    user_id: Optional[str] = None
) -> dict:
    """
    Record an answer for one snapshot question.

    Re-submitting an index overwrites the earlier answer. Progress is count
    based: next_question points at position `answered`, which can lag behind
    when answers arrive out of order.

    Raises:
        InvalidInputError: negative values or index outside the snapshot
        NotFoundError: no such session for this owner
        ConflictError: session is completed or abandoned
    """
    validate_answer_input(question_index, answer, time_spent)

    session = await load_session(db, session_id, user_id)
    ensure_in_progress(session)

    if question_index >= session.question_count or question_index >= len(session.questions):
        raise InvalidInputError("Question not found")

    # The snapshot never changes, so correctness can be decided before the write
    question = session.questions[question_index]
    is_correct = answer == question.correct_answer

    updated = await database.set_question_answer(
        db,
        session_id,
        question_index,
        {
            "user_answer": answer,
            "is_correct": is_correct,
            "time_spent": time_spent,
            "answered_at": datetime.utcnow()
        },
        user_id=user_id
    )

    if not updated:
        # Lost a race against completion (or the session vanished)
        current = await load_session(db, session_id, user_id)
        ensure_in_progress(current)
        raise InternalError("Failed to submit answer")

    session = hydrate_session(updated)
    answered = session.answered_count
    is_completed = answered >= session.question_count

    logger.debug(
        "Session %s answer q%d=%d correct=%s (%d/%d)",
        session_id, question_index, answer, is_correct, answered, session.question_count
    )

    await record_answer_performance(
        db,
        user_id=session.user_id,
        question_id=question.question_id,
        category_name=session.category_name,
        difficulty=question.difficulty.value,
        is_correct=is_correct,
        time_spent=time_spent
    )

    return {
        "is_correct": is_correct,
        "explanation": question.explanation,
        "detailed_explanation": question.detailed_explanation,
        "next_question": None if is_completed else next_question_prompt(session),
        "is_completed": is_completed,
        "progress": progress_summary(answered, session.question_count)
    }
