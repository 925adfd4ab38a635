"""
Session Builder
Snapshots a deterministic slice of a quiz into a new in-progress session
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Tuple
from pydantic import ValidationError
import logging

from quiz_api.config import MIN_QUESTION_COUNT, MAX_QUESTION_COUNT, DEFAULT_QUESTION_COUNT
from quiz_api.quiz import database
from quiz_api.quiz.exceptions import InternalError, InvalidInputError, NotFoundError
from quiz_api.quiz.formatter import progress_summary, question_prompt
from quiz_api.quiz.models import (
    DifficultyFilter, QuizDefinition, QuizQuestion, QuizSession, SessionQuestion, SessionStatus
)

logger = logging.getLogger(__name__)


def parse_difficulty(value) -> DifficultyFilter:
    try:
        return DifficultyFilter(value)
    except ValueError:
        raise InvalidInputError("Invalid difficulty. Must be easy, medium, hard, or mixed")


def select_questions(
    questions: List[QuizQuestion],
    difficulty: DifficultyFilter,
    question_count: int
) -> List[Tuple[int, QuizQuestion]]:
    """
    Filter by difficulty (unless mixed) and keep the first question_count.
    Source order is preserved, no sampling. Each pick is returned with its
    position in the source quiz.
    """
    selected = list(enumerate(questions))
    if difficulty != DifficultyFilter.MIXED:
        selected = [(i, q) for i, q in selected if q.difficulty.value == difficulty.value]
    return selected[:question_count]


def snapshot_question(quiz_id: str, position: int, question: QuizQuestion) -> SessionQuestion:
    return SessionQuestion(
        question_id=question.question_id or f"{quiz_id}:{position}",
        question=question.question,
        options=list(question.options),
        correct_answer=question.correct_answer,
        difficulty=question.difficulty,
        explanation=question.explanation,
        detailed_explanation=question.detailed_explanation
    )


def build_session(
    session_id: str,
    user_id: str,
    quiz: QuizDefinition,
    difficulty: DifficultyFilter,
    question_count: int
) -> QuizSession:
    if not quiz.questions:
        raise InvalidInputError("Quiz has no questions")

    selected = select_questions(quiz.questions, difficulty, question_count)

    if not selected:
        raise InvalidInputError("No questions available for the selected difficulty")

    return QuizSession(
        session_id=session_id,
        user_id=user_id,
        quiz_id=quiz.quiz_id,
        category_name=quiz.category_name,
        difficulty=difficulty,
        question_count=len(selected),
        questions=[snapshot_question(quiz.quiz_id, position, q) for position, q in selected],
        status=SessionStatus.IN_PROGRESS,
        started_at=datetime.utcnow()
    )


def session_document(session: QuizSession) -> dict:
    doc = session.dict()
    doc["difficulty"] = session.difficulty.value
    doc["status"] = session.status.value
    for question in doc["questions"]:
        question["difficulty"] = question["difficulty"].value
    return doc


async def start_session(
    db: AsyncIOMotorDatabase,
    user_id: str,
    quiz_id: str,
    difficulty=DifficultyFilter.MIXED.value,
    question_count: int = DEFAULT_QUESTION_COUNT
) -> dict:
    """
    Start a new quiz session for user_id.

    Raises:
        InvalidInputError: missing ids, bad difficulty or count, nothing to ask
        NotFoundError: quiz missing or inactive
    """
    if not user_id or not quiz_id:
        raise InvalidInputError("Missing required fields: user_id, quiz_id")

    difficulty = parse_difficulty(difficulty)

    if not MIN_QUESTION_COUNT <= question_count <= MAX_QUESTION_COUNT:
        raise InvalidInputError(
            f"Question count must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}"
        )

    quiz_doc = await database.get_quiz(db, quiz_id)
    if not quiz_doc or not quiz_doc.get("is_active", True):
        raise NotFoundError("Quiz not found or inactive")

    try:
        quiz = QuizDefinition(**quiz_doc)
    except ValidationError as e:
        logger.error("Quiz %s failed validation: %s", quiz_id, e)
        raise InternalError("Quiz definition is malformed") from e

    session = build_session(database.new_session_id(), user_id, quiz, difficulty, question_count)

    await database.insert_session(db, session_document(session))
    logger.info(
        "Started session %s for user %s on quiz %s (%s, %d questions)",
        session.session_id, user_id, quiz_id, difficulty.value, session.question_count
    )

    return {
        "session_id": session.session_id,
        "category_name": session.category_name,
        "difficulty": session.difficulty.value,
        "question_count": session.question_count,
        "current_question_index": 0,
        "current_question": question_prompt(session.questions[0]),
        "progress": progress_summary(0, session.question_count)
    }
