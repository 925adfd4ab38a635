"""
Response shaping shared by the session services.
Nothing here ever emits a correct answer for a question that is still open.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from quiz_api.quiz.models import QuizSession, SessionQuestion, SessionStatus


def round_half_up(value: float) -> int:
    """Round x.5 away from zero instead of to the nearest even integer"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def ratio_percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part * 100 / whole)


def progress_summary(answered: int, total: int) -> dict:
    return {
        "answered": answered,
        "total": total,
        "percentage": ratio_percentage(answered, total)
    }


def question_prompt(question: SessionQuestion, index: Optional[int] = None) -> dict:
    """Prompt and options only"""
    prompt = {
        "question": question.question,
        "options": list(question.options),
        "difficulty": question.difficulty.value
    }
    if index is not None:
        prompt = {"index": index, **prompt}
    return prompt


def next_question_prompt(session: QuizSession) -> Optional[dict]:
    """
    Next question by count of answers, not by pointer.
    Out-of-order submissions can make this point at an already answered
    slot; clients treat progress as count based.
    """
    answered = session.answered_count
    if answered >= session.question_count or answered >= len(session.questions):
        return None
    return question_prompt(session.questions[answered], index=answered)


def session_summary(session: QuizSession) -> dict:
    answered = session.answered_count
    return {
        "session_id": session.session_id,
        "quiz_id": session.quiz_id,
        "category_name": session.category_name,
        "difficulty": session.difficulty.value,
        "status": session.status.value,
        "progress": progress_summary(answered, session.question_count),
        "score": session.score,
        "percentage": session.percentage,
        "total_time": session.total_time,
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "can_resume": session.status == SessionStatus.IN_PROGRESS and answered < session.question_count
    }
