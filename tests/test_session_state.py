import asyncio

import pytest

from conftest import run
from quiz_api.quiz import database
from quiz_api.quiz.exceptions import ConflictError, InvalidInputError, NotFoundError
from quiz_api.quiz.scoring import complete_session
from quiz_api.quiz.session_builder import start_session
from quiz_api.quiz.session_state import submit_answer


@pytest.fixture
def session_id(db, quiz_id):
    # q0..q3: correct answers 0, 1, 2, 3
    return run(start_session(db, "user-1", quiz_id, "mixed", 4))["session_id"]


def _stored_questions(db, session_id):
    return run(database.get_session(db, session_id))["questions"]


def test_correct_answer_returns_explanation_and_next_question(db, session_id):
    result = run(submit_answer(db, session_id, 0, 0, 12, user_id="user-1"))

    assert result["is_correct"] is True
    assert result["explanation"] == "Because q0"
    assert result["detailed_explanation"] == "Detailed: q0"
    assert result["is_completed"] is False
    assert result["next_question"] == {
        "index": 1,
        "question": "q1",
        "options": ["A", "B", "C", "D"],
        "difficulty": "medium"
    }
    assert result["progress"] == {"answered": 1, "total": 4, "percentage": 25}


def test_answer_is_recorded_on_snapshot(db, session_id):
    run(submit_answer(db, session_id, 1, 3, 7.5))

    question = _stored_questions(db, session_id)[1]
    assert question["user_answer"] == 3
    assert question["is_correct"] is False
    assert question["time_spent"] == 7.5
    assert question["answered_at"] is not None


def test_progress_counts_distinct_answers(db, session_id):
    for m, index in enumerate([0, 1, 2, 3], start=1):
        result = run(submit_answer(db, session_id, index, 0, 5))
        assert result["progress"]["answered"] == m
        assert result["is_completed"] == (m == 4)

    assert result["next_question"] is None
    assert result["progress"]["percentage"] == 100


def test_resubmission_overwrites_without_double_counting(db, session_id):
    run(submit_answer(db, session_id, 0, 2, 5))
    result = run(submit_answer(db, session_id, 0, 0, 9))

    assert result["is_correct"] is True
    assert result["progress"]["answered"] == 1
    question = _stored_questions(db, session_id)[0]
    assert question["user_answer"] == 0
    assert question["time_spent"] == 9


def test_next_question_is_count_based(db, session_id):
    result = run(submit_answer(db, session_id, 2, 2, 5))
    # One answer recorded, so position 1 is served even though index 2 was answered
    assert result["next_question"]["index"] == 1

    result = run(submit_answer(db, session_id, 3, 3, 5))
    assert result["next_question"]["index"] == 2
    assert result["next_question"]["question"] == "q2"


@pytest.mark.parametrize("index,answer,time_spent", [
    (4, 0, 5),
    (99, 0, 5),
    (-1, 0, 5),
    (0, -1, 5),
    (0, 0, -3),
])
def test_invalid_input_never_mutates(db, session_id, index, answer, time_spent):
    before = _stored_questions(db, session_id)

    with pytest.raises(InvalidInputError):
        run(submit_answer(db, session_id, index, answer, time_spent))

    assert _stored_questions(db, session_id) == before


def test_unknown_session_is_not_found(db):
    with pytest.raises(NotFoundError):
        run(submit_answer(db, "QSESS_MISSING", 0, 0, 1))


def test_other_users_session_is_not_found(db, session_id):
    with pytest.raises(NotFoundError):
        run(submit_answer(db, session_id, 0, 0, 1, user_id="intruder"))

    assert _stored_questions(db, session_id)[0]["user_answer"] is None


def test_completed_session_rejects_answers(db, session_id):
    run(submit_answer(db, session_id, 0, 0, 1))
    run(complete_session(db, session_id))

    with pytest.raises(ConflictError):
        run(submit_answer(db, session_id, 1, 1, 1))

    assert _stored_questions(db, session_id)[1]["user_answer"] is None


def test_abandoned_session_rejects_answers(db, session_id):
    run(db.quiz_sessions.update_one({"session_id": session_id}, {"$set": {"status": "abandoned"}}))

    with pytest.raises(ConflictError):
        run(submit_answer(db, session_id, 0, 0, 1))


def test_answer_updates_question_performance(db, quiz_id, session_id):
    run(submit_answer(db, session_id, 0, 0, 5, user_id="user-1"))

    records = run(database.find_question_performance(db, "user-1"))
    assert len(records) == 1
    assert records[0]["question_id"] == f"{quiz_id}:0"
    assert records[0]["attempts"] == 1
    assert records[0]["correct_attempts"] == 1
    assert records[0]["interval"] == 6


def test_completion_race_on_answer_write_is_conflict(db, session_id, monkeypatch):
    real_set = database.set_question_answer

    async def complete_first(db_, session_id_, *args, **kwargs):
        await db_.quiz_sessions.update_one({"session_id": session_id_}, {"$set": {"status": "completed"}})
        return await real_set(db_, session_id_, *args, **kwargs)

    monkeypatch.setattr(database, "set_question_answer", complete_first)

    with pytest.raises(ConflictError):
        run(submit_answer(db, session_id, 0, 0, 1))

    assert _stored_questions(db, session_id)[0]["user_answer"] is None


def test_concurrent_answers_on_different_questions_both_persist(db, session_id):
    async def answer_both():
        return await asyncio.gather(
            submit_answer(db, session_id, 0, 0, 4),
            submit_answer(db, session_id, 1, 2, 6)
        )

    first, second = run(answer_both())

    assert first["is_correct"] is True
    assert second["is_correct"] is False
    questions = _stored_questions(db, session_id)
    assert questions[0]["user_answer"] == 0
    assert questions[1]["user_answer"] == 2
    assert max(first["progress"]["answered"], second["progress"]["answered"]) == 2
    assert run(database.get_session(db, session_id))["version"] == 2
