import asyncio
import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from mongomock_motor import AsyncMongoMockClient

from quiz_api.config import JWT_SECRET_KEY, JWT_ALGORITHM
from quiz_api.main import app
from quiz_api.quiz import database
from quiz_api.quiz.dependencies import get_db


def run(coro):
    return asyncio.run(coro)


def make_question(text, difficulty="easy", correct=0, options=None, **extra):
    question = {
        "question": text,
        "options": options or ["A", "B", "C", "D"],
        "correct_answer": correct,
        "difficulty": difficulty,
        "explanation": f"Because {text}",
        "detailed_explanation": f"Detailed: {text}"
    }
    question.update(extra)
    return question


SAMPLE_QUESTIONS = [
    make_question("q0", "easy", 0),
    make_question("q1", "medium", 1),
    make_question("q2", "hard", 2),
    make_question("q3", "easy", 3),
    make_question("q4", "medium", 0),
    make_question("q5", "hard", 1),
]


def seed_quiz(db, questions=None, **fields):
    data = {
        "category_name": fields.pop("category_name", "Python Basics"),
        "category_description": "Core language",
        "category_icon": "python",
        "questions": SAMPLE_QUESTIONS if questions is None else questions,
    }
    data.update(fields)
    return run(database.create_quiz(db, data))


def auth_headers(user_id="user-1", **claims):
    payload = {"sub": user_id, **claims}
    token = jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client["quiz_engine_test"]


@pytest.fixture
def quiz_id(db):
    return seed_quiz(db)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
