from datetime import datetime, timedelta

from jose import jwt

from conftest import auth_headers
from quiz_api.config import JWT_SECRET_KEY, JWT_ALGORITHM


def _start(client, quiz_id, user_id="user-1", **body):
    payload = {"quiz_id": quiz_id, **body}
    return client.post("/quiz/session/start", json=payload, headers=auth_headers(user_id))


def test_full_session_flow(client, quiz_id):
    response = _start(client, quiz_id, difficulty="easy", question_count=5)
    assert response.status_code == 201
    started = response.json()
    assert started["success"] is True
    session_id = started["data"]["session_id"]
    assert started["data"]["question_count"] == 2
    assert started["data"]["current_question"]["question"] == "q0"

    response = client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 0, "answer": 0, "time_spent": 4},
        headers=auth_headers()
    )
    assert response.status_code == 200
    answer = response.json()["data"]
    assert answer["is_correct"] is True
    assert answer["next_question"]["question"] == "q3"

    response = client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 1, "answer": 3, "time_spent": 6},
        headers=auth_headers()
    )
    assert response.json()["data"]["is_completed"] is True
    assert response.json()["data"]["next_question"] is None

    response = client.post(f"/quiz/session/{session_id}/complete", headers=auth_headers())
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["percentage"] == 100
    assert result["badge_earned"] == "platinum"
    assert result["points_earned"] == 20

    response = client.get("/quiz/sessions", params={"status": "completed"}, headers=auth_headers())
    sessions = response.json()["data"]
    assert [s["session_id"] for s in sessions] == [session_id]
    assert sessions[0]["can_resume"] is False


def test_requests_without_token_are_unauthorized(client, quiz_id):
    response = client.post("/quiz/session/start", json={"quiz_id": quiz_id})
    assert response.status_code == 401


def test_expired_token_is_unauthorized(client, quiz_id):
    token = jwt.encode(
        {"sub": "user-1", "exp": datetime.utcnow() - timedelta(minutes=5)},
        JWT_SECRET_KEY,
        algorithm=JWT_ALGORITHM
    )
    response = client.get("/quiz/sessions", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_start_with_bad_difficulty_is_400(client, quiz_id):
    response = _start(client, quiz_id, difficulty="expert")
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": {
            "kind": "invalid_input",
            "message": "Invalid difficulty. Must be easy, medium, hard, or mixed"
        }
    }


def test_start_unknown_quiz_is_404(client):
    response = _start(client, "QUIZ_MISSING")
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_answer_out_of_range_is_400(client, quiz_id):
    session_id = _start(client, quiz_id, question_count=2).json()["data"]["session_id"]
    response = client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 2, "answer": 0, "time_spent": 1},
        headers=auth_headers()
    )
    assert response.status_code == 400


def test_answer_with_missing_fields_is_rejected(client, quiz_id):
    session_id = _start(client, quiz_id).json()["data"]["session_id"]
    response = client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 0},
        headers=auth_headers()
    )
    assert response.status_code == 422


def test_answer_after_completion_is_409(client, quiz_id):
    session_id = _start(client, quiz_id).json()["data"]["session_id"]
    client.post(f"/quiz/session/{session_id}/complete", headers=auth_headers())

    response = client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 0, "answer": 0, "time_spent": 1},
        headers=auth_headers()
    )
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "conflict"


def test_other_user_cannot_touch_session(client, quiz_id):
    session_id = _start(client, quiz_id, user_id="owner").json()["data"]["session_id"]

    response = client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 0, "answer": 0, "time_spent": 1},
        headers=auth_headers("intruder")
    )
    assert response.status_code == 404

    response = client.get(f"/quiz/session/{session_id}", headers=auth_headers("intruder"))
    assert response.status_code == 404


def test_session_view_endpoint(client, quiz_id):
    session_id = _start(client, quiz_id).json()["data"]["session_id"]
    response = client.get(f"/quiz/session/{session_id}", headers=auth_headers())
    assert response.status_code == 200
    view = response.json()["data"]
    assert view["can_resume"] is True
    assert view["current_question"]["index"] == 0


def test_list_sessions_bad_status_is_400(client):
    response = client.get("/quiz/sessions", params={"status": "paused"}, headers=auth_headers())
    assert response.status_code == 400


def test_performance_and_analytics_endpoints(client, quiz_id):
    session_id = _start(client, quiz_id, difficulty="hard").json()["data"]["session_id"]
    client.post(
        f"/quiz/session/{session_id}/answer",
        json={"question_index": 0, "answer": 2, "time_spent": 5},
        headers=auth_headers()
    )
    client.post(f"/quiz/session/{session_id}/complete", headers=auth_headers())

    performance = client.get("/quiz/performance", headers=auth_headers()).json()["data"]
    assert len(performance) == 1
    assert performance[0]["correct_attempts"] == 1

    analytics = client.get(
        "/quiz/analytics", params={"category_name": "Python Basics"}, headers=auth_headers()
    ).json()["data"]
    assert analytics[0]["best_score"] == 100
    assert analytics[0]["difficulty_performance"]["hard"] == {"attempts": 1, "success_rate": 100}


def test_active_sessions_requires_admin(client, quiz_id):
    _start(client, quiz_id)

    response = client.get("/quiz/admin/active-sessions", headers=auth_headers("user-1"))
    assert response.status_code == 403

    response = client.get("/quiz/admin/active-sessions", headers=auth_headers("admin", is_admin=True))
    assert response.status_code == 200
    assert len(response.json()["data"]) == 1


def test_admin_analytics_requires_admin(client, quiz_id):
    _start(client, quiz_id)

    response = client.get("/quiz/admin/analytics", headers=auth_headers("user-1"))
    assert response.status_code == 403

    response = client.get("/quiz/admin/analytics", headers=auth_headers("admin", is_admin=True))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_sessions"] == 1
    assert data["difficulty_distribution"] == {"mixed": 1}
    assert data["engagement"]["weekly_active_users"] == 1


def test_engine_errors_are_rendered_by_quiz_app_handler():
    from quiz_api.main import app
    from quiz_api.quiz.app import quiz_engine_error_handler
    from quiz_api.quiz.exceptions import QuizEngineError

    assert app.exception_handlers[QuizEngineError] is quiz_engine_error_handler
