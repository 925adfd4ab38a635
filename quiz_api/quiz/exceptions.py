"""
Quiz engine error taxonomy

Every failure carries a stable kind plus a human readable message.
The FastAPI handler in quiz_api.quiz.app renders them as JSON.
"""


class QuizEngineError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class InvalidInputError(QuizEngineError):
    """Malformed or out-of-range caller data"""
    kind = "invalid_input"
    status_code = 400


class NotFoundError(QuizEngineError):
    """Referenced quiz or session is absent"""
    kind = "not_found"
    status_code = 404


class ConflictError(QuizEngineError):
    """Write attempted against a session that is no longer in progress"""
    kind = "conflict"
    status_code = 409


class InternalError(QuizEngineError):
    """Persistence or unexpected failure"""
    kind = "internal"
    status_code = 500
