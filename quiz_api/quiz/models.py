from pydantic import BaseModel, validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

from quiz_api.config import DEFAULT_QUESTION_COUNT

# ==================== ENUMS ====================

class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class DifficultyFilter(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    MIXED = "mixed"

class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

class BadgeTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

# ==================== QUIZ DEFINITION ====================

class QuizQuestion(BaseModel):
    question_id: Optional[str] = None
    question: str
    options: List[str]
    correct_answer: int
    difficulty: Difficulty
    explanation: str = ""
    detailed_explanation: str = ""

    @validator('options')
    def validate_options(cls, v):
        if len(v) < 2:
            raise ValueError('At least 2 options are required')
        return v

    @validator('correct_answer')
    def validate_correct_answer(cls, v, values):
        options = values.get('options') or []
        if v < 0 or v >= len(options):
            raise ValueError('Correct answer index is out of range')
        return v

class QuizDefinition(BaseModel):
    quiz_id: str
    category_name: str
    category_description: str = ""
    category_icon: str = ""
    questions: List[QuizQuestion] = []
    is_active: bool = True

# ==================== SESSION DOCUMENTS ====================

class SessionQuestion(BaseModel):
    """Snapshot of a quiz question plus the caller's answer for it"""
    question_id: str
    question: str
    options: List[str]
    correct_answer: int
    difficulty: Difficulty
    explanation: str = ""
    detailed_explanation: str = ""
    user_answer: Optional[int] = None
    is_correct: Optional[bool] = None
    time_spent: Optional[float] = None
    answered_at: Optional[datetime] = None

    @property
    def is_answered(self) -> bool:
        return self.user_answer is not None

class QuizSession(BaseModel):
    session_id: str
    user_id: str
    quiz_id: str
    category_name: str
    difficulty: DifficultyFilter
    question_count: int
    questions: List[SessionQuestion]
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: datetime
    completed_at: Optional[datetime] = None
    score: Optional[int] = None
    percentage: Optional[int] = None
    total_time: Optional[float] = None
    version: int = 0

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if q.is_answered)

# ==================== REQUEST MODELS ====================

class StartSessionRequest(BaseModel):
    quiz_id: str
    difficulty: str = DifficultyFilter.MIXED.value
    question_count: int = DEFAULT_QUESTION_COUNT

class SubmitAnswerRequest(BaseModel):
    question_index: int
    answer: int
    time_spent: float
