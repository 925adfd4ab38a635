"""
Quiz Engine Configuration
Database, auth and session limits
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "quiz_engine_db")

# Auth (shared secret with the identity service)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Session limits
MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = int(os.getenv("QUIZ_MAX_QUESTION_COUNT", "50"))
DEFAULT_QUESTION_COUNT = int(os.getenv("QUIZ_DEFAULT_QUESTION_COUNT", "10"))

# Rewards
POINTS_PER_CORRECT = 10
STREAK_MIN_LENGTH = 3
STREAK_POINTS_PER_ANSWER = 10

# Completion re-scores when answers land mid-write, up to this many times
COMPLETION_ATTEMPTS = 3

# Analytics
ANALYTICS_TIMELINE_LENGTH = 30
ANALYTICS_SUCCESS_SCORE = 70
ACTIVE_SESSION_WINDOW_HOURS = 24
ADMIN_TOP_CATEGORIES = 5
ADMIN_WEEKLY_WINDOW_DAYS = 7
