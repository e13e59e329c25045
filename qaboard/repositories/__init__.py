# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .question_repository import QuestionRepository, AnswerRepository
from .points_repository import PointsRepository
from .funding_repository import FundingRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "QuestionRepository",
    "AnswerRepository",
    "PointsRepository",
    "FundingRepository",
]
