"""ORM models for database persistence."""

from .analysis import Analysis
from .base import Base, SqlalchemyBase
from .mention import Mention, MentionStatus

__all__ = [
    "Analysis",
    "Base",
    "SqlalchemyBase",
    "Mention",
    "MentionStatus",
]
