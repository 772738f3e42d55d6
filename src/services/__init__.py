"""Service layer for business logic and database operations."""

from .analysis_service import AnalysisService
from .database import DatabaseService, get_db_service, init_db_service
from .mention_service import MentionService
from .profile_service import ProfileService

__all__ = [
    "AnalysisService",
    "DatabaseService",
    "MentionService",
    "ProfileService",
    "get_db_service",
    "init_db_service",
]
