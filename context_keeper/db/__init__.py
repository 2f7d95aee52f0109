"""
Database package for context-keeper.
"""

from .base import Base, Store, get_database_url
from .models import (
    ConversationModel,
    JobModel,
    LearningModel,
    MessageModel,
    SanitizationFindingModel,
)
from .services import ConversationService, FindingService, LearningService

__all__ = [
    "Base",
    "Store",
    "get_database_url",
    "ConversationModel",
    "MessageModel",
    "JobModel",
    "SanitizationFindingModel",
    "LearningModel",
    "ConversationService",
    "FindingService",
    "LearningService",
]
