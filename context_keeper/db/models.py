"""
SQLAlchemy models for context-keeper.

Message content is sanitized at the ORM boundary: whatever path builds a
MessageModel, the value that reaches the database has been through the fast
sanitizer.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column, String, DateTime, Text, JSON, Enum,
    Integer, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates
from ulid import ULID

from ..sanitization.fast import sanitize
from .base import Base

MESSAGE_ROLES = ("user", "assistant")
JOB_STATUSES = ("queued", "in_progress", "completed", "failed", "dead_letter")
LEARNING_CATEGORIES = ("technical", "workflow", "insight")


def generate_id() -> str:
    """Generate a lexicographically sortable ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ConversationModel(Base):
    """SQLAlchemy model for conversations."""

    __tablename__ = "conversations"

    id = Column(String(26), primary_key=True, default=generate_id)
    correlation_key = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    messages = relationship(
        "MessageModel",
        back_populates="conversation",
        order_by="MessageModel.sequence",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "correlation_key": self.correlation_key,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class MessageModel(Base):
    """SQLAlchemy model for messages. Stores SANITIZED content only."""

    __tablename__ = "messages"

    id = Column(String(26), primary_key=True, default=generate_id)
    conversation_id = Column(
        String(26),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role = Column(
        Enum(*MESSAGE_ROLES, name="message_role", create_constraint=True),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    conversation = relationship("ConversationModel", back_populates="messages")

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_messages_conversation_sequence"),
        Index("ix_messages_conversation_sequence", "conversation_id", "sequence"),
    )

    @validates("content")
    def _sanitize_content(self, key: str, value: str) -> str:
        return sanitize(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "sequence": self.sequence,
            "created_at": _iso(self.created_at),
        }


class JobModel(Base):
    """SQLAlchemy model for the shared job queue."""

    __tablename__ = "job_queue"

    id = Column(String(26), primary_key=True, default=generate_id)
    type = Column(String(100), nullable=False)
    payload = Column(Text, nullable=False)
    status = Column(
        Enum(*JOB_STATUSES, name="job_status", create_constraint=True),
        nullable=False,
        default="queued",
    )
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_job_queue_status_type_created", "status", "type", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "error": self.error,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class SanitizationFindingModel(Base):
    """Residual-risk report from the deep validator for one message."""

    __tablename__ = "sanitization_log"

    id = Column(String(26), primary_key=True, default=generate_id)
    message_id = Column(
        String(26),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    issues = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_sanitization_log_message_created", "message_id", "created_at"),
    )

    @validates("issues")
    def _sanitize_issues(self, key: str, value: List[Any]) -> List[Any]:
        # Descriptors come from an external model and may quote what it saw
        return [sanitize(item) if isinstance(item, str) else item for item in (value or [])]

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "message_id": self.message_id,
            "issues": self.issues,
            "created_at": _iso(self.created_at),
        }


class LearningModel(Base):
    """Derived learning extracted from a conversation."""

    __tablename__ = "learnings"

    id = Column(String(26), primary_key=True, default=generate_id)
    conversation_id = Column(
        String(26),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category = Column(
        Enum(*LEARNING_CATEGORIES, name="learning_category", create_constraint=True),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    @validates("title", "content")
    def _sanitize_text(self, key: str, value: str) -> str:
        return sanitize(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "category": self.category,
            "title": self.title,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }
