"""
Database services for context-keeper.

Services operate inside the caller's session and never commit; the caller's
``Store.session_scope()`` decides the transaction boundary.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import (
    ConversationModel,
    LearningModel,
    MessageModel,
    SanitizationFindingModel,
    generate_id,
    utc_now,
)


@dataclass
class TranscriptMessage:
    """One message of a conversation transcript."""

    role: str
    content: str
    sequence: int


@dataclass
class Transcript:
    """Ordered, already-sanitized view of a conversation."""

    conversation_id: str
    messages: List[TranscriptMessage] = field(default_factory=list)

    def responder_messages(self) -> List[TranscriptMessage]:
        return [m for m in self.messages if m.role == "assistant"]


class ConversationService:
    """Service for conversations and their messages."""

    def __init__(self, db: Session):
        self.db = db

    def get_conversation(self, conversation_id: str) -> Optional[ConversationModel]:
        """Get a conversation by ID."""
        return self.db.get(ConversationModel, conversation_id)

    def get_by_correlation_key(self, correlation_key: str) -> Optional[ConversationModel]:
        """Get a conversation by its external correlation key."""
        return self.db.execute(
            select(ConversationModel).where(ConversationModel.correlation_key == correlation_key)
        ).scalar_one_or_none()

    def get_or_create_conversation(self, correlation_key: Optional[str] = None) -> ConversationModel:
        """Return the conversation for ``correlation_key``, creating it on first use.

        Without a key a fresh, unkeyed conversation is always created.
        """
        if correlation_key:
            existing = self.get_by_correlation_key(correlation_key)
            if existing:
                return existing

        now = utc_now()
        conversation = ConversationModel(
            id=generate_id(),
            correlation_key=correlation_key or None,
            created_at=now,
            updated_at=now,
        )

        if not correlation_key:
            self.db.add(conversation)
            self.db.flush()
            return conversation

        # A concurrent capture may insert the same key between our read and write
        try:
            with self.db.begin_nested():
                self.db.add(conversation)
        except IntegrityError:
            existing = self.get_by_correlation_key(correlation_key)
            if existing is None:
                raise
            return existing
        return conversation

    def append_message(self, conversation_id: str, role: str, content: str) -> MessageModel:
        """Append a message with the next sequence number.

        The conversation row is locked first (``FOR UPDATE``; SQLite already
        holds the write lock from BEGIN IMMEDIATE), so reading the current
        maximum and inserting happen as one serialized unit.
        """
        conversation = self.db.execute(
            select(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .with_for_update()
        ).scalar_one()

        current = self.db.execute(
            select(func.max(MessageModel.sequence)).where(
                MessageModel.conversation_id == conversation_id
            )
        ).scalar()

        now = utc_now()
        message = MessageModel(
            id=generate_id(),
            conversation_id=conversation_id,
            role=role,
            content=content,
            sequence=(current or 0) + 1,
            created_at=now,
        )
        self.db.add(message)
        conversation.updated_at = now
        self.db.flush()
        return message

    def get_message(self, message_id: str) -> Optional[MessageModel]:
        """Get a message by ID."""
        return self.db.get(MessageModel, message_id)

    def get_messages(self, conversation_id: str) -> List[MessageModel]:
        """Get a conversation's messages in sequence order."""
        return list(
            self.db.execute(
                select(MessageModel)
                .where(MessageModel.conversation_id == conversation_id)
                .order_by(MessageModel.sequence.asc())
            ).scalars()
        )

    def get_transcript(self, conversation_id: str) -> Transcript:
        """Load the ordered transcript; empty if the conversation is gone."""
        return Transcript(
            conversation_id=conversation_id,
            messages=[
                TranscriptMessage(role=m.role, content=m.content, sequence=m.sequence)
                for m in self.get_messages(conversation_id)
            ],
        )


class FindingService:
    """Service for deep-validation findings."""

    def __init__(self, db: Session):
        self.db = db

    def record_finding(self, message_id: str, issues: List[Any]) -> SanitizationFindingModel:
        """Record residual issues reported for a message."""
        finding = SanitizationFindingModel(
            id=generate_id(),
            message_id=message_id,
            issues=list(issues),
            created_at=utc_now(),
        )
        self.db.add(finding)
        self.db.flush()
        return finding

    def get_findings(
        self, message_id: Optional[str] = None, limit: int = 50
    ) -> List[SanitizationFindingModel]:
        """Get findings, newest first."""
        query = select(SanitizationFindingModel)
        if message_id:
            query = query.where(SanitizationFindingModel.message_id == message_id)
        return list(
            self.db.execute(
                query.order_by(desc(SanitizationFindingModel.created_at)).limit(limit)
            ).scalars()
        )


class LearningService:
    """Service for extracted learnings."""

    def __init__(self, db: Session):
        self.db = db

    def save_learning(
        self, conversation_id: str, category: str, title: str, content: str
    ) -> LearningModel:
        """Persist a learning."""
        learning = LearningModel(
            id=generate_id(),
            conversation_id=conversation_id,
            category=category,
            title=title,
            content=content,
            created_at=utc_now(),
        )
        self.db.add(learning)
        self.db.flush()
        return learning

    def get_learnings(self, conversation_id: Optional[str] = None) -> List[LearningModel]:
        """Get learnings, optionally for one conversation."""
        query = select(LearningModel)
        if conversation_id:
            query = query.where(LearningModel.conversation_id == conversation_id)
        return list(self.db.execute(query.order_by(LearningModel.created_at.asc())).scalars())
