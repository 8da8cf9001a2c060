"""Append-only per-conversation message log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.config import get_settings
from app.core.errors import Forbidden, InvalidParent, NotFound, ValidationError
from app.core.identity import Principal
from app.models import (
    Mention,
    Message,
    MessageTarget,
    MessageType,
    TenantMessageSequence,
)
from app.services.lookup import MESSAGE_CONVERSATION_COLUMNS, get_member, get_message
from app.services.membership import MembershipService
from app.services.mentions import resolve_mentioned_users

logger = logging.getLogger(__name__)

settings = get_settings()

MESSAGE_LOAD_OPTIONS = (
    selectinload(Message.sender),
    selectinload(Message.reactions),
    selectinload(Message.mentions),
)


@dataclass(frozen=True, slots=True)
class FileReference:
    """Pointer to a blob kept by the storage collaborator."""

    url: str
    name: str
    size: int


@dataclass(slots=True)
class MessagePage:
    """Window of messages in ascending id order."""

    items: list[Message]
    has_more: bool

    @property
    def next_before_id(self) -> int | None:
        if not self.has_more or not self.items:
            return None
        return self.items[0].id


def _message_type(parent_id: int | None, content: str, file: FileReference | None) -> MessageType:
    if parent_id is not None:
        return MessageType.THREAD_REPLY
    if file is not None and not content:
        return MessageType.FILE
    return MessageType.TEXT


def _validate_content(content: str, *, allow_empty: bool) -> str:
    normalized = (content or "").rstrip()
    if not normalized.strip():
        if not allow_empty:
            raise ValidationError("Message content is required")
        normalized = ""
    if len(normalized) > settings.chat_message_max_length:
        raise ValidationError(
            f"Message exceeds maximum length of {settings.chat_message_max_length} characters"
        )
    return normalized


class MessageStore:
    """Send, edit, soft-delete and page through messages."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._membership = MembershipService(db)

    def send(
        self,
        target: MessageTarget,
        principal: Principal,
        content: str,
        *,
        parent_id: int | None = None,
        file: FileReference | None = None,
        mentioned_user_ids: Iterable[int] = (),
    ) -> Message:
        """Accept a new message and assign it the next id for the tenant."""

        conversation, _ = self._membership.require_write(target, principal)
        normalized = _validate_content(content, allow_empty=file is not None)

        parent: Message | None = None
        if parent_id is not None:
            parent = self._db.get(Message, parent_id)
            if parent is None or parent.tenant_id != principal.tenant_id:
                raise InvalidParent("Parent message not found")
            if parent.target != target:
                raise InvalidParent("Parent message belongs to another conversation")
            if parent.is_deleted:
                raise InvalidParent("Parent message was deleted")

        mention_ids = resolve_mentioned_users(self._db, principal, mentioned_user_ids)

        sequence = self._lock_sequence(principal.tenant_id)
        column = MESSAGE_CONVERSATION_COLUMNS[target.kind]
        message = Message(
            tenant_id=principal.tenant_id,
            sender_id=principal.user_id,
            parent_message_id=parent_id,
            message_type=_message_type(parent_id, normalized, file),
            content=normalized,
            file_url=file.url if file else None,
            file_name=file.name if file else None,
            file_size=file.size if file else None,
            **{column.key: conversation.id},
        )
        self._db.add(message)
        self._db.flush()

        if message.id <= sequence.last_message_id:
            raise RuntimeError(
                f"Message id {message.id} does not advance tenant sequence {sequence.last_message_id}"
            )
        sequence.last_message_id = message.id

        if parent is not None:
            self._db.execute(
                update(Message)
                .where(Message.id == parent.id)
                .values(thread_reply_count=Message.thread_reply_count + 1)
                .execution_options(synchronize_session=False)
            )
            self._db.expire(parent, ["thread_reply_count"])

        for user_id in mention_ids:
            message.mentions.append(Mention(mentioned_user_id=user_id))
        self._db.flush()

        logger.info(
            "Message %s sent to %s %s by user %s",
            message.id,
            target.kind.value,
            target.id,
            principal.user_id,
        )
        return message

    def edit(self, message_id: int, principal: Principal, content: str) -> Message:
        message = get_message(self._db, message_id, principal.tenant_id)
        if message.is_deleted:
            raise NotFound("Message not found")
        if message.sender_id != principal.user_id:
            raise Forbidden("Only the sender can edit this message")
        self._membership.require_write(message.target, principal)

        message.content = _validate_content(content, allow_empty=message.file_url is not None)
        message.is_edited = True
        message.edited_at = datetime.now(timezone.utc)
        self._db.flush()
        return message

    def delete(self, message_id: int, principal: Principal) -> Message:
        """Soft-delete; reactions, mentions and thread linkage stay intact."""

        message = get_message(self._db, message_id, principal.tenant_id)
        if message.is_deleted:
            raise NotFound("Message not found")
        if message.sender_id != principal.user_id:
            member = get_member(self._db, message.target, principal.user_id)
            if not self._membership.can_manage(member, principal):
                raise Forbidden("Only the sender or a moderator can delete this message")

        message.is_deleted = True
        message.deleted_at = datetime.now(timezone.utc)
        self._db.flush()
        logger.info("Message %s deleted by user %s", message.id, principal.user_id)
        return message

    def get(self, message_id: int, principal: Principal) -> Message:
        """Return a message of the tenant the caller is allowed to read."""

        message = get_message(self._db, message_id, principal.tenant_id)
        self._membership.require_read(message.target, principal)
        return message

    def list_by_conversation(
        self,
        target: MessageTarget,
        *,
        before_id: int | None = None,
        limit: int,
    ) -> MessagePage:
        """Return the newest ``limit`` messages older than ``before_id``."""

        column = MESSAGE_CONVERSATION_COLUMNS[target.kind]
        stmt = select(Message).where(column == target.id)
        if before_id is not None:
            stmt = stmt.where(Message.id < before_id)
        stmt = stmt.order_by(Message.id.desc()).limit(max(limit, 0)).options(*MESSAGE_LOAD_OPTIONS)
        rows = list(self._db.execute(stmt).scalars())
        rows.reverse()
        return MessagePage(items=rows, has_more=limit > 0 and len(rows) == limit)

    def list_replies(self, parent: Message, *, include_deleted: bool = False) -> list[Message]:
        stmt = select(Message).where(Message.parent_message_id == parent.id)
        if not include_deleted:
            stmt = stmt.where(Message.is_deleted.is_(False))
        stmt = stmt.order_by(Message.id.asc()).options(*MESSAGE_LOAD_OPTIONS)
        return list(self._db.execute(stmt).scalars())

    # Internal helpers -----------------------------------------------------

    def _lock_sequence(self, tenant_id: int) -> TenantMessageSequence:
        """Lock the tenant's sequence row so id assignment is serialized."""

        stmt = (
            select(TenantMessageSequence)
            .where(TenantMessageSequence.tenant_id == tenant_id)
            .with_for_update()
        )
        sequence = self._db.execute(stmt).scalar_one_or_none()
        if sequence is not None:
            return sequence

        sequence = TenantMessageSequence(tenant_id=tenant_id, last_message_id=0)
        self._db.add(sequence)
        try:
            self._db.flush()
        except IntegrityError:
            # Another sender created the row first; wait on its lock instead.
            self._db.rollback()
            sequence = self._db.execute(stmt).scalar_one()
        return sequence
