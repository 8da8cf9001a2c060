"""Mention events handed to the notification dispatch collaborator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Protocol, Sequence

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.core.identity import Principal
from app.models import Mention, Message, User
from app.services.membership import member_group_ids, readable_channel_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MentionEvent:
    """A user was named in a newly accepted message."""

    tenant_id: int
    message_id: int
    sender_id: int
    mentioned_user_id: int
    conversation_kind: str
    conversation_id: int


class MentionDispatcher(Protocol):
    """Collaborator that turns mention events into live notifications."""

    def dispatch(self, events: Sequence[MentionEvent]) -> None:
        """Deliver the events; failures are the collaborator's concern."""


class LoggingMentionDispatcher:
    """Default dispatcher used when no delivery channel is wired in."""

    def dispatch(self, events: Sequence[MentionEvent]) -> None:
        for event in events:
            logger.info(
                "Mention of user %s in %s %s (message %s)",
                event.mentioned_user_id,
                event.conversation_kind,
                event.conversation_id,
                event.message_id,
            )


@lru_cache(maxsize=1)
def get_mention_dispatcher() -> MentionDispatcher:
    return LoggingMentionDispatcher()


def resolve_mentioned_users(
    db: Session, principal: Principal, user_ids: Iterable[int]
) -> list[int]:
    """Validate and de-duplicate mention targets, keeping first-seen order."""

    unique_ids: list[int] = []
    for user_id in user_ids:
        if user_id == principal.user_id or user_id in unique_ids:
            continue
        unique_ids.append(user_id)
    if not unique_ids:
        return []

    stmt = select(User.id).where(User.id.in_(unique_ids), User.tenant_id == principal.tenant_id)
    known = set(db.execute(stmt).scalars())
    unknown = [user_id for user_id in unique_ids if user_id not in known]
    if unknown:
        raise ValidationError(f"Unknown mentioned users: {', '.join(str(uid) for uid in unknown)}")
    return unique_ids


def build_mention_events(message: Message) -> list[MentionEvent]:
    target = message.target
    return [
        MentionEvent(
            tenant_id=message.tenant_id,
            message_id=message.id,
            sender_id=message.sender_id,
            mentioned_user_id=mention.mentioned_user_id,
            conversation_kind=target.kind.value,
            conversation_id=target.id,
        )
        for mention in message.mentions
    ]


def list_mentions(db: Session, principal: Principal, *, unread_only: bool = False, limit: int = 50) -> list[Mention]:
    """Mentions of the caller in conversations they can still read."""

    stmt = (
        select(Mention)
        .join(Message, Message.id == Mention.message_id)
        .where(
            Mention.mentioned_user_id == principal.user_id,
            Message.tenant_id == principal.tenant_id,
            Message.is_deleted.is_(False),
            or_(
                Message.channel_id.in_(readable_channel_ids(principal)),
                Message.group_id.in_(member_group_ids(principal)),
            ),
        )
    )
    if unread_only:
        stmt = stmt.where(Mention.is_read.is_(False))
    stmt = stmt.order_by(Mention.message_id.desc()).limit(limit)
    return list(db.execute(stmt).scalars())
