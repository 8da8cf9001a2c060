"""Per-member read pointers and unread aggregation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.core.identity import Principal
from app.models import (
    Channel,
    ChannelMember,
    ConversationKind,
    Group,
    GroupMember,
    Mention,
    Message,
    MessageTarget,
)
from app.services.lookup import MEMBER_MODELS, MESSAGE_CONVERSATION_COLUMNS, Member, get_member
from app.services.membership import MembershipService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnreadEntry:
    """Unread total for one conversation the user belongs to."""

    kind: ConversationKind
    conversation_id: int
    count: int

    @property
    def channel_id(self) -> int | None:
        return self.conversation_id if self.kind is ConversationKind.CHANNEL else None

    @property
    def group_id(self) -> int | None:
        return self.conversation_id if self.kind is ConversationKind.GROUP else None


@dataclass(frozen=True, slots=True)
class ReadMark:
    """Outcome of a mark-read: the member row and how many mentions it cleared."""

    member: Member
    mentions_cleared: int


def _unread_conditions(user_id: int, pointer):
    return (
        Message.is_deleted.is_(False),
        Message.id > func.coalesce(pointer, 0),
        or_(Message.sender_id.is_(None), Message.sender_id != user_id),
    )


class ReadStateTracker:
    """Advance read pointers monotonically and count what is left unread."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._membership = MembershipService(db)

    def mark_read(self, target: MessageTarget, principal: Principal, message_id: int) -> ReadMark:
        """Move the caller's pointer to ``message_id`` unless it is already past it.

        The update is conditional, so concurrent calls converge on the largest
        id regardless of arrival order. Mentions of the caller in the same
        conversation up to that id are marked read as well.
        """

        _, member = self._membership.require_member(target, principal)

        message = self._db.get(Message, message_id)
        if message is None or message.tenant_id != principal.tenant_id:
            raise NotFound("Message not found")
        if message.target != target:
            raise ValidationError("Message belongs to another conversation")

        now = datetime.now(timezone.utc)
        model = MEMBER_MODELS[target.kind]
        result = self._db.execute(
            update(model)
            .where(
                model.id == member.id,
                or_(
                    model.last_read_message_id.is_(None),
                    model.last_read_message_id < message_id,
                ),
            )
            .values(last_read_message_id=message_id, last_read_at=now)
            .execution_options(synchronize_session=False)
        )

        column = MESSAGE_CONVERSATION_COLUMNS[target.kind]
        conversation_messages = select(Message.id).where(column == target.id, Message.id <= message_id)
        cleared = self._db.execute(
            update(Mention)
            .where(
                Mention.mentioned_user_id == principal.user_id,
                Mention.is_read.is_(False),
                Mention.message_id.in_(conversation_messages),
            )
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session=False)
        )

        self._db.expire(member)
        if result.rowcount:
            logger.debug(
                "User %s read %s %s up to message %s",
                principal.user_id,
                target.kind.value,
                target.id,
                message_id,
            )
        return ReadMark(member=member, mentions_cleared=cleared.rowcount or 0)

    def unread_count(self, target: MessageTarget, principal: Principal) -> int:
        """Count live messages past the pointer; non-members have nothing unread."""

        member = get_member(self._db, target, principal.user_id)
        if member is None:
            return 0
        column = MESSAGE_CONVERSATION_COLUMNS[target.kind]
        stmt = select(func.count(Message.id)).where(
            column == target.id,
            *_unread_conditions(principal.user_id, member.last_read_message_id),
        )
        return int(self._db.execute(stmt).scalar_one())

    def unread_summary(self, principal: Principal) -> list[UnreadEntry]:
        """Unread totals for every membership, including conversations at zero."""

        channel_stmt = (
            select(ChannelMember.channel_id, func.count(Message.id))
            .join(Channel, Channel.id == ChannelMember.channel_id)
            .outerjoin(
                Message,
                and_(
                    Message.channel_id == ChannelMember.channel_id,
                    *_unread_conditions(principal.user_id, ChannelMember.last_read_message_id),
                ),
            )
            .where(ChannelMember.user_id == principal.user_id, Channel.tenant_id == principal.tenant_id)
            .group_by(ChannelMember.channel_id)
            .order_by(ChannelMember.channel_id)
        )
        group_stmt = (
            select(GroupMember.group_id, func.count(Message.id))
            .join(Group, Group.id == GroupMember.group_id)
            .outerjoin(
                Message,
                and_(
                    Message.group_id == GroupMember.group_id,
                    *_unread_conditions(principal.user_id, GroupMember.last_read_message_id),
                ),
            )
            .where(GroupMember.user_id == principal.user_id, Group.tenant_id == principal.tenant_id)
            .group_by(GroupMember.group_id)
            .order_by(GroupMember.group_id)
        )

        entries = [
            UnreadEntry(ConversationKind.CHANNEL, channel_id, int(count))
            for channel_id, count in self._db.execute(channel_stmt)
        ]
        entries.extend(
            UnreadEntry(ConversationKind.GROUP, group_id, int(count))
            for group_id, count in self._db.execute(group_stmt)
        )
        return entries
