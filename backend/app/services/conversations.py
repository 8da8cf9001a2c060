"""Read-side queries over channels, groups and their messages."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.errors import ValidationError
from app.core.identity import Principal
from app.models import (
    Channel,
    ChannelTarget,
    ChannelType,
    Group,
    GroupTarget,
    Message,
    MessageTarget,
)
from app.search import MessageSearchFilters, MessageSearchScope, MessageSearchService, contains_pattern
from app.services.lookup import MESSAGE_CONVERSATION_COLUMNS, Conversation, Member, get_message
from app.services.membership import MembershipService, member_group_ids, readable_channel_ids
from app.services.message_store import MESSAGE_LOAD_OPTIONS, MessagePage, MessageStore
from app.services.read_state import ReadStateTracker

settings = get_settings()


@dataclass(slots=True)
class ConversationDetail:
    conversation: Conversation
    members: list[Member]
    unread_count: int
    can_write: bool


@dataclass(frozen=True, slots=True)
class ChannelFilters:
    channel_type: ChannelType | None = None
    department: str | None = None
    project_id: int | None = None
    event_id: int | None = None
    is_archived: bool | None = None


class ConversationQueryService:
    """Listing, detail, paging, thread and search queries for one caller."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._membership = MembershipService(db)
        self._store = MessageStore(db)
        self._read_state = ReadStateTracker(db)

    def list_channels(self, principal: Principal, filters: ChannelFilters | None = None) -> list[Channel]:
        """Public channels of the tenant plus the private ones the caller belongs to."""

        filters = filters or ChannelFilters()
        stmt = select(Channel).where(Channel.id.in_(readable_channel_ids(principal)))
        if filters.channel_type is not None:
            stmt = stmt.where(Channel.channel_type == filters.channel_type)
        if filters.department is not None:
            stmt = stmt.where(Channel.department == filters.department)
        if filters.project_id is not None:
            stmt = stmt.where(Channel.project_id == filters.project_id)
        if filters.event_id is not None:
            stmt = stmt.where(Channel.event_id == filters.event_id)
        if filters.is_archived is not None:
            stmt = stmt.where(Channel.is_archived.is_(filters.is_archived))
        return list(self._db.execute(stmt.order_by(Channel.name, Channel.id)).scalars())

    def get_channel(self, channel_id: int, principal: Principal) -> ConversationDetail:
        return self._detail(ChannelTarget(channel_id), principal)

    def list_groups(self, principal: Principal, *, is_dm: bool | None = None) -> list[Group]:
        stmt = select(Group).where(Group.id.in_(member_group_ids(principal)))
        if is_dm is not None:
            stmt = stmt.where(Group.is_dm.is_(is_dm))
        return list(self._db.execute(stmt.order_by(Group.id)).scalars())

    def get_group(self, group_id: int, principal: Principal) -> ConversationDetail:
        return self._detail(GroupTarget(group_id), principal)

    def history(
        self,
        target: MessageTarget,
        principal: Principal,
        *,
        before_id: int | None = None,
        limit: int,
    ) -> MessagePage:
        self._membership.require_read(target, principal)
        return self._store.list_by_conversation(target, before_id=before_id, limit=limit)

    def list_messages(
        self,
        principal: Principal,
        *,
        channel_id: int | None = None,
        group_id: int | None = None,
        parent_message_id: int | None = None,
        sender_id: int | None = None,
        query: str | None = None,
        before_id: int | None = None,
        limit: int,
        offset: int = 0,
    ) -> list[Message]:
        """Messages of one conversation or one thread, in ascending id order.

        The window is taken from the newest end: ``offset`` skips that many of
        the most recent matches. Thread listings omit deleted replies while
        conversation listings keep them as tombstones.
        """

        given = [value for value in (channel_id, group_id, parent_message_id) if value is not None]
        if len(given) != 1:
            raise ValidationError("Provide exactly one of channel_id, group_id or parent_message_id")

        if parent_message_id is not None:
            parent = get_message(self._db, parent_message_id, principal.tenant_id)
            self._membership.require_read(parent.target, principal)
            stmt = select(Message).where(
                Message.parent_message_id == parent.id,
                Message.is_deleted.is_(False),
            )
        else:
            target: MessageTarget = ChannelTarget(channel_id) if channel_id is not None else GroupTarget(group_id)
            self._membership.require_read(target, principal)
            stmt = select(Message).where(MESSAGE_CONVERSATION_COLUMNS[target.kind] == target.id)

        if sender_id is not None:
            stmt = stmt.where(Message.sender_id == sender_id)
        if query:
            stmt = stmt.where(Message.is_deleted.is_(False), contains_pattern(Message.content, query))
        if before_id is not None:
            stmt = stmt.where(Message.id < before_id)

        stmt = (
            stmt.order_by(Message.id.desc())
            .offset(max(offset, 0))
            .limit(max(limit, 0))
            .options(*MESSAGE_LOAD_OPTIONS)
        )
        rows = list(self._db.execute(stmt).scalars())
        rows.reverse()
        return rows

    def search(
        self,
        principal: Principal,
        query: str,
        *,
        limit: int | None = None,
        filters: MessageSearchFilters | None = None,
    ) -> list[Message]:
        """Live messages matching ``query`` in conversations the caller can read."""

        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")
        effective_limit = min(limit or settings.chat_search_max_results, settings.chat_search_max_results)
        scope = MessageSearchScope(
            channel_ids=readable_channel_ids(principal),
            group_ids=member_group_ids(principal),
        )
        if filters is not None and filters.start_at and filters.end_at and filters.start_at > filters.end_at:
            raise ValidationError("start_at must not be after end_at")
        return MessageSearchService(self._db).search(
            principal.tenant_id,
            query,
            scope=scope,
            limit=effective_limit,
            filters=filters,
            options=MESSAGE_LOAD_OPTIONS,
        )

    def _detail(self, target: MessageTarget, principal: Principal) -> ConversationDetail:
        conversation, member = self._membership.require_read(target, principal)
        return ConversationDetail(
            conversation=conversation,
            members=self._membership.list_members(target),
            unread_count=self._read_state.unread_count(target, principal),
            can_write=self._membership.can_write(conversation, member),
        )
