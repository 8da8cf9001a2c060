"""Database-backed search helpers for conversation messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Session

from app.models import Message


def contains_pattern(column, text: str):
    """Case-insensitive substring match with LIKE wildcards taken literally."""

    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


@dataclass(frozen=True)
class MessageSearchFilters:
    """Optional filters that can be applied to message search queries."""

    sender_id: int | None = None
    has_file: bool | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    parent_message_id: int | None = None


@dataclass(frozen=True)
class MessageSearchScope:
    """Conversations a search may look into, as id subqueries or literal ids."""

    channel_ids: Select | Sequence[int] = ()
    group_ids: Select | Sequence[int] = ()


class MessageSearchService:
    """Perform text search on live messages using the configured database backend."""

    def __init__(self, session: Session):
        self._session = session
        self._dialect: Dialect | None = session.get_bind().dialect if session.get_bind() else None

    def search(
        self,
        tenant_id: int,
        query: str,
        *,
        scope: MessageSearchScope,
        limit: int,
        filters: MessageSearchFilters | None = None,
        options: Sequence = (),
    ) -> list[Message]:
        """Search messages inside ``scope``; deleted messages never match.

        On PostgreSQL results are ordered by trigram similarity, elsewhere
        newest first.
        """

        if filters is None:
            filters = MessageSearchFilters()

        stmt = select(Message).where(
            Message.tenant_id == tenant_id,
            Message.is_deleted.is_(False),
            or_(Message.channel_id.in_(scope.channel_ids), Message.group_id.in_(scope.group_ids)),
        )

        conditions: list = []
        if query:
            conditions.append(contains_pattern(Message.content, query))
        if filters.sender_id is not None:
            conditions.append(Message.sender_id == filters.sender_id)
        if filters.has_file is not None:
            if filters.has_file:
                conditions.append(Message.file_url.is_not(None))
            else:
                conditions.append(Message.file_url.is_(None))
        if filters.start_at is not None:
            conditions.append(Message.created_at >= filters.start_at)
        if filters.end_at is not None:
            conditions.append(Message.created_at <= filters.end_at)
        if filters.parent_message_id is not None:
            conditions.append(Message.parent_message_id == filters.parent_message_id)

        if conditions:
            stmt = stmt.where(and_(*conditions))

        if options:
            stmt = stmt.options(*options)

        similarity = self._similarity_expression(query) if query else None
        if similarity is not None:
            stmt = stmt.order_by(similarity.desc(), Message.id.desc())
        else:
            stmt = stmt.order_by(Message.id.desc())

        return list(self._session.execute(stmt.limit(limit)).scalars())

    # Internal helpers -----------------------------------------------------

    def _similarity_expression(self, query: str):  # pragma: no cover - dialect specific
        if not self._dialect or self._dialect.name != "postgresql":
            return None
        return func.similarity(Message.content, query)
