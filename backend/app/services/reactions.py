"""Reaction rows and their emoji-grouped view."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, NotFound
from app.core.identity import Principal
from app.models import Channel, Message, Reaction
from app.services.lookup import get_message
from app.services.membership import MembershipService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReactionGroup:
    """All live reactions on a message that share one emoji."""

    emoji: str
    user_ids: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.user_ids)


def group_reactions(reactions: Iterable[Reaction]) -> dict[str, ReactionGroup]:
    """Group rows by emoji; groups keep the order of their first reaction."""

    groups: dict[str, ReactionGroup] = {}
    for reaction in sorted(reactions, key=lambda item: item.id):
        group = groups.get(reaction.emoji)
        if group is None:
            group = groups[reaction.emoji] = ReactionGroup(emoji=reaction.emoji)
        group.user_ids.append(reaction.user_id)
    return groups


class ReactionAggregator:
    """Idempotent add/remove primitives plus the composed toggle."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._membership = MembershipService(db)

    def add(self, message_id: int, emoji: str, principal: Principal) -> Reaction:
        """Insert the reaction; an existing identical row is returned as-is."""

        message = self._reactable_message(message_id, principal)
        existing = self._find(message.id, principal.user_id, emoji)
        if existing is not None:
            return existing

        reaction = Reaction(message_id=message.id, user_id=principal.user_id, emoji=emoji)
        self._db.add(reaction)
        try:
            self._db.flush()
        except IntegrityError:
            # A concurrent add won the unique key; converge on its row.
            self._db.rollback()
            return self._find(message_id, principal.user_id, emoji)
        return reaction

    def remove(self, message_id: int, emoji: str, principal: Principal) -> bool:
        """Delete the caller's reaction if present; returns whether a row was removed."""

        message = self._reactable_message(message_id, principal)
        existing = self._find(message.id, principal.user_id, emoji)
        if existing is None:
            return False
        self._db.delete(existing)
        self._db.flush()
        return True

    def remove_by_id(self, reaction_id: int, principal: Principal) -> Reaction | None:
        """Delete a reaction by id; unknown ids are a no-op."""

        reaction = self._db.get(Reaction, reaction_id)
        if reaction is None or reaction.message.tenant_id != principal.tenant_id:
            return None
        if reaction.user_id != principal.user_id:
            raise Forbidden("Cannot remove another user's reaction")
        self._db.delete(reaction)
        self._db.flush()
        return reaction

    def toggle(self, message_id: int, emoji: str, principal: Principal) -> bool:
        """Add the reaction when absent, remove it when present.

        Composed from a read and one of the primitives, so two concurrent
        toggles may both take the same branch; both branches are idempotent.
        Returns ``True`` when the reaction ends up present.
        """

        groups = self.grouped_view(message_id)
        group = groups.get(emoji)
        if group is not None and principal.user_id in group.user_ids:
            self.remove(message_id, emoji, principal)
            return False
        self.add(message_id, emoji, principal)
        return True

    def grouped_view(self, message_id: int) -> dict[str, ReactionGroup]:
        stmt = select(Reaction).where(Reaction.message_id == message_id).order_by(Reaction.id)
        return group_reactions(self._db.execute(stmt).scalars())

    # Internal helpers -----------------------------------------------------

    def _find(self, message_id: int, user_id: int, emoji: str) -> Reaction | None:
        stmt = select(Reaction).where(
            Reaction.message_id == message_id,
            Reaction.user_id == user_id,
            Reaction.emoji == emoji,
        )
        return self._db.execute(stmt).scalar_one_or_none()

    def _reactable_message(self, message_id: int, principal: Principal) -> Message:
        message = get_message(self._db, message_id, principal.tenant_id)
        if message.is_deleted:
            raise NotFound("Message not found")
        conversation, _ = self._membership.require_member(message.target, principal)
        if isinstance(conversation, Channel) and conversation.is_archived:
            raise Forbidden("Channel is archived")
        return message
