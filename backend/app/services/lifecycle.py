"""Creation and mutation of channels and groups."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, ValidationError
from app.core.identity import Principal
from app.core.slug import normalize_channel_name
from app.models import (
    Channel,
    ChannelMember,
    ChannelTarget,
    ChannelType,
    Group,
    GroupMember,
    MemberRole,
    User,
)
from app.services.membership import MembershipService

logger = logging.getLogger(__name__)

# Fields a channel update may touch; type and external references are fixed.
CHANNEL_UPDATE_FIELDS = frozenset({"name", "description", "is_read_only", "is_archived"})


@dataclass(slots=True)
class ChannelDraft:
    """Validated input for :meth:`ConversationLifecycle.create_channel`."""

    name: str
    channel_type: ChannelType
    description: str | None = None
    department: str | None = None
    project_id: int | None = None
    event_id: int | None = None
    is_read_only: bool = False


class ConversationLifecycle:
    """Create channels and groups, and apply channel updates."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._membership = MembershipService(db)

    def create_channel(self, draft: ChannelDraft, principal: Principal) -> Channel:
        name = self._checked_name(draft.name, principal.tenant_id)

        channel = Channel(
            tenant_id=principal.tenant_id,
            name=name,
            channel_type=draft.channel_type,
            description=draft.description,
            department=draft.department,
            project_id=draft.project_id,
            event_id=draft.event_id,
            is_read_only=draft.is_read_only,
            is_archived=False,
            created_by=principal.user_id,
        )
        channel.members.append(ChannelMember(user_id=principal.user_id, role=MemberRole.OWNER))
        self._db.add(channel)
        try:
            self._db.flush()
        except IntegrityError as exc:
            self._db.rollback()
            existing_id = self._channel_id_by_name(name, principal.tenant_id)
            raise Conflict("Channel name already exists", existing_id=existing_id) from exc

        logger.info(
            "Channel %s (%s) created in tenant %s by user %s",
            channel.id,
            channel.name,
            principal.tenant_id,
            principal.user_id,
        )
        return channel

    def update_channel(self, channel_id: int, patch: dict[str, object], principal: Principal) -> Channel:
        """Apply a partial update; archival cannot be undone."""

        unknown = set(patch) - CHANNEL_UPDATE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        channel, _ = self._membership.require_manage(ChannelTarget(channel_id), principal)

        archived = patch.get("is_archived")
        if channel.is_archived:
            if archived is not None and not archived:
                raise ValidationError("Archived channels cannot be restored")
            if set(patch) - {"is_archived"}:
                raise Forbidden("Channel is archived")
            return channel
        if archived:
            channel.is_archived = True

        if patch.get("name") is not None:
            name = normalize_channel_name(str(patch["name"]))
            if name != channel.name:
                channel.name = self._checked_name(name, principal.tenant_id)
        if "description" in patch:
            channel.description = patch["description"]
        if patch.get("is_read_only") is not None:
            channel.is_read_only = bool(patch["is_read_only"])

        try:
            self._db.flush()
        except IntegrityError as exc:
            self._db.rollback()
            raise Conflict("Channel name already exists") from exc

        logger.info("Channel %s updated by user %s: %s", channel.id, principal.user_id, sorted(patch))
        return channel

    def create_group(
        self,
        principal: Principal,
        *,
        name: str | None,
        is_dm: bool,
        member_ids: Iterable[int],
        avatar_url: str | None = None,
        reuse_existing_dm: bool = False,
    ) -> Group:
        """Create a group or a direct message.

        A DM holds the creator and exactly one other user. Unless
        ``reuse_existing_dm`` is set, every call creates a new DM even when one
        already exists between the same pair.
        """

        others: list[int] = []
        for user_id in member_ids:
            if user_id != principal.user_id and user_id not in others:
                others.append(user_id)
        self._ensure_tenant_users(others, principal.tenant_id)

        cleaned_name = name.strip() if name else None
        if is_dm:
            if len(others) != 1:
                raise ValidationError("A direct message needs exactly one other member")
            if reuse_existing_dm:
                existing = self._find_dm(principal, others[0])
                if existing is not None:
                    return existing
        elif not cleaned_name:
            raise ValidationError("Group name is required")

        group = Group(
            tenant_id=principal.tenant_id,
            name=cleaned_name,
            is_dm=is_dm,
            avatar_url=avatar_url,
            created_by=principal.user_id,
        )
        group.members.append(GroupMember(user_id=principal.user_id, role=MemberRole.OWNER))
        for user_id in others:
            group.members.append(GroupMember(user_id=user_id, role=MemberRole.MEMBER))
        self._db.add(group)
        self._db.flush()

        logger.info(
            "%s %s created in tenant %s by user %s with %d members",
            "DM" if is_dm else "Group",
            group.id,
            principal.tenant_id,
            principal.user_id,
            len(group.members),
        )
        return group

    # Internal helpers -----------------------------------------------------

    def _checked_name(self, raw_name: str, tenant_id: int) -> str:
        name = normalize_channel_name(raw_name)
        if not name:
            raise ValidationError("Channel name is required")
        existing_id = self._channel_id_by_name(name, tenant_id)
        if existing_id is not None:
            raise Conflict("Channel name already exists", existing_id=existing_id)
        return name

    def _channel_id_by_name(self, name: str, tenant_id: int) -> int | None:
        stmt = select(Channel.id).where(Channel.tenant_id == tenant_id, Channel.name == name)
        return self._db.execute(stmt).scalar_one_or_none()

    def _ensure_tenant_users(self, user_ids: list[int], tenant_id: int) -> None:
        if not user_ids:
            return
        stmt = select(User.id).where(User.id.in_(user_ids), User.tenant_id == tenant_id)
        known = set(self._db.execute(stmt).scalars())
        unknown = [user_id for user_id in user_ids if user_id not in known]
        if unknown:
            raise ValidationError(f"Unknown users: {', '.join(str(uid) for uid in unknown)}")

    def _find_dm(self, principal: Principal, other_id: int) -> Group | None:
        pair = (
            select(GroupMember.group_id)
            .where(GroupMember.user_id.in_((principal.user_id, other_id)))
            .group_by(GroupMember.group_id)
            .having(func.count(GroupMember.id) == 2)
        )
        stmt = (
            select(Group)
            .where(
                Group.tenant_id == principal.tenant_id,
                Group.is_dm.is_(True),
                Group.id.in_(pair),
            )
            .order_by(Group.id)
            .limit(1)
        )
        return self._db.execute(stmt).scalar_one_or_none()
