"""Membership rows and the access checks every other service relies on."""

from __future__ import annotations

import logging

from sqlalchemy import Select, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.core.identity import Principal
from app.models import (
    MANAGER_ROLES,
    Channel,
    ChannelMember,
    ChannelType,
    Group,
    GroupMember,
    MemberRole,
    MessageTarget,
)
from app.services.lookup import (
    MEMBER_CONVERSATION_COLUMNS,
    MEMBER_MODELS,
    Conversation,
    Member,
    get_conversation,
    get_member,
    get_tenant_user,
)

logger = logging.getLogger(__name__)


def _is_public_channel(conversation: Conversation) -> bool:
    return isinstance(conversation, Channel) and conversation.channel_type == ChannelType.PUBLIC


def readable_channel_ids(principal: Principal) -> Select:
    """Subquery of channel ids the principal may read."""

    member_channels = select(ChannelMember.channel_id).where(
        ChannelMember.user_id == principal.user_id
    )
    return select(Channel.id).where(
        Channel.tenant_id == principal.tenant_id,
        or_(Channel.channel_type == ChannelType.PUBLIC, Channel.id.in_(member_channels)),
    )


def member_group_ids(principal: Principal) -> Select:
    """Subquery of group ids the principal belongs to."""

    return (
        select(GroupMember.group_id)
        .join(Group, Group.id == GroupMember.group_id)
        .where(GroupMember.user_id == principal.user_id, Group.tenant_id == principal.tenant_id)
    )


class MembershipService:
    """Answer "can user U read/write conversation C" and manage member rows."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # Queries ---------------------------------------------------------------

    def is_member(self, target: MessageTarget, user_id: int) -> bool:
        return get_member(self._db, target, user_id) is not None

    def can_read(self, conversation: Conversation, member: Member | None) -> bool:
        return member is not None or _is_public_channel(conversation)

    def can_write(self, conversation: Conversation, member: Member | None) -> bool:
        return self._write_denial(conversation, member) is None

    def can_manage(self, member: Member | None, principal: Principal) -> bool:
        if principal.is_tenant_admin:
            return True
        return member is not None and member.role in MANAGER_ROLES

    # Guards ----------------------------------------------------------------

    def require_read(
        self, target: MessageTarget, principal: Principal
    ) -> tuple[Conversation, Member | None]:
        conversation = get_conversation(self._db, target, principal.tenant_id)
        member = get_member(self._db, target, principal.user_id)
        if not self.can_read(conversation, member):
            raise Forbidden("Not a member of this conversation")
        return conversation, member

    def require_member(
        self, target: MessageTarget, principal: Principal
    ) -> tuple[Conversation, Member]:
        conversation = get_conversation(self._db, target, principal.tenant_id)
        member = get_member(self._db, target, principal.user_id)
        if member is None:
            raise Forbidden("Not a member of this conversation")
        return conversation, member

    def require_write(
        self, target: MessageTarget, principal: Principal
    ) -> tuple[Conversation, Member]:
        conversation = get_conversation(self._db, target, principal.tenant_id)
        member = get_member(self._db, target, principal.user_id)
        denial = self._write_denial(conversation, member)
        if denial is not None:
            raise Forbidden(denial)
        assert member is not None
        return conversation, member

    def require_manage(
        self, target: MessageTarget, principal: Principal
    ) -> tuple[Conversation, Member | None]:
        conversation = get_conversation(self._db, target, principal.tenant_id)
        member = get_member(self._db, target, principal.user_id)
        if not self.can_manage(member, principal):
            raise Forbidden("Insufficient permissions")
        return conversation, member

    # Mutations -------------------------------------------------------------

    def add_member(
        self,
        target: MessageTarget,
        user_id: int,
        principal: Principal,
        role: MemberRole = MemberRole.MEMBER,
    ) -> Member:
        conversation = get_conversation(self._db, target, principal.tenant_id)
        self._ensure_mutable_membership(conversation)
        if isinstance(conversation, Channel) and conversation.is_archived:
            raise Forbidden("Channel is archived")

        actor = get_member(self._db, target, principal.user_id)
        self_join = (
            user_id == principal.user_id
            and role == MemberRole.MEMBER
            and _is_public_channel(conversation)
        )
        if not self_join and not self.can_manage(actor, principal):
            raise Forbidden("Insufficient permissions")
        if role == MemberRole.OWNER and not (
            principal.is_tenant_admin or (actor is not None and actor.role == MemberRole.OWNER)
        ):
            raise Forbidden("Only owners can grant ownership")

        get_tenant_user(self._db, user_id, principal.tenant_id)
        existing = get_member(self._db, target, user_id)
        if existing is not None:
            raise Conflict("User is already a member", existing_id=existing.id)

        member = self._new_member(target, user_id, role)
        self._db.add(member)
        try:
            self._db.flush()
        except IntegrityError as exc:
            self._db.rollback()
            raise Conflict("User is already a member") from exc

        logger.info(
            "User %s added to %s %s as %s by %s",
            user_id,
            target.kind.value,
            target.id,
            role.value,
            principal.user_id,
        )
        return member

    def remove_member(self, target: MessageTarget, user_id: int, principal: Principal) -> None:
        conversation = get_conversation(self._db, target, principal.tenant_id)
        self._ensure_mutable_membership(conversation)

        if user_id != principal.user_id:
            actor = get_member(self._db, target, principal.user_id)
            if not self.can_manage(actor, principal):
                raise Forbidden("Insufficient permissions")

        member = get_member(self._db, target, user_id)
        if member is None:
            raise NotFound("User is not a member")

        self._db.delete(member)
        self._db.flush()
        logger.info(
            "User %s removed from %s %s by %s",
            user_id,
            target.kind.value,
            target.id,
            principal.user_id,
        )

    def list_members(self, target: MessageTarget) -> list[Member]:
        model = MEMBER_MODELS[target.kind]
        column = MEMBER_CONVERSATION_COLUMNS[target.kind]
        stmt = select(model).where(column == target.id).order_by(model.id)
        return list(self._db.execute(stmt).scalars())

    # Internal helpers -----------------------------------------------------

    def _write_denial(self, conversation: Conversation, member: Member | None) -> str | None:
        if member is None:
            return "Not a member of this conversation"
        if isinstance(conversation, Channel):
            if conversation.is_archived:
                return "Channel is archived"
            if conversation.is_read_only and member.role not in MANAGER_ROLES:
                return "Channel is read-only"
        return None

    @staticmethod
    def _ensure_mutable_membership(conversation: Conversation) -> None:
        if isinstance(conversation, Group) and conversation.is_dm:
            raise ValidationError("Direct message membership cannot be changed")

    @staticmethod
    def _new_member(target: MessageTarget, user_id: int, role: MemberRole) -> Member:
        model = MEMBER_MODELS[target.kind]
        column = MEMBER_CONVERSATION_COLUMNS[target.kind]
        return model(**{column.key: target.id, "user_id": user_id, "role": role})
