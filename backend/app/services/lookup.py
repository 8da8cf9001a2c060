"""Tenant-scoped lookups shared by the conversation services."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import InstrumentedAttribute, Session

from app.core.errors import NotFound
from app.models import (
    Channel,
    ChannelMember,
    ConversationKind,
    Group,
    GroupMember,
    Message,
    MessageTarget,
    User,
)

Conversation = Channel | Group
Member = ChannelMember | GroupMember

CONVERSATION_MODELS: dict[ConversationKind, type[Conversation]] = {
    ConversationKind.CHANNEL: Channel,
    ConversationKind.GROUP: Group,
}

MEMBER_MODELS: dict[ConversationKind, type[Member]] = {
    ConversationKind.CHANNEL: ChannelMember,
    ConversationKind.GROUP: GroupMember,
}

MEMBER_CONVERSATION_COLUMNS: dict[ConversationKind, InstrumentedAttribute[int]] = {
    ConversationKind.CHANNEL: ChannelMember.channel_id,
    ConversationKind.GROUP: GroupMember.group_id,
}

MESSAGE_CONVERSATION_COLUMNS: dict[ConversationKind, InstrumentedAttribute[int | None]] = {
    ConversationKind.CHANNEL: Message.channel_id,
    ConversationKind.GROUP: Message.group_id,
}

_NOT_FOUND_DETAIL: dict[ConversationKind, str] = {
    ConversationKind.CHANNEL: "Channel not found",
    ConversationKind.GROUP: "Group not found",
}


def get_conversation(db: Session, target: MessageTarget, tenant_id: int) -> Conversation:
    model = CONVERSATION_MODELS[target.kind]
    conversation = db.get(model, target.id)
    if conversation is None or conversation.tenant_id != tenant_id:
        raise NotFound(_NOT_FOUND_DETAIL[target.kind])
    return conversation


def get_member(db: Session, target: MessageTarget, user_id: int) -> Member | None:
    model = MEMBER_MODELS[target.kind]
    column = MEMBER_CONVERSATION_COLUMNS[target.kind]
    stmt = select(model).where(column == target.id, model.user_id == user_id)
    return db.execute(stmt).scalar_one_or_none()


def get_message(db: Session, message_id: int, tenant_id: int) -> Message:
    message = db.get(Message, message_id)
    if message is None or message.tenant_id != tenant_id:
        raise NotFound("Message not found")
    return message


def get_tenant_user(db: Session, user_id: int, tenant_id: int) -> User:
    user = db.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise NotFound("User not found")
    return user
