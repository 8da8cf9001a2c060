"""Database models package."""

from .base import Base
from .chat import (
    Channel,
    ChannelMember,
    Group,
    GroupMember,
    Mention,
    Message,
    Reaction,
    TenantMessageSequence,
    User,
)
from .enums import (
    CHANNEL_ICONS,
    MANAGER_ROLES,
    ChannelType,
    ConversationKind,
    MemberRole,
    MessageType,
)
from .targets import ChannelTarget, GroupTarget, MessageTarget, target_from_ids

__all__ = [
    "Base",
    "User",
    "Channel",
    "ChannelMember",
    "Group",
    "GroupMember",
    "TenantMessageSequence",
    "Message",
    "Reaction",
    "Mention",
    "ChannelType",
    "ConversationKind",
    "MemberRole",
    "MessageType",
    "CHANNEL_ICONS",
    "MANAGER_ROLES",
    "ChannelTarget",
    "GroupTarget",
    "MessageTarget",
    "target_from_ids",
]
