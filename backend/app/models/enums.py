from __future__ import annotations

from enum import Enum


class ChannelType(str, Enum):
    """Visibility classes for channels; fixed once a channel exists."""

    PUBLIC = "public"
    PRIVATE = "private"
    DEPARTMENT = "department"


class ConversationKind(str, Enum):
    """The two places a message can live."""

    CHANNEL = "channel"
    GROUP = "group"


class MemberRole(str, Enum):
    """Roles that a user can have inside a channel or group."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MessageType(str, Enum):
    """How a message was produced."""

    TEXT = "text"
    FILE = "file"
    THREAD_REPLY = "thread_reply"
    SYSTEM = "system"


MANAGER_ROLES: frozenset[MemberRole] = frozenset({MemberRole.OWNER, MemberRole.ADMIN})

CHANNEL_ICONS: dict[ChannelType, str] = {
    ChannelType.PUBLIC: "hash",
    ChannelType.PRIVATE: "lock",
    ChannelType.DEPARTMENT: "users",
}
