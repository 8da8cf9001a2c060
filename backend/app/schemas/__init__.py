"""Pydantic schemas for API payloads."""

from .channels import (
    ChannelCreate,
    ChannelDetail,
    ChannelMemberRead,
    ChannelRead,
    ChannelUpdate,
    MemberAdd,
    ReadStatusUpdate,
)
from .groups import GroupCreate, GroupDetail, GroupMemberRead, GroupRead
from .messages import (
    MentionRead,
    MessageCreate,
    MessageHistoryPage,
    MessageRead,
    MessageReactionSummary,
    MessageUpdate,
    ReactionRead,
    ReactionRequest,
    ReactionToggleResult,
)
from .unread import MentionWithContext, UnreadCountRead
from .users import UserSummary

__all__ = [
    "ChannelCreate",
    "ChannelDetail",
    "ChannelMemberRead",
    "ChannelRead",
    "ChannelUpdate",
    "MemberAdd",
    "ReadStatusUpdate",
    "GroupCreate",
    "GroupDetail",
    "GroupMemberRead",
    "GroupRead",
    "MentionRead",
    "MessageCreate",
    "MessageHistoryPage",
    "MessageRead",
    "MessageReactionSummary",
    "MessageUpdate",
    "ReactionRead",
    "ReactionRequest",
    "ReactionToggleResult",
    "MentionWithContext",
    "UnreadCountRead",
    "UserSummary",
]
