"""Schemas related to chat messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models import MessageType
from app.schemas.users import UserSummary


class MessageReactionSummary(BaseModel):
    """Aggregated reaction information for a message."""

    emoji: str = Field(..., description="Emoji identifier, e.g. 😀 or :thumbsup:")
    count: int = Field(..., ge=0, description="Total reactions with the emoji")
    user_ids: list[int] = Field(
        default_factory=list,
        description="Identifiers of users who added this reaction, in reaction order",
    )


class ReactionRead(BaseModel):
    """Individual reaction row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    message_id: int
    user_id: int
    emoji: str
    created_at: datetime


class MentionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    message_id: int
    mentioned_user_id: int
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class MessageRead(BaseModel):
    """Serialized representation of a chat message.

    Deleted messages keep their metadata but expose neither content nor the
    file reference.
    """

    id: int
    tenant_id: int
    channel_id: int | None = None
    group_id: int | None = None
    parent_message_id: int | None = None
    sender_id: int | None = None
    sender: UserSummary | None = None
    message_type: MessageType
    content: str
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    thread_reply_count: int = 0
    is_edited: bool = False
    edited_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    reactions: list[MessageReactionSummary] = Field(default_factory=list)
    mentions: list[MentionRead] = Field(default_factory=list)


class MessageHistoryPage(BaseModel):
    """Backward page of messages in ascending id order."""

    items: list[MessageRead]
    has_more: bool = False
    next_before_id: int | None = Field(
        default=None, description="Pass as before_id to fetch the preceding page"
    )


class MessageCreate(BaseModel):
    """Payload for sending a message to exactly one channel or group."""

    channel_id: int | None = None
    group_id: int | None = None
    parent_message_id: int | None = None
    content: str = ""
    file_url: str | None = Field(default=None, max_length=1024)
    file_name: str | None = Field(default=None, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    mentioned_user_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_single_target(self) -> "MessageCreate":
        if (self.channel_id is None) == (self.group_id is None):
            raise ValueError("Provide exactly one of channel_id or group_id")
        if self.file_url is not None and not self.file_name:
            raise ValueError("file_name is required with file_url")
        return self


class MessageUpdate(BaseModel):
    content: str


class ReactionRequest(BaseModel):
    """Payload for adding or toggling a reaction."""

    emoji: str = Field(..., min_length=1, max_length=32)


class ReactionToggleResult(BaseModel):
    message_id: int
    emoji: str
    present: bool
    reactions: list[MessageReactionSummary] = Field(default_factory=list)
