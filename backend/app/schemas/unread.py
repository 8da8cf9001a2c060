"""Schemas for unread totals and mentions."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from app.schemas.messages import MentionRead


class UnreadCountRead(BaseModel):
    """Unread total for one channel or group."""

    model_config = ConfigDict(from_attributes=True)

    channel_id: int | None = None
    group_id: int | None = None
    count: int


class MentionWithContext(MentionRead):
    """Mention row together with where the message lives."""

    channel_id: int | None = None
    group_id: int | None = None
    sender_id: int | None = None
    content: str = ""
