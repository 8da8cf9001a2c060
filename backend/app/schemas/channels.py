"""Schemas for channels and their members."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr

from app.models import ChannelType, MemberRole


class ChannelCreate(BaseModel):
    """Payload for creating a channel."""

    name: constr(strip_whitespace=True, min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=2000)
    channel_type: ChannelType = Field(default=ChannelType.PUBLIC, description="Visibility class; fixed after creation")
    department: constr(strip_whitespace=True, min_length=1, max_length=128) | None = None
    project_id: int | None = Field(default=None, description="External project reference used for filtering")
    event_id: int | None = Field(default=None, description="External event reference used for filtering")
    is_read_only: bool = False


class ChannelUpdate(BaseModel):
    """Partial channel update; type and external references cannot change."""

    model_config = ConfigDict(extra="forbid")

    name: constr(strip_whitespace=True, min_length=1, max_length=128) | None = None
    description: str | None = Field(default=None, max_length=2000)
    is_read_only: bool | None = None
    is_archived: bool | None = Field(default=None, description="Archival is terminal; false is rejected once set")


class ChannelRead(BaseModel):
    """Serialized channel."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str
    description: str | None = None
    channel_type: ChannelType
    icon: str
    department: str | None = None
    project_id: int | None = None
    event_id: int | None = None
    is_read_only: bool
    is_archived: bool
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime


class ChannelMemberRead(BaseModel):
    """Channel membership with the member's read pointer."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    channel_id: int
    user_id: int
    role: MemberRole
    last_read_message_id: int | None = None
    last_read_at: datetime | None = None
    is_muted: bool
    joined_at: datetime


class ChannelDetail(ChannelRead):
    """Channel with members and the caller's unread count."""

    members: list[ChannelMemberRead] = Field(default_factory=list)
    unread_count: int = 0
    can_write: bool = Field(default=False, description="Whether the caller may post here")


class MemberAdd(BaseModel):
    """Payload for adding a user to a channel or group."""

    user_id: int
    role: MemberRole = MemberRole.MEMBER


class ReadStatusUpdate(BaseModel):
    """Payload for advancing the caller's read pointer."""

    last_read_message_id: int = Field(..., ge=1)
