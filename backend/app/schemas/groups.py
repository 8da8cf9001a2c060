"""Schemas for groups and direct messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr

from app.models import MemberRole


class GroupCreate(BaseModel):
    """Payload for creating a group or a direct message."""

    name: constr(strip_whitespace=True, max_length=128) | None = Field(
        default=None, description="Required unless is_dm is set"
    )
    is_dm: bool = False
    avatar_url: str | None = Field(default=None, max_length=512)
    member_user_ids: list[int] = Field(default_factory=list, description="Users to enrol besides the creator")
    reuse_existing_dm: bool = Field(
        default=False,
        description="Return an existing DM between the same pair instead of creating a new one",
    )


class GroupRead(BaseModel):
    """Serialized group."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str | None = None
    is_dm: bool
    icon: str
    avatar_url: str | None = None
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime


class GroupMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    group_id: int
    user_id: int
    role: MemberRole
    last_read_message_id: int | None = None
    last_read_at: datetime | None = None
    is_muted: bool
    joined_at: datetime


class GroupDetail(GroupRead):
    """Group with members and the caller's unread count."""

    members: list[GroupMemberRead] = Field(default_factory=list)
    unread_count: int = 0
    can_write: bool = Field(default=False, description="Whether the caller may post here")
