"""Schemas related to tenant users."""

from pydantic import BaseModel, ConfigDict


class UserSummary(BaseModel):
    """Minimal user information attached to messages and members."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    display_name: str
