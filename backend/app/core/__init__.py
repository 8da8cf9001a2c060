"""Core utilities for the Conversa backend."""

from .errors import ChatError, Conflict, Forbidden, InvalidParent, NotFound, ValidationError
from .slug import normalize_channel_name

__all__ = [
    "ChatError",
    "Conflict",
    "Forbidden",
    "InvalidParent",
    "NotFound",
    "ValidationError",
    "normalize_channel_name",
]
