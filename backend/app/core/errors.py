"""Error kinds raised by the conversation services and their HTTP mapping."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChatError(Exception):
    """Base class for rejected chat commands."""

    code = "chat_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, object]:
        return {"detail": self.message, "code": self.code}


class ValidationError(ChatError):
    """The command is malformed and was rejected before touching state."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidParent(ValidationError):
    """Thread parent is missing, deleted, or lives in another conversation."""

    code = "invalid_parent"


class Forbidden(ChatError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ChatError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ChatError):
    """The command collides with an existing entity."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, existing_id: int | None = None) -> None:
        super().__init__(message)
        self.existing_id = existing_id

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.existing_id is not None:
            payload["existing_id"] = self.existing_id
        return payload


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the chat error handler with the application."""

    app.add_exception_handler(ChatError, chat_error_handler)
