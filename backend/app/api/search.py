"""Message search endpoint."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal
from app.api.messages import serialize_messages
from app.core.identity import Principal
from app.database import get_db
from app.schemas import MessageRead
from app.search import MessageSearchFilters
from app.services import ConversationQueryService

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/messages", response_model=list[MessageRead])
def search_messages(
    query: str = Query(..., min_length=1, max_length=200),
    limit: int | None = Query(default=None, ge=1),
    sender_id: int | None = Query(default=None),
    has_file: bool | None = Query(default=None),
    start_at: datetime | None = Query(default=None),
    end_at: datetime | None = Query(default=None),
    parent_message_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[MessageRead]:
    """Search live messages in every conversation the caller can read."""

    filters = MessageSearchFilters(
        sender_id=sender_id,
        has_file=has_file,
        start_at=start_at,
        end_at=end_at,
        parent_message_id=parent_message_id,
    )
    messages = ConversationQueryService(db).search(principal, query, limit=limit, filters=filters)
    return serialize_messages(messages)
