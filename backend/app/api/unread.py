"""Unread totals and mentions of the caller."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal
from app.core.identity import Principal
from app.database import get_db
from app.schemas import MentionWithContext, UnreadCountRead
from app.services import ReadStateTracker
from app.services.mentions import list_mentions

router = APIRouter(tags=["unread"])


@router.get("/unread", response_model=list[UnreadCountRead])
def get_unread_counts(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[UnreadCountRead]:
    """Unread totals for every channel and group the caller belongs to."""

    entries = ReadStateTracker(db).unread_summary(principal)
    return [UnreadCountRead.model_validate(entry) for entry in entries]


@router.get("/mentions", response_model=list[MentionWithContext])
def get_mentions(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[MentionWithContext]:
    """Mentions of the caller in live messages, newest first."""

    mentions = list_mentions(db, principal, unread_only=unread_only, limit=limit)
    return [
        MentionWithContext(
            id=mention.id,
            message_id=mention.message_id,
            mentioned_user_id=mention.mentioned_user_id,
            is_read=mention.is_read,
            read_at=mention.read_at,
            created_at=mention.created_at,
            channel_id=mention.message.channel_id,
            group_id=mention.message.group_id,
            sender_id=mention.message.sender_id,
            content=mention.message.content,
        )
        for mention in mentions
    ]
