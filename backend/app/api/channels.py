"""Channel-specific API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal
from app.api.messages import load_history_page
from app.core.identity import Principal
from app.database import get_db
from app.models import ChannelTarget, ChannelType
from app.monitoring.metrics import chat_read_marks_total
from app.schemas import (
    ChannelCreate,
    ChannelDetail,
    ChannelMemberRead,
    ChannelRead,
    ChannelUpdate,
    MemberAdd,
    MessageHistoryPage,
    ReadStatusUpdate,
)
from app.services import (
    ChannelDraft,
    ChannelFilters,
    ConversationHistoryCache,
    ConversationLifecycle,
    ConversationQueryService,
    MembershipService,
    ReadStateTracker,
    get_history_cache,
)

router = APIRouter(prefix="/channels", tags=["channels"])


@router.get("", response_model=list[ChannelRead])
def list_channels(
    channel_type: ChannelType | None = Query(default=None),
    department: str | None = Query(default=None),
    project_id: int | None = Query(default=None),
    event_id: int | None = Query(default=None),
    is_archived: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[ChannelRead]:
    """List channels visible to the caller."""

    filters = ChannelFilters(
        channel_type=channel_type,
        department=department,
        project_id=project_id,
        event_id=event_id,
        is_archived=is_archived,
    )
    channels = ConversationQueryService(db).list_channels(principal, filters)
    return [ChannelRead.model_validate(channel) for channel in channels]


@router.post("", response_model=ChannelRead, status_code=status.HTTP_201_CREATED)
def create_channel(
    payload: ChannelCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ChannelRead:
    """Create a channel with the caller as its owner."""

    draft = ChannelDraft(**payload.model_dump())
    channel = ConversationLifecycle(db).create_channel(draft, principal)
    db.commit()
    db.refresh(channel)
    return ChannelRead.model_validate(channel)


@router.get("/{channel_id}", response_model=ChannelDetail)
def get_channel(
    channel_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ChannelDetail:
    """Return channel details with members and the caller's unread count."""

    detail = ConversationQueryService(db).get_channel(channel_id, principal)
    result = ChannelDetail.model_validate(detail.conversation)
    result.members = [ChannelMemberRead.model_validate(member) for member in detail.members]
    result.unread_count = detail.unread_count
    result.can_write = detail.can_write
    return result


@router.put("/{channel_id}", response_model=ChannelRead)
def update_channel(
    channel_id: int,
    payload: ChannelUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ChannelRead:
    """Rename, describe, lock or archive a channel."""

    channel = ConversationLifecycle(db).update_channel(
        channel_id, payload.model_dump(exclude_unset=True), principal
    )
    db.commit()
    db.refresh(channel)
    return ChannelRead.model_validate(channel)


@router.post(
    "/{channel_id}/members",
    response_model=ChannelMemberRead,
    status_code=status.HTTP_201_CREATED,
)
def add_channel_member(
    channel_id: int,
    payload: MemberAdd,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ChannelMemberRead:
    member = MembershipService(db).add_member(
        ChannelTarget(channel_id), payload.user_id, principal, role=payload.role
    )
    db.commit()
    db.refresh(member)
    return ChannelMemberRead.model_validate(member)


@router.delete("/{channel_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_channel_member(
    channel_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Response:
    MembershipService(db).remove_member(ChannelTarget(channel_id), user_id, principal)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{channel_id}/read-status", response_model=ChannelMemberRead)
def mark_channel_read(
    channel_id: int,
    payload: ReadStatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> ChannelMemberRead:
    """Advance the caller's read pointer; it never moves backwards."""

    target = ChannelTarget(channel_id)
    mark = ReadStateTracker(db).mark_read(target, principal, payload.last_read_message_id)
    db.commit()
    if mark.mentions_cleared:
        # Cached messages carry the mention flags that just changed.
        history_cache.invalidate(principal.tenant_id, target)
    chat_read_marks_total.inc(kind="channel")
    return ChannelMemberRead.model_validate(mark.member)


@router.get("/{channel_id}/history", response_model=MessageHistoryPage)
def get_channel_history(
    channel_id: int,
    before_id: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> MessageHistoryPage:
    """Return the newest messages of a channel, or the page before ``before_id``."""

    return load_history_page(
        ChannelTarget(channel_id),
        principal,
        db,
        history_cache,
        before_id=before_id,
        limit=limit,
    )
