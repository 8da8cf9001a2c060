"""Group and direct message API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal
from app.api.messages import load_history_page
from app.core.identity import Principal
from app.database import get_db
from app.models import GroupTarget
from app.monitoring.metrics import chat_read_marks_total
from app.schemas import (
    GroupCreate,
    GroupDetail,
    GroupMemberRead,
    GroupRead,
    MemberAdd,
    MessageHistoryPage,
    ReadStatusUpdate,
)
from app.services import (
    ConversationHistoryCache,
    ConversationLifecycle,
    ConversationQueryService,
    MembershipService,
    ReadStateTracker,
    get_history_cache,
)

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("", response_model=list[GroupRead])
def list_groups(
    is_dm: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[GroupRead]:
    """List groups and DMs the caller belongs to."""

    groups = ConversationQueryService(db).list_groups(principal, is_dm=is_dm)
    return [GroupRead.model_validate(group) for group in groups]


@router.post("", response_model=GroupDetail, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> GroupDetail:
    """Create a group, or a DM between the caller and one other user."""

    group = ConversationLifecycle(db).create_group(
        principal,
        name=payload.name,
        is_dm=payload.is_dm,
        member_ids=payload.member_user_ids,
        avatar_url=payload.avatar_url,
        reuse_existing_dm=payload.reuse_existing_dm,
    )
    db.commit()
    db.refresh(group)
    return GroupDetail.model_validate(group)


@router.get("/{group_id}", response_model=GroupDetail)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> GroupDetail:
    detail = ConversationQueryService(db).get_group(group_id, principal)
    result = GroupDetail.model_validate(detail.conversation)
    result.members = [GroupMemberRead.model_validate(member) for member in detail.members]
    result.unread_count = detail.unread_count
    result.can_write = detail.can_write
    return result


@router.post(
    "/{group_id}/members",
    response_model=GroupMemberRead,
    status_code=status.HTTP_201_CREATED,
)
def add_group_member(
    group_id: int,
    payload: MemberAdd,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> GroupMemberRead:
    member = MembershipService(db).add_member(GroupTarget(group_id), payload.user_id, principal, role=payload.role)
    db.commit()
    db.refresh(member)
    return GroupMemberRead.model_validate(member)


@router.delete("/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_group_member(
    group_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Response:
    MembershipService(db).remove_member(GroupTarget(group_id), user_id, principal)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{group_id}/read-status", response_model=GroupMemberRead)
def mark_group_read(
    group_id: int,
    payload: ReadStatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> GroupMemberRead:
    """Advance the caller's read pointer; it never moves backwards."""

    target = GroupTarget(group_id)
    mark = ReadStateTracker(db).mark_read(target, principal, payload.last_read_message_id)
    db.commit()
    if mark.mentions_cleared:
        # Cached messages carry the mention flags that just changed.
        history_cache.invalidate(principal.tenant_id, target)
    chat_read_marks_total.inc(kind="group")
    return GroupMemberRead.model_validate(mark.member)


@router.get("/{group_id}/history", response_model=MessageHistoryPage)
def get_group_history(
    group_id: int,
    before_id: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> MessageHistoryPage:
    return load_history_page(
        GroupTarget(group_id),
        principal,
        db,
        history_cache,
        before_id=before_id,
        limit=limit,
    )
