"""HTTP endpoints for managing chat messages."""

from __future__ import annotations

from typing import Sequence

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import clamp_limit, get_current_principal
from app.core.errors import NotFound
from app.core.identity import Principal
from app.database import get_db
from app.models import Message, MessageTarget, target_from_ids
from app.monitoring.metrics import (
    chat_history_cache_requests_total,
    chat_mentions_dispatched_total,
    chat_messages_changed_total,
    chat_messages_sent_total,
)
from app.schemas import (
    MentionRead,
    MessageCreate,
    MessageHistoryPage,
    MessageReactionSummary,
    MessageRead,
    MessageUpdate,
    UserSummary,
)
from app.services import (
    ConversationHistoryCache,
    ConversationQueryService,
    FileReference,
    MembershipService,
    MentionDispatcher,
    MessageStore,
    get_history_cache,
    get_mention_dispatcher,
    group_reactions,
)
from app.services.mentions import build_mention_events
from app.services.message_store import MESSAGE_LOAD_OPTIONS

router = APIRouter(prefix="/messages", tags=["messages"])


def serialize_message(message: Message) -> MessageRead:
    """Build the read model; deleted messages lose their content and file reference."""

    hidden = message.is_deleted
    reactions = [
        MessageReactionSummary(emoji=group.emoji, count=group.count, user_ids=list(group.user_ids))
        for group in group_reactions(message.reactions).values()
    ]
    return MessageRead(
        id=message.id,
        tenant_id=message.tenant_id,
        channel_id=message.channel_id,
        group_id=message.group_id,
        parent_message_id=message.parent_message_id,
        sender_id=message.sender_id,
        sender=UserSummary.model_validate(message.sender) if message.sender else None,
        message_type=message.message_type,
        content="" if hidden else message.content,
        file_url=None if hidden else message.file_url,
        file_name=None if hidden else message.file_name,
        file_size=None if hidden else message.file_size,
        thread_reply_count=message.thread_reply_count,
        is_edited=message.is_edited,
        edited_at=message.edited_at,
        is_deleted=message.is_deleted,
        deleted_at=message.deleted_at,
        created_at=message.created_at,
        updated_at=message.updated_at,
        reactions=reactions,
        mentions=[MentionRead.model_validate(mention) for mention in message.mentions],
    )


def serialize_messages(messages: Sequence[Message]) -> list[MessageRead]:
    return [serialize_message(message) for message in messages]


def serialize_message_by_id(message_id: int, db: Session) -> MessageRead:
    stmt = select(Message).where(Message.id == message_id).options(*MESSAGE_LOAD_OPTIONS)
    message = db.execute(stmt).scalar_one_or_none()
    if message is None:
        raise NotFound("Message not found")
    return serialize_message(message)


def load_history_page(
    target: MessageTarget,
    principal: Principal,
    db: Session,
    history_cache: ConversationHistoryCache,
    *,
    before_id: int | None,
    limit: int | None,
) -> MessageHistoryPage:
    """Return a backward page, serving the newest default window from the cache."""

    effective_limit = clamp_limit(limit)
    cacheable = before_id is None and effective_limit == history_cache.window
    lease = None

    if cacheable:
        MembershipService(db).require_read(target, principal)
        cached = history_cache.get_window(principal.tenant_id, target)
        if cached is not None:
            chat_history_cache_requests_total.inc(result="hit")
            items = [MessageRead.model_validate(item) for item in cached]
            has_more = len(items) == effective_limit
            return MessageHistoryPage(
                items=items,
                has_more=has_more,
                next_before_id=items[0].id if has_more and items else None,
            )
        chat_history_cache_requests_total.inc(result="miss")
        # Taken before the query so that sends committed meanwhile void the fill.
        lease = history_cache.begin_fill(principal.tenant_id, target)

    page = ConversationQueryService(db).history(target, principal, before_id=before_id, limit=effective_limit)
    items = serialize_messages(page.items)
    if lease is not None:
        history_cache.store_window(
            principal.tenant_id, target, lease, [item.model_dump(mode="json") for item in items]
        )
    return MessageHistoryPage(items=items, has_more=page.has_more, next_before_id=page.next_before_id)


@router.get("", response_model=list[MessageRead])
def list_messages(
    channel_id: int | None = Query(default=None),
    group_id: int | None = Query(default=None),
    parent_message_id: int | None = Query(default=None),
    sender_id: int | None = Query(default=None),
    query: str | None = Query(default=None, max_length=200),
    before_id: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[MessageRead]:
    """List messages of a channel, a group, or a thread."""

    messages = ConversationQueryService(db).list_messages(
        principal,
        channel_id=channel_id,
        group_id=group_id,
        parent_message_id=parent_message_id,
        sender_id=sender_id,
        query=query,
        before_id=before_id,
        limit=clamp_limit(limit),
        offset=offset,
    )
    return serialize_messages(messages)


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def create_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
    dispatcher: MentionDispatcher = Depends(get_mention_dispatcher),
) -> MessageRead:
    """Send a message, optionally as a thread reply or with a file reference."""

    target = target_from_ids(payload.channel_id, payload.group_id)
    file = None
    if payload.file_url:
        file = FileReference(url=payload.file_url, name=payload.file_name or "", size=payload.file_size or 0)

    message = MessageStore(db).send(
        target,
        principal,
        payload.content,
        parent_id=payload.parent_message_id,
        file=file,
        mentioned_user_ids=payload.mentioned_user_ids,
    )
    events = build_mention_events(message)
    db.commit()

    serialized = serialize_message_by_id(message.id, db)
    if serialized.parent_message_id is None:
        history_cache.append(principal.tenant_id, target, serialized.model_dump(mode="json"))
    else:
        # The parent's reply counter changed.
        history_cache.invalidate(principal.tenant_id, target)

    chat_messages_sent_total.inc(kind=target.kind.value, message_type=serialized.message_type.value)
    if events:
        dispatcher.dispatch(events)
        chat_mentions_dispatched_total.inc(amount=len(events))
    return serialized


@router.get("/{message_id}", response_model=MessageRead)
def get_message(
    message_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> MessageRead:
    return serialize_message(MessageStore(db).get(message_id, principal))


@router.put("/{message_id}", response_model=MessageRead)
def update_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> MessageRead:
    """Edit message content."""

    message = MessageStore(db).edit(message_id, principal, payload.content)
    target = message.target
    db.commit()

    history_cache.invalidate(principal.tenant_id, target)
    chat_messages_changed_total.inc(action="edit")
    return serialize_message_by_id(message_id, db)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> Response:
    """Soft-delete a message."""

    message = MessageStore(db).delete(message_id, principal)
    target = message.target
    db.commit()

    history_cache.invalidate(principal.tenant_id, target)
    chat_messages_changed_total.inc(action="delete")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
