"""HTTP endpoints for emoji reactions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal
from app.core.identity import Principal
from app.database import get_db
from app.monitoring.metrics import chat_reactions_total
from app.schemas import MessageReactionSummary, ReactionRead, ReactionRequest, ReactionToggleResult
from app.services import ConversationHistoryCache, ReactionAggregator, get_history_cache
from app.services.lookup import get_message

router = APIRouter(tags=["reactions"])


@router.post(
    "/messages/{message_id}/reactions",
    response_model=ReactionRead,
    status_code=status.HTTP_201_CREATED,
)
def add_reaction(
    message_id: int,
    payload: ReactionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> ReactionRead:
    """Add a reaction; repeating the same reaction returns the existing row."""

    reaction = ReactionAggregator(db).add(message_id, payload.emoji, principal)
    db.commit()

    target = get_message(db, message_id, principal.tenant_id).target
    history_cache.invalidate(principal.tenant_id, target)
    chat_reactions_total.inc(action="add")
    return ReactionRead.model_validate(reaction)


@router.post("/messages/{message_id}/reactions/toggle", response_model=ReactionToggleResult)
def toggle_reaction(
    message_id: int,
    payload: ReactionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> ReactionToggleResult:
    """Add the caller's reaction when absent, remove it when present."""

    aggregator = ReactionAggregator(db)
    present = aggregator.toggle(message_id, payload.emoji, principal)
    db.commit()

    target = get_message(db, message_id, principal.tenant_id).target
    history_cache.invalidate(principal.tenant_id, target)
    chat_reactions_total.inc(action="toggle_on" if present else "toggle_off")
    groups = aggregator.grouped_view(message_id)
    return ReactionToggleResult(
        message_id=message_id,
        emoji=payload.emoji,
        present=present,
        reactions=[
            MessageReactionSummary(emoji=group.emoji, count=group.count, user_ids=list(group.user_ids))
            for group in groups.values()
        ],
    )


@router.delete("/messages/{message_id}/reactions/{emoji}", status_code=status.HTTP_204_NO_CONTENT)
def remove_reaction_by_emoji(
    message_id: int,
    emoji: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> Response:
    """Remove the caller's reaction with ``emoji``; absent reactions are a no-op."""

    removed = ReactionAggregator(db).remove(message_id, emoji, principal)
    db.commit()

    if removed:
        target = get_message(db, message_id, principal.tenant_id).target
        history_cache.invalidate(principal.tenant_id, target)
        chat_reactions_total.inc(action="remove")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/reactions/{reaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_reaction(
    reaction_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    history_cache: ConversationHistoryCache = Depends(get_history_cache),
) -> Response:
    """Remove one of the caller's reactions by id; unknown ids are a no-op."""

    reaction = ReactionAggregator(db).remove_by_id(reaction_id, principal)
    target = reaction.message.target if reaction is not None else None
    db.commit()

    if target is not None:
        history_cache.invalidate(principal.tenant_id, target)
        chat_reactions_total.inc(action="remove")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
