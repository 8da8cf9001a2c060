"""Metric definitions for conversation traffic."""

from __future__ import annotations

from .registry import registry


chat_messages_sent_total = registry.counter(
    "chat_messages_sent_total",
    "Number of messages accepted, by conversation kind and message type.",
    label_names=("kind", "message_type"),
)

chat_messages_changed_total = registry.counter(
    "chat_messages_changed_total",
    "Number of message edits and soft deletes.",
    label_names=("action",),
)

chat_reactions_total = registry.counter(
    "chat_reactions_total",
    "Reaction commands processed, by action.",
    label_names=("action",),
)

chat_read_marks_total = registry.counter(
    "chat_read_marks_total",
    "Read pointer updates requested, by conversation kind.",
    label_names=("kind",),
)

chat_mentions_dispatched_total = registry.counter(
    "chat_mentions_dispatched_total",
    "Mention events handed to the notification dispatcher.",
)

chat_history_cache_requests_total = registry.counter(
    "chat_history_cache_requests_total",
    "History window lookups served from or missed by the cache.",
    label_names=("result",),
)
