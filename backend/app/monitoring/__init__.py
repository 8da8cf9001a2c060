"""Conversation traffic counters and their registry."""

from .metrics import (
    chat_history_cache_requests_total,
    chat_mentions_dispatched_total,
    chat_messages_changed_total,
    chat_messages_sent_total,
    chat_reactions_total,
    chat_read_marks_total,
)
from .registry import PROMETHEUS_CONTENT_TYPE, CounterMetric, MetricsRegistry, registry

__all__ = [
    "PROMETHEUS_CONTENT_TYPE",
    "CounterMetric",
    "MetricsRegistry",
    "registry",
    "chat_history_cache_requests_total",
    "chat_mentions_dispatched_total",
    "chat_messages_changed_total",
    "chat_messages_sent_total",
    "chat_reactions_total",
    "chat_read_marks_total",
]
