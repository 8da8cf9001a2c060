"""Application service helpers."""

from .cache import get_cache
from .conversations import ChannelFilters, ConversationDetail, ConversationQueryService
from .history_cache import ConversationHistoryCache, get_history_cache
from .lifecycle import ChannelDraft, ConversationLifecycle
from .membership import MembershipService
from .mentions import MentionDispatcher, get_mention_dispatcher
from .message_store import FileReference, MessagePage, MessageStore
from .reactions import ReactionAggregator, ReactionGroup, group_reactions
from .read_state import ReadMark, ReadStateTracker, UnreadEntry

__all__ = [
    "get_cache",
    "ChannelFilters",
    "ConversationDetail",
    "ConversationQueryService",
    "ConversationHistoryCache",
    "get_history_cache",
    "ChannelDraft",
    "ConversationLifecycle",
    "MembershipService",
    "MentionDispatcher",
    "get_mention_dispatcher",
    "FileReference",
    "MessagePage",
    "MessageStore",
    "ReactionAggregator",
    "ReactionGroup",
    "group_reactions",
    "ReadMark",
    "ReadStateTracker",
    "UnreadEntry",
]
