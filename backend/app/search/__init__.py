"""Search service interfaces."""

from .service import MessageSearchFilters, MessageSearchScope, MessageSearchService, contains_pattern

__all__ = [
    "MessageSearchFilters",
    "MessageSearchScope",
    "MessageSearchService",
    "contains_pattern",
]
