"""Client-side board state: reactive store, derived views and notifications."""

from retroboard.store.state import BoardStore, Rollback, StoreChange
from retroboard.store.toasts import Toast, ToastQueue
from retroboard.store.views import (
    EnrichedPost,
    SortCriterion,
    SortDirection,
    SortOption,
    group_by_type,
    sort_posts,
)

__all__ = [
    "BoardStore",
    "EnrichedPost",
    "Rollback",
    "SortCriterion",
    "SortDirection",
    "SortOption",
    "StoreChange",
    "Toast",
    "ToastQueue",
    "group_by_type",
    "sort_posts",
]
