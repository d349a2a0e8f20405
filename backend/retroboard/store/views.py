"""Derived, read-only views over the board store: enrichment, sorting, grouping."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from retroboard.models.board import PostType
from retroboard.realtime.schemas import PostRecord, TaskRecord


class SortCriterion(str, Enum):
    NONE = "none"
    CREATION_TIME = "creation-time"
    VOTE_COUNT = "vote-count"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortOption:
    """How a column of posts is ordered."""

    criterion: SortCriterion = SortCriterion.NONE
    direction: SortDirection = SortDirection.DESC

    @classmethod
    def parse(cls, value: str | None) -> "SortOption":
        """Parse ``"criterion@direction"`` (e.g. ``"vote-count@desc"``).

        Unknown criteria fall back to no sorting, unknown directions to
        descending.
        """
        if not value:
            return cls()
        criterion_raw, _, direction_raw = value.partition("@")
        try:
            criterion = SortCriterion(criterion_raw)
        except ValueError:
            return cls()
        try:
            direction = SortDirection(direction_raw) if direction_raw else SortDirection.DESC
        except ValueError:
            direction = SortDirection.DESC
        return cls(criterion=criterion, direction=direction)

    def __str__(self) -> str:
        return f"{self.criterion.value}@{self.direction.value}"


@dataclass(frozen=True)
class EnrichedPost:
    """A post joined with its task and its live vote count."""

    post: PostRecord
    task: TaskRecord | None
    vote_count: int

    @property
    def id(self) -> str:
        return self.post.id

    @property
    def type(self) -> PostType:
        return self.post.type

    @property
    def content(self) -> str:
        return self.post.content

    @property
    def created_at(self) -> datetime:
        return self.post.created_at


def sort_posts(posts: Iterable[EnrichedPost], option: SortOption) -> list[EnrichedPost]:
    """Order posts by ``option``; ties fall back to creation time, then id."""
    items = list(posts)
    if option.criterion is SortCriterion.NONE:
        return items

    reverse = option.direction is SortDirection.DESC
    if option.criterion is SortCriterion.VOTE_COUNT:
        return sorted(
            items,
            key=lambda p: (p.vote_count, p.created_at, p.id),
            reverse=reverse,
        )
    return sorted(items, key=lambda p: (p.created_at, p.id), reverse=reverse)


def group_by_type(
    posts: Iterable[EnrichedPost],
    option: SortOption | None = None,
) -> dict[PostType, list[EnrichedPost]]:
    """Split posts into one column per category, every category present."""
    groups: dict[PostType, list[EnrichedPost]] = {post_type: [] for post_type in PostType}
    for post in posts:
        groups[PostType(post.type)].append(post)
    if option is not None:
        groups = {post_type: sort_posts(items, option) for post_type, items in groups.items()}
    return groups
