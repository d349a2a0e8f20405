"""Sorting and grouping of enriched posts."""

import pytest

from retroboard.models.board import PostType
from retroboard.store.views import (
    EnrichedPost,
    SortCriterion,
    SortDirection,
    SortOption,
    group_by_type,
    sort_posts,
)
from tests.conftest import make_post


def enriched(post_id, votes, minutes, post_type=PostType.WENT_WELL):
    return EnrichedPost(post=make_post(post_id, minutes=minutes, post_type=post_type), task=None, vote_count=votes)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("vote-count@asc", SortOption(SortCriterion.VOTE_COUNT, SortDirection.ASC)),
        ("creation-time@desc", SortOption(SortCriterion.CREATION_TIME, SortDirection.DESC)),
        ("vote-count", SortOption(SortCriterion.VOTE_COUNT, SortDirection.DESC)),
        ("vote-count@sideways", SortOption(SortCriterion.VOTE_COUNT, SortDirection.DESC)),
        ("popularity@asc", SortOption()),
        (None, SortOption()),
    ],
)
def test_parse_sort_option(raw, expected):
    assert SortOption.parse(raw) == expected


def test_sort_option_round_trips_through_str():
    option = SortOption(SortCriterion.CREATION_TIME, SortDirection.ASC)
    assert str(option) == "creation-time@asc"
    assert SortOption.parse(str(option)) == option


def test_no_sorting_keeps_store_order():
    posts = [enriched("b", 1, 5), enriched("a", 9, 1)]
    assert [p.id for p in sort_posts(posts, SortOption())] == ["b", "a"]


def test_vote_count_desc_breaks_ties_by_creation_time():
    posts = [enriched("old", 2, 0), enriched("top", 5, 3), enriched("new", 2, 9)]
    option = SortOption(SortCriterion.VOTE_COUNT, SortDirection.DESC)

    assert [p.id for p in sort_posts(posts, option)] == ["top", "new", "old"]


def test_creation_time_asc():
    posts = [enriched("c", 0, 3), enriched("a", 0, 1), enriched("b", 0, 2)]
    option = SortOption(SortCriterion.CREATION_TIME, SortDirection.ASC)

    assert [p.id for p in sort_posts(posts, option)] == ["a", "b", "c"]


def test_group_by_type_has_every_column():
    posts = [
        enriched("w1", 1, 0, PostType.WENT_WELL),
        enriched("i1", 3, 1, PostType.TO_IMPROVE),
        enriched("w2", 4, 2, PostType.WENT_WELL),
    ]

    groups = group_by_type(posts, SortOption(SortCriterion.VOTE_COUNT, SortDirection.DESC))

    assert set(groups) == set(PostType)
    assert [p.id for p in groups[PostType.WENT_WELL]] == ["w2", "w1"]
    assert [p.id for p in groups[PostType.TO_IMPROVE]] == ["i1"]
    assert groups[PostType.ACTION_ITEM] == []
