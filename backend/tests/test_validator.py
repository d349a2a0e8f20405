"""Per-kind payload validation."""

import json

import pytest

from retroboard.exceptions import MessageValidationError, UnknownMessageKindError
from retroboard.models.board import PostType, TaskState
from retroboard.realtime.schemas import PostMerge, PostRecord, TaskCreate, VoteEvent
from retroboard.realtime.validator import MessageValidator
from tests.conftest import NOW_MS, make_post

validator = MessageValidator()


def post_wire(post_id="p1", **overrides):
    return {**make_post(post_id).to_wire(), **overrides}


def test_post_add_accepts_camel_case_record():
    payload = validator.validate("POST_ADD", post_wire(type=2, voteCount=4))

    assert isinstance(payload, PostRecord)
    assert payload.type is PostType.DISCUSSION
    assert payload.vote_count == 4
    assert payload.board_id == "board-1"


def test_post_add_requires_author_key():
    data = post_wire()
    data.pop("author")

    with pytest.raises(MessageValidationError) as exc_info:
        validator.validate("POST_ADD", data)

    assert [error["field"] for error in exc_info.value.errors] == ["author"]


def test_post_add_allows_null_author():
    assert validator.validate("POST_ADD", post_wire(author=None)).author is None


def test_json_string_payload_is_parsed_first():
    raw = json.dumps({"id": "p1", "content": "new words"})
    payload = validator.validate("POST_UPDATE_CONTENT", raw)

    assert payload.content == "new words"


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", 42, None])
def test_non_object_payloads_are_rejected(raw):
    with pytest.raises(MessageValidationError):
        validator.validate("POST_DELETE", raw)


def test_unknown_post_type_is_rejected():
    with pytest.raises(MessageValidationError) as exc_info:
        validator.validate("POST_UPDATE_TYPE", {"id": "p1", "type": 7})

    assert exc_info.value.kind == "POST_UPDATE_TYPE"
    assert exc_info.value.errors[0]["field"] == "type"


def test_vote_payload():
    payload = validator.validate(
        "POST_UPVOTE",
        {"id": "p1", "operation": "upvote", "userId": "u1", "timestamp": NOW_MS},
    )

    assert isinstance(payload, VoteEvent)
    assert payload.user_id == "u1"


def test_vote_operation_must_match_kind():
    with pytest.raises(MessageValidationError) as exc_info:
        validator.validate(
            "POST_DOWNVOTE",
            {"id": "p1", "operation": "upvote", "userId": "u1", "timestamp": NOW_MS},
        )

    assert exc_info.value.errors[0]["type"] == "operation_mismatch"


def test_vote_requires_positive_timestamp():
    with pytest.raises(MessageValidationError):
        validator.validate("POST_UPVOTE", {"id": "p1", "operation": "upvote", "userId": "u1", "timestamp": 0})


def test_merge_payload():
    payload = validator.validate(
        "POST_MERGE",
        {
            "targetPostId": "p1",
            "sourcePostIds": ["p2"],
            "mergedPost": post_wire("p1"),
            "uniqueVoteCount": 3,
            "deletedPostIds": ["p2"],
            "timestamp": NOW_MS,
        },
    )

    assert isinstance(payload, PostMerge)
    assert payload.unique_vote_count == 3


def test_merge_requires_sources_and_matching_target():
    base = {
        "targetPostId": "p1",
        "sourcePostIds": ["p2"],
        "mergedPost": post_wire("p1"),
        "uniqueVoteCount": 1,
        "deletedPostIds": ["p2"],
        "timestamp": NOW_MS,
    }

    with pytest.raises(MessageValidationError):
        validator.validate("POST_MERGE", {**base, "sourcePostIds": []})
    with pytest.raises(MessageValidationError):
        validator.validate("POST_MERGE", {**base, "uniqueVoteCount": -1})
    with pytest.raises(MessageValidationError) as exc_info:
        validator.validate("POST_MERGE", {**base, "mergedPost": post_wire("p9")})
    assert exc_info.value.errors[0]["field"] == "mergedPost.id"


def test_task_payloads():
    created = validator.validate(
        "ACTION_CREATE",
        {"id": "t1", "postId": "p1", "boardId": "board-1", "userId": None, "state": 1},
    )
    assigned = validator.validate("ACTION_ASSIGN", {"postId": "p1", "userId": "u2"})
    unassigned = validator.validate("ACTION_ASSIGN", {"postId": "p1"})
    updated = validator.validate("ACTION_STATE_UPDATE", {"postId": "p1", "state": 2})

    assert isinstance(created, TaskCreate)
    assert created.state is TaskState.IN_PROGRESS
    assert assigned.user_id == "u2"
    assert unassigned.user_id is None
    assert updated.state is TaskState.COMPLETED


def test_task_state_out_of_range_is_rejected():
    with pytest.raises(MessageValidationError):
        validator.validate("ACTION_STATE_UPDATE", {"postId": "p1", "state": 9})


def test_unknown_kind():
    with pytest.raises(UnknownMessageKindError) as exc_info:
        validator.validate("POST_PIN", {"id": "p1"})

    assert exc_info.value.kind == "POST_PIN"
