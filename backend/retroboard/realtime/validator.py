"""Boundary validation of inbound realtime payloads.

Nothing past this module trusts the shape of a payload: the router only
ever sees the typed model returned by :meth:`MessageValidator.validate`.
"""

import json
from typing import Any

from pydantic import ValidationError

from retroboard.exceptions import MessageValidationError, UnknownMessageKindError
from retroboard.realtime.events import EventKind
from retroboard.realtime.schemas import (
    PostContentUpdate,
    PostDelete,
    PostMerge,
    PostRecord,
    PostTypeUpdate,
    TaskAssign,
    TaskCreate,
    TaskStateUpdate,
    VoteEvent,
    WireModel,
)


SCHEMAS: dict[EventKind, type[WireModel]] = {
    EventKind.POST_ADD: PostRecord,
    EventKind.POST_UPDATE_CONTENT: PostContentUpdate,
    EventKind.POST_UPDATE_TYPE: PostTypeUpdate,
    EventKind.POST_DELETE: PostDelete,
    EventKind.POST_UPVOTE: VoteEvent,
    EventKind.POST_DOWNVOTE: VoteEvent,
    EventKind.POST_MERGE: PostMerge,
    EventKind.ACTION_CREATE: TaskCreate,
    EventKind.ACTION_ASSIGN: TaskAssign,
    EventKind.ACTION_STATE_UPDATE: TaskStateUpdate,
}

_VOTE_OPERATIONS = {
    EventKind.POST_UPVOTE: "upvote",
    EventKind.POST_DOWNVOTE: "downvote",
}


def resolve_kind(kind: str | EventKind) -> EventKind:
    """Map a raw kind string to a known :class:`EventKind`."""
    try:
        return EventKind(kind)
    except ValueError:
        raise UnknownMessageKindError(str(kind)) from None


def _field_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]


def decode_payload(kind: str, raw: Any) -> dict[str, Any]:
    """Accept a JSON string or a mapping and return a JSON object."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise MessageValidationError(
                kind,
                [{"field": "", "message": f"Failed to parse JSON: {exc}", "type": "json_invalid"}],
            ) from exc
    if not isinstance(raw, dict):
        raise MessageValidationError(
            kind,
            [{"field": "", "message": f"Expected an object, got {type(raw).__name__}", "type": "object_type"}],
        )
    return raw


class MessageValidator:
    """Schema-checks payloads per message kind."""

    def validate(self, kind: str | EventKind, raw: Any) -> WireModel:
        """Return the typed payload for ``kind``.

        Raises:
            UnknownMessageKindError: ``kind`` is not a known event kind.
            MessageValidationError: the payload does not fit the schema.
        """
        event_kind = resolve_kind(kind)
        data = decode_payload(event_kind.value, raw)
        schema = SCHEMAS[event_kind]

        try:
            payload = schema.model_validate(data)
        except ValidationError as exc:
            raise MessageValidationError(event_kind.value, _field_errors(exc)) from exc

        expected_operation = _VOTE_OPERATIONS.get(event_kind)
        if expected_operation and payload.operation != expected_operation:
            raise MessageValidationError(
                event_kind.value,
                [
                    {
                        "field": "operation",
                        "message": f"Operation must be '{expected_operation}' for {event_kind.value}",
                        "type": "operation_mismatch",
                    }
                ],
            )

        if event_kind is EventKind.POST_MERGE:
            if payload.merged_post.id != payload.target_post_id:
                raise MessageValidationError(
                    event_kind.value,
                    [{"field": "mergedPost.id", "message": "Merged post must be the target post", "type": "merge_target_mismatch"}],
                )

        return payload
