"""Realtime event kinds and the message envelope carried on board channels."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Message kinds published on a board channel."""

    POST_ADD = "POST_ADD"
    POST_UPDATE_CONTENT = "POST_UPDATE_CONTENT"
    POST_UPDATE_TYPE = "POST_UPDATE_TYPE"
    POST_DELETE = "POST_DELETE"
    POST_UPVOTE = "POST_UPVOTE"
    POST_DOWNVOTE = "POST_DOWNVOTE"
    POST_MERGE = "POST_MERGE"
    ACTION_CREATE = "ACTION_CREATE"
    ACTION_ASSIGN = "ACTION_ASSIGN"
    ACTION_STATE_UPDATE = "ACTION_STATE_UPDATE"


# Kinds whose effect is a count delta: echo and staleness filters apply
COUNT_AFFECTING_KINDS = frozenset(
    {EventKind.POST_UPVOTE, EventKind.POST_DOWNVOTE, EventKind.POST_MERGE}
)


def board_channel(board_id: str) -> str:
    """Channel name for a board."""
    return f"board:{board_id}"


class MessageHeaders(BaseModel):
    """Envelope metadata; ``user`` is the acting user's id."""

    model_config = ConfigDict(extra="allow")

    user: str | None = None


class RealtimeMessage(BaseModel):
    """Envelope published on the bus: ``{kind, headers: {user}, payload}``.

    ``kind`` stays a plain string so unknown kinds from newer publishers
    survive transport and are rejected by the router, not the envelope.
    """

    kind: str
    headers: MessageHeaders = Field(default_factory=MessageHeaders)
    payload: Any = None

    @property
    def user_id(self) -> str | None:
        return self.headers.user

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
