"""Dispatch of validated realtime messages to store mutators.

Two filters guard the count-affecting kinds (votes and merges):

* self-echo suppression: the acting user's own message is dropped, its
  effect was already applied optimistically;
* staleness: a message older than the threshold is dropped, fresher state
  has superseded it.

Votes that pass both filters are applied per user, so a redelivered or
late vote never moves the count twice.

A malformed or failing message never escapes :meth:`MessageRouter.handle`;
each invocation is isolated so the subscription loop keeps running.
"""

import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

import structlog
from pydantic import ValidationError

from retroboard.config import get_settings
from retroboard.exceptions import MessageValidationError, UnknownMessageKindError
from retroboard.realtime.events import COUNT_AFFECTING_KINDS, EventKind, RealtimeMessage
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
from retroboard.realtime.validator import MessageValidator

if TYPE_CHECKING:
    from retroboard.store.state import BoardStore

logger = structlog.get_logger()


def now_ms() -> int:
    return int(time.time() * 1000)


class Outcome(str, Enum):
    """What the router did with one message."""

    APPLIED = "applied"
    SELF_ECHO = "self_echo"
    STALE = "stale"
    INVALID = "invalid"
    UNKNOWN_KIND = "unknown_kind"
    FAILED = "failed"


class MessageRouter:
    """Routes board-channel messages into one client's store."""

    def __init__(
        self,
        store: "BoardStore",
        current_user_id: str,
        *,
        validator: MessageValidator | None = None,
        staleness_threshold_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.current_user_id = current_user_id
        self.validator = validator or MessageValidator()
        if staleness_threshold_ms is None:
            staleness_threshold_ms = get_settings().realtime_staleness_threshold_ms
        self.staleness_threshold_ms = staleness_threshold_ms
        self.clock = clock
        self._handlers: dict[EventKind, Callable[[Any], None]] = {
            EventKind.POST_ADD: self._on_post_add,
            EventKind.POST_UPDATE_CONTENT: self._on_post_content,
            EventKind.POST_UPDATE_TYPE: self._on_post_type,
            EventKind.POST_DELETE: self._on_post_delete,
            EventKind.POST_UPVOTE: self._on_vote,
            EventKind.POST_DOWNVOTE: self._on_vote,
            EventKind.POST_MERGE: self._on_merge,
            EventKind.ACTION_CREATE: self._on_task_create,
            EventKind.ACTION_ASSIGN: self._on_task_assign,
            EventKind.ACTION_STATE_UPDATE: self._on_task_state,
        }

    def __call__(self, message: RealtimeMessage | Mapping[str, Any]) -> Outcome:
        return self.handle(message)

    def handle(self, message: RealtimeMessage | Mapping[str, Any]) -> Outcome:
        """Validate, filter and apply one message. Never raises."""
        kind = "<unparsed>"
        raw: Any = None
        try:
            if not isinstance(message, RealtimeMessage):
                message = RealtimeMessage.model_validate(message)
            kind, raw = message.kind, message.payload
            payload = self.validator.validate(kind, raw)
            event_kind = EventKind(kind)

            if event_kind in COUNT_AFFECTING_KINDS:
                skipped = self._filter(event_kind, payload, message)
                if skipped is not None:
                    return skipped

            self._handlers[event_kind](payload)
            return Outcome.APPLIED

        except ValidationError as exc:
            logger.error("malformed_envelope", raw_message=message, errors=exc.errors())
            return Outcome.INVALID
        except UnknownMessageKindError:
            logger.warning("unknown_message_kind", kind=kind)
            return Outcome.UNKNOWN_KIND
        except MessageValidationError as exc:
            logger.error(
                "message_validation_failed",
                kind=kind,
                raw_payload=raw,
                errors=exc.errors,
            )
            return Outcome.INVALID
        except Exception as exc:
            logger.exception(
                "message_handler_failed",
                kind=kind,
                raw_payload=raw,
                current_user_id=self.current_user_id,
                error=str(exc),
            )
            return Outcome.FAILED

    def _filter(self, kind: EventKind, payload: WireModel, message: RealtimeMessage) -> Outcome | None:
        if isinstance(payload, VoteEvent):
            actor = payload.user_id
        else:
            actor = message.user_id

        if actor is not None and actor == self.current_user_id:
            logger.debug("self_echo_dropped", kind=kind.value)
            return Outcome.SELF_ECHO

        age_ms = self.clock() - payload.timestamp
        if age_ms > self.staleness_threshold_ms:
            logger.info("stale_message_dropped", kind=kind.value, age_ms=age_ms)
            return Outcome.STALE
        return None

    # =========================================================================
    # Handlers
    # =========================================================================

    def _on_post_add(self, payload: PostRecord) -> None:
        self.store.add_post(payload)

    def _on_post_content(self, payload: PostContentUpdate) -> None:
        self.store.update_post_content(payload.id, payload.content)

    def _on_post_type(self, payload: PostTypeUpdate) -> None:
        self.store.update_post_type(payload.id, payload.type)

    def _on_post_delete(self, payload: PostDelete) -> None:
        self.store.remove_post(payload.id)

    def _on_vote(self, payload: VoteEvent) -> None:
        self.store.apply_vote(payload.id, payload.user_id, payload.operation, payload.timestamp)

    def _on_merge(self, payload: PostMerge) -> None:
        self.store.apply_merge(
            payload.merged_post,
            payload.unique_vote_count,
            payload.deleted_post_ids,
        )

    def _on_task_create(self, payload: TaskCreate) -> None:
        self.store.upsert_task(payload)

    def _on_task_assign(self, payload: TaskAssign) -> None:
        self.store.assign_task(payload.post_id, payload.user_id)

    def _on_task_state(self, payload: TaskStateUpdate) -> None:
        self.store.update_task_state(payload.post_id, payload.state)
