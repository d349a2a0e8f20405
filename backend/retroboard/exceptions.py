"""Retroboard exceptions.

Structured errors shared by the server-side services, the realtime
pipeline and the client mutation layer. Every error carries a stable
``code`` and an HTTP-ish ``status_code`` so the API layer can map it to a
response without inspecting the message.
"""

from typing import Any, Optional


class RetroboardError(Exception):
    """Base exception for all retroboard errors."""

    def __init__(
        self,
        message: str,
        code: str = "RETROBOARD_ERROR",
        status_code: int = 500,
        context: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "context": self.context,
        }


class MessageValidationError(RetroboardError):
    """Inbound realtime payload does not match the schema of its kind.

    Logged and dropped by the router; never fatal to the subscription.
    """

    def __init__(self, kind: str, errors: list[dict[str, Any]], message: str | None = None):
        self.kind = kind
        self.errors = errors
        super().__init__(
            message=message or f"Invalid payload for {kind}",
            code="VALIDATION_ERROR",
            status_code=400,
            context={"kind": kind, "errors": errors},
        )


class NotFoundError(RetroboardError):
    """A post, vote or task referenced by an operation does not exist."""

    def __init__(self, resource_type: str, resource_id: str, **context: Any):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=f"{resource_type} not found: {resource_id}",
            code="RESOURCE_NOT_FOUND",
            status_code=404,
            context={"resource_type": resource_type, "resource_id": resource_id, **context},
        )


class WrongBoardError(NotFoundError):
    """Entity exists but belongs to a different board.

    Reported as not-found so board contents never leak across boards.
    """

    def __init__(self, resource_type: str, resource_id: str, board_id: str):
        super().__init__(resource_type, resource_id, board_id=board_id)
        self.code = "WRONG_BOARD"
        self.message = f"{resource_type} {resource_id} does not belong to board {board_id}"


class PermissionDeniedError(RetroboardError):
    """User is not a board member or lacks the required role."""

    def __init__(self, user_id: str, board_id: str, required_role: str | None = None):
        self.user_id = user_id
        self.board_id = board_id
        super().__init__(
            message="Access denied",
            code="PERMISSION_DENIED",
            status_code=403,
            context={"user_id": user_id, "board_id": board_id, "required_role": required_role},
        )


class ConflictError(RetroboardError):
    """Duplicate write, e.g. a user voting twice on the same post."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message=message, code="CONFLICT", status_code=409, context=context)


class InvalidMergeError(RetroboardError):
    """Merge request rejected before any transaction is opened."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_MERGE", status_code=400)


class TransientBroadcastError(RetroboardError):
    """Publishing to the board channel failed after a successful write.

    The write stays committed; other clients catch up on their next refresh.
    """

    def __init__(self, channel: str, kind: str, original: BaseException | None = None):
        self.channel = channel
        self.kind = kind
        self.original = original
        super().__init__(
            message=f"Failed to publish {kind} on {channel}",
            code="BROADCAST_FAILED",
            status_code=503,
            context={"channel": channel, "kind": kind, "original_error": str(original) if original else None},
        )


class UnknownMessageKindError(RetroboardError):
    """Realtime message kind this client does not understand."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(
            message=f"Unknown message kind: {kind}",
            code="UNKNOWN_MESSAGE_KIND",
            status_code=400,
            context={"kind": kind},
        )


class RemoteCallError(RetroboardError):
    """The authoritative remote operation failed (client side)."""

    def __init__(self, operation: str, message: str, status_code: int = 502, code: str = "REMOTE_CALL_FAILED"):
        self.operation = operation
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            context={"operation": operation},
        )
