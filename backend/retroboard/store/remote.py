"""Authoritative remote operations used by the mutation layer."""

from typing import Any, Protocol

import httpx
import structlog

from retroboard.config import get_settings
from retroboard.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RemoteCallError,
)
from retroboard.middleware.request_id import REQUEST_ID_HEADER, new_request_id
from retroboard.models.board import PostType, TaskState
from retroboard.realtime.events import RealtimeMessage
from retroboard.realtime.schemas import (
    BoardSnapshot,
    MergeOutcome,
    PostRecord,
    TaskChange,
    VoteCount,
)

logger = structlog.get_logger()


class BoardRemote(Protocol):
    """Persistence plus authorization, one call per user action."""

    async def create_post(self, post: PostRecord) -> PostRecord: ...

    async def delete_post(self, board_id: str, post_id: str) -> None: ...

    async def update_post_content(self, board_id: str, post_id: str, content: str) -> PostRecord: ...

    async def update_post_type(self, board_id: str, post_id: str, post_type: PostType) -> PostRecord: ...

    async def up_vote(self, board_id: str, post_id: str) -> int: ...

    async def down_vote(self, board_id: str, post_id: str) -> VoteCount: ...

    async def assign_task(self, board_id: str, post_id: str, user_id: str | None) -> TaskChange: ...

    async def update_task_state(self, board_id: str, post_id: str, state: TaskState) -> TaskChange: ...

    async def merge_posts(
        self,
        board_id: str,
        target_post_id: str,
        source_post_ids: list[str],
        merged_content: str | None = None,
    ) -> MergeOutcome: ...


class HttpBoardClient:
    """:class:`BoardRemote` and publisher over the REST API.

    The acting user travels in the ``X-User-ID`` header.
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + settings.api_prefix,
            headers={"X-User-ID": user_id},
            timeout=timeout if timeout is not None else settings.remote_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpBoardClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, operation: str, method: str, url: str, json: Any = None) -> Any:
        request_id = new_request_id()
        try:
            response = await self._client.request(
                method, url, json=json, headers={REQUEST_ID_HEADER: request_id}
            )
        except httpx.HTTPError as exc:
            logger.error(
                "remote_transport_failed",
                operation=operation,
                url=url,
                request_id=request_id,
                error=str(exc),
            )
            raise RemoteCallError(operation, f"{operation} failed: {exc}") from exc

        if response.status_code >= 400:
            logger.info(
                "remote_call_rejected",
                operation=operation,
                status_code=response.status_code,
                request_id=response.headers.get(REQUEST_ID_HEADER, request_id),
            )
            self._raise_for_status(operation, response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _raise_for_status(self, operation: str, response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
        context = body.get("context", {}) if isinstance(body, dict) else {}

        if response.status_code == 409:
            raise ConflictError(str(detail), operation=operation)
        if response.status_code == 404:
            raise NotFoundError(
                context.get("resource_type", "Resource"),
                context.get("resource_id", ""),
                operation=operation,
            )
        if response.status_code == 403:
            raise PermissionDeniedError(self.user_id, context.get("board_id", ""))
        raise RemoteCallError(operation, str(detail), status_code=response.status_code)

    # =========================================================================
    # Board operations
    # =========================================================================

    async def fetch_board(self, board_id: str) -> BoardSnapshot:
        data = await self._request("fetch_board", "GET", f"/boards/{board_id}/posts")
        return BoardSnapshot.model_validate(data)

    async def create_post(self, post: PostRecord) -> PostRecord:
        data = await self._request(
            "create_post",
            "POST",
            f"/boards/{post.board_id}/posts",
            json={
                "id": post.id,
                "content": post.content,
                "type": int(post.type),
                "createdAt": post.created_at.isoformat(),
            },
        )
        return PostRecord.model_validate(data)

    async def delete_post(self, board_id: str, post_id: str) -> None:
        await self._request("delete_post", "DELETE", f"/boards/{board_id}/posts/{post_id}")

    async def update_post_content(self, board_id: str, post_id: str, content: str) -> PostRecord:
        data = await self._request(
            "update_post_content",
            "PATCH",
            f"/boards/{board_id}/posts/{post_id}/content",
            json={"content": content},
        )
        return PostRecord.model_validate(data)

    async def update_post_type(self, board_id: str, post_id: str, post_type: PostType) -> PostRecord:
        data = await self._request(
            "update_post_type",
            "PATCH",
            f"/boards/{board_id}/posts/{post_id}/type",
            json={"type": int(post_type)},
        )
        return PostRecord.model_validate(data)

    async def up_vote(self, board_id: str, post_id: str) -> int:
        data = await self._request("up_vote", "POST", f"/boards/{board_id}/posts/{post_id}/vote")
        return VoteCount.model_validate(data).vote_count

    async def down_vote(self, board_id: str, post_id: str) -> VoteCount:
        data = await self._request("down_vote", "DELETE", f"/boards/{board_id}/posts/{post_id}/vote")
        return VoteCount.model_validate(data)

    async def assign_task(self, board_id: str, post_id: str, user_id: str | None) -> TaskChange:
        data = await self._request(
            "assign_task",
            "PUT",
            f"/boards/{board_id}/posts/{post_id}/task/assignee",
            json={"userId": user_id},
        )
        return TaskChange.model_validate(data)

    async def update_task_state(self, board_id: str, post_id: str, state: TaskState) -> TaskChange:
        data = await self._request(
            "update_task_state",
            "PUT",
            f"/boards/{board_id}/posts/{post_id}/task/state",
            json={"state": int(state)},
        )
        return TaskChange.model_validate(data)

    async def merge_posts(
        self,
        board_id: str,
        target_post_id: str,
        source_post_ids: list[str],
        merged_content: str | None = None,
    ) -> MergeOutcome:
        body = {"targetPostId": target_post_id, "sourcePostIds": source_post_ids}
        if merged_content is not None:
            body["mergedContent"] = merged_content
        data = await self._request("merge_posts", "POST", f"/boards/{board_id}/merge", json=body)
        return MergeOutcome.model_validate(data)

    async def publish(self, channel: str, message: RealtimeMessage) -> None:
        """Relay a message through the server onto the board channel."""
        board_id = channel.split(":", 1)[-1]
        await self._request(
            "publish",
            "POST",
            f"/boards/{board_id}/events",
            json={"kind": message.kind, "payload": message.payload},
        )
