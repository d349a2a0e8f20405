"""REST API and the httpx client, exercised in-process."""

import httpx
import pytest

from retroboard.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from retroboard.main import app
from retroboard.models.board import PostType, Role, TaskState
from retroboard.realtime.broker import broker
from retroboard.realtime.events import board_channel
from retroboard.realtime.schemas import PostRecord
from retroboard.store.mutations import MutationAPI
from retroboard.store.remote import HttpBoardClient
from retroboard.store.state import BoardStore
from tests.conftest import seed_board

PREFIX = "/api/v1"


def client_for(user_id):
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url=f"http://test{PREFIX}",
        headers={"X-User-ID": user_id},
    )


@pytest.fixture
async def board(db):
    await seed_board(db, members={"owner": Role.OWNER, "mia": Role.MEMBER, "gus": Role.GUEST})
    return "board-1"


@pytest.fixture
def channel_messages(board):
    messages = []
    unsubscribe = broker.subscribe(board_channel(board), messages.append)
    yield messages
    unsubscribe()


@pytest.mark.anyio
async def test_health():
    async with client_for("anyone") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.anyio
async def test_create_board_makes_creator_owner(db):
    async with client_for("zoe") as client:
        created = await client.post("/boards", json={"title": "Retro"})
        board_id = created.json()["id"]
        added = await client.put(f"/boards/{board_id}/members", json={"userId": "max", "role": 2})

    assert created.status_code == 201
    assert created.json()["creatorId"] == "zoe"
    assert added.json() == {"boardId": board_id, "userId": "max", "role": 2}


@pytest.mark.anyio
async def test_requests_need_identity_and_membership(board):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=f"http://test{PREFIX}") as anonymous:
        missing = await anonymous.get(f"/boards/{board}/posts")
    async with client_for("stranger") as client:
        denied = await client.get(f"/boards/{board}/posts")
    async with client_for("mia") as client:
        not_owner = await client.put(f"/boards/{board}/members", json={"userId": "x"})

    assert missing.status_code == 401
    assert denied.status_code == 403
    assert denied.json()["code"] == "PERMISSION_DENIED"
    assert not_owner.status_code == 403


@pytest.mark.anyio
async def test_post_vote_and_snapshot_flow(board):
    async with client_for("mia") as client:
        created = await client.post(
            f"/boards/{board}/posts",
            json={"id": "p1", "content": "Fast reviews", "type": 0},
        )
        first = await client.post(f"/boards/{board}/posts/p1/vote")
        again = await client.post(f"/boards/{board}/posts/p1/vote")
        mine = await client.get(f"/boards/{board}/votes/me")
        await client.patch(f"/boards/{board}/posts/p1/content", json={"content": "Faster reviews"})
        await client.patch(f"/boards/{board}/posts/p1/type", json={"type": 2})
        snapshot = await client.get(f"/boards/{board}/posts")

    assert created.status_code == 201
    assert created.json()["author"] == "mia"
    assert first.json() == {"voteCount": 1, "removed": None}
    assert again.status_code == 409
    assert again.json()["code"] == "CONFLICT"
    assert mine.json() == ["p1"]
    post = snapshot.json()["posts"][0]
    assert (post["content"], post["type"], post["voteCount"]) == ("Faster reviews", 2, 1)


@pytest.mark.anyio
async def test_down_vote_reports_removal(board):
    async with client_for("mia") as client:
        await client.post(f"/boards/{board}/posts", json={"id": "p1", "content": "x", "type": 1})
        await client.post(f"/boards/{board}/posts/p1/vote")
        removed = await client.delete(f"/boards/{board}/posts/p1/vote")
        nothing = await client.delete(f"/boards/{board}/posts/p1/vote")

    assert removed.json() == {"voteCount": 0, "removed": True}
    assert nothing.json() == {"voteCount": 0, "removed": False}


@pytest.mark.anyio
async def test_guests_cannot_change_tasks(board):
    async with client_for("mia") as member:
        await member.post(f"/boards/{board}/posts", json={"id": "p1", "content": "Fix CI", "type": 3})
        first = await member.put(f"/boards/{board}/posts/p1/task/assignee", json={"userId": "mia"})
        second = await member.put(f"/boards/{board}/posts/p1/task/state", json={"state": 1})
    async with client_for("gus") as guest:
        denied = await guest.put(f"/boards/{board}/posts/p1/task/state", json={"state": 2})
        readable = await guest.get(f"/boards/{board}/posts")

    assert first.json()["created"] is True
    assert second.json()["created"] is False
    assert second.json()["task"]["userId"] == "mia"
    assert second.json()["task"]["state"] == 1
    assert denied.status_code == 403
    assert readable.json()["tasks"][0]["postId"] == "p1"


@pytest.mark.anyio
async def test_merge_endpoint(board):
    async with client_for("mia") as mia, client_for("owner") as owner:
        for post_id in ("A", "B"):
            await mia.post(f"/boards/{board}/posts", json={"id": post_id, "content": post_id, "type": 0})
        await mia.post(f"/boards/{board}/posts/A/vote")
        await mia.post(f"/boards/{board}/posts/B/vote")
        await owner.post(f"/boards/{board}/posts/B/vote")

        merged = await mia.post(
            f"/boards/{board}/merge",
            json={"targetPostId": "A", "sourcePostIds": ["B"], "mergedContent": "A\n\n---\n\nB"},
        )
        invalid = await mia.post(
            f"/boards/{board}/merge",
            json={"targetPostId": "A", "sourcePostIds": ["A"], "mergedContent": "x"},
        )

    body = merged.json()
    assert merged.status_code == 200
    assert body["uniqueVoteCount"] == 2
    assert body["deletedPostIds"] == ["B"]
    assert body["mergedPost"]["voteCount"] == 2
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "INVALID_MERGE"


@pytest.mark.anyio
async def test_post_from_another_board_is_not_found(board, db):
    await seed_board(db, board_id="board-2", members={"mia": Role.MEMBER})
    async with client_for("mia") as client:
        await client.post("/boards/board-2/posts", json={"id": "other", "content": "x", "type": 0})
        response = await client.delete(f"/boards/{board}/posts/other")

    assert response.status_code == 404
    assert response.json()["code"] == "WRONG_BOARD"


@pytest.mark.anyio
async def test_event_relay_stamps_the_caller(board, channel_messages):
    vote = {"id": "p1", "operation": "upvote", "timestamp": 1_700_000_000_000}
    async with client_for("mia") as client:
        accepted = await client.post(
            f"/boards/{board}/events",
            json={"kind": "POST_UPVOTE", "payload": {**vote, "userId": "mia"}},
        )
        forged = await client.post(
            f"/boards/{board}/events",
            json={"kind": "POST_UPVOTE", "payload": {**vote, "userId": "owner"}},
        )
        unknown = await client.post(f"/boards/{board}/events", json={"kind": "POST_PIN", "payload": {}})

    assert accepted.status_code == 202
    assert [(m.kind, m.headers.user) for m in channel_messages] == [("POST_UPVOTE", "mia")]
    assert forged.status_code == 400
    assert forged.json()["code"] == "VALIDATION_ERROR"
    assert unknown.json()["code"] == "UNKNOWN_MESSAGE_KIND"


@pytest.mark.anyio
async def test_http_client_maps_errors(board):
    transport = httpx.ASGITransport(app=app)
    async with HttpBoardClient("http://test", "mia", transport=transport) as remote:
        post = await remote.create_post(
            PostRecord.model_validate(
                {
                    "id": "p1",
                    "content": "x",
                    "type": 0,
                    "author": "mia",
                    "boardId": board,
                    "createdAt": "2024-01-01T12:00:00+00:00",
                    "updatedAt": "2024-01-01T12:00:00+00:00",
                }
            )
        )
        assert await remote.up_vote(board, post.id) == 1
        with pytest.raises(ConflictError):
            await remote.up_vote(board, post.id)
        with pytest.raises(NotFoundError):
            await remote.delete_post(board, "missing")

    async with HttpBoardClient("http://test", "stranger", transport=transport) as outsider:
        with pytest.raises(PermissionDeniedError):
            await outsider.fetch_board(board)


@pytest.mark.anyio
async def test_mutation_api_over_http(board, channel_messages):
    transport = httpx.ASGITransport(app=app)
    async with HttpBoardClient("http://test", "mia", transport=transport) as remote:
        store = BoardStore()
        snapshot = await remote.fetch_board(board)
        store.initialize(snapshot.posts, snapshot.tasks)
        api = MutationAPI(store, remote, remote, board_id=board, current_user_id="mia")

        post = await api.create_post("Pairing worked", PostType.WENT_WELL)
        assert await api.upvote(post.id) is True
        assert await api.update_task_state(post.id, TaskState.IN_PROGRESS) is True

    assert store.vote_count(post.id) == 1
    assert store.get_task(post.id).id is not None
    assert [m.kind for m in channel_messages] == [
        "POST_ADD",
        "POST_UPVOTE",
        "ACTION_CREATE",
        "ACTION_STATE_UPDATE",
    ]
    assert {m.headers.user for m in channel_messages} == {"mia"}


@pytest.mark.anyio
async def test_task_on_another_board_is_not_found(board, db):
    await seed_board(db, board_id="board-2", members={"owner": Role.OWNER})
    async with client_for("owner") as owner:
        await owner.post("/boards/board-2/posts", json={"id": "other", "content": "x", "type": 3})
        await owner.put("/boards/board-2/posts/other/task/assignee", json={"userId": "owner"})
    async with client_for("mia") as mia:
        response = await mia.put(f"/boards/{board}/posts/other/task/state", json={"state": 3})
    async with client_for("owner") as owner:
        snapshot = await owner.get("/boards/board-2/posts")

    assert response.status_code == 404
    assert response.json()["code"] == "WRONG_BOARD"
    assert snapshot.json()["tasks"][0]["state"] == 0


@pytest.mark.anyio
async def test_merge_endpoint_combines_contents_by_default(board):
    async with client_for("mia") as client:
        for post_id in ("A", "B"):
            await client.post(f"/boards/{board}/posts", json={"id": post_id, "content": f"idea {post_id}", "type": 0})
        merged = await client.post(f"/boards/{board}/merge", json={"targetPostId": "A", "sourcePostIds": ["B"]})

    assert merged.status_code == 200
    assert merged.json()["mergedPost"]["content"] == "idea A\n\n---\n\nidea B"


@pytest.mark.anyio
async def test_request_ids_are_echoed_or_replaced():
    async with client_for("anyone") as client:
        kept = await client.get("/health", headers={"X-Request-ID": "mutation-42"})
        replaced = await client.get("/health", headers={"X-Request-ID": "x" * 200})
        minted = await client.get("/health")

    assert kept.headers["X-Request-ID"] == "mutation-42"
    assert replaced.headers["X-Request-ID"] != "x" * 200
    assert len(replaced.headers["X-Request-ID"]) == 32
    assert len(minted.headers["X-Request-ID"]) == 32


@pytest.mark.anyio
async def test_http_client_stamps_each_call_with_its_own_request_id():
    seen = []

    def handler(request):
        seen.append(request.headers["X-Request-ID"])
        return httpx.Response(200, json={"voteCount": 1})

    async with HttpBoardClient("http://test", "mia", transport=httpx.MockTransport(handler)) as remote:
        await remote.up_vote("b1", "p1")
        await remote.up_vote("b1", "p2")

    assert len(seen) == 2
    assert len(set(seen)) == 2
