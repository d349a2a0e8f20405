"""Publish retry with backoff, and transient notifications."""

from types import SimpleNamespace

import pytest

from retroboard.exceptions import TransientBroadcastError
from retroboard.realtime import retry
from retroboard.realtime.events import RealtimeMessage
from retroboard.store.toasts import ToastQueue


class FlakyPublisher:
    def __init__(self, failures):
        self.failures = failures
        self.delivered = []

    async def publish(self, channel, message):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("bus hiccup")
        self.delivered.append((channel, message.kind))


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(retry, "asyncio", SimpleNamespace(sleep=fake_sleep))
    return delays


@pytest.mark.anyio
async def test_retries_with_exponential_backoff(sleeps):
    publisher = FlakyPublisher(failures=3)

    await retry.publish_with_retry(
        publisher,
        "board:b1",
        RealtimeMessage(kind="POST_DELETE", payload={"id": "p1"}),
        max_retries=5,
        initial_delay_ms=1000,
        max_delay_ms=3000,
        factor=2,
    )

    assert publisher.delivered == [("board:b1", "POST_DELETE")]
    assert sleeps == [1.0, 2.0, 3.0]


@pytest.mark.anyio
async def test_exhausted_retries_raise_transient_error(sleeps):
    publisher = FlakyPublisher(failures=10)

    with pytest.raises(TransientBroadcastError) as exc_info:
        await retry.publish_with_retry(
            publisher,
            "board:b1",
            RealtimeMessage(kind="POST_UPVOTE"),
            max_retries=3,
            initial_delay_ms=10,
        )

    assert exc_info.value.kind == "POST_UPVOTE"
    assert isinstance(exc_info.value.original, ConnectionError)
    assert len(sleeps) == 2


def test_toasts_expire():
    now = [100.0]
    toasts = ToastQueue(duration_ms=4000, clock=lambda: now[0])

    failed = toasts.error("Failed to vote")
    toasts.success("Posts merged successfully")
    assert [t.level for t in toasts.active()] == ["error", "success"]

    toasts.dismiss(failed)
    assert [t.message for t in toasts.active()] == ["Posts merged successfully"]

    now[0] = 104.5
    assert toasts.active() == []
