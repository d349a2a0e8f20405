"""Publishing with retry and exponential backoff."""

import asyncio

import structlog

from retroboard.config import get_settings
from retroboard.exceptions import TransientBroadcastError
from retroboard.realtime.broker import Publisher
from retroboard.realtime.events import RealtimeMessage

logger = structlog.get_logger()


async def publish_with_retry(
    publisher: Publisher,
    channel: str,
    message: RealtimeMessage,
    *,
    max_retries: int | None = None,
    initial_delay_ms: int | None = None,
    max_delay_ms: int | None = None,
    factor: float | None = None,
) -> None:
    """Publish, retrying with exponential backoff.

    Raises:
        TransientBroadcastError: every attempt failed. The caller's write
            has already succeeded and must not be undone.
    """
    settings = get_settings()
    max_retries = max_retries if max_retries is not None else settings.publish_max_retries
    delay_ms = initial_delay_ms if initial_delay_ms is not None else settings.publish_initial_delay_ms
    max_delay_ms = max_delay_ms if max_delay_ms is not None else settings.publish_max_delay_ms
    factor = factor if factor is not None else settings.publish_backoff_factor

    last_error: Exception | None = None
    for attempt in range(1, max(max_retries, 1) + 1):
        try:
            await publisher.publish(channel, message)
            return
        except Exception as exc:
            last_error = exc
            if attempt >= max_retries:
                break
            logger.warning(
                "publish_attempt_failed",
                channel=channel,
                kind=message.kind,
                attempt=attempt,
                retry_in_ms=delay_ms,
                error=str(exc),
            )
            await asyncio.sleep(delay_ms / 1000)
            delay_ms = min(delay_ms * factor, max_delay_ms)

    raise TransientBroadcastError(channel, message.kind, last_error)
