"""In-process pub/sub bus scoped per board channel.

Delivery mirrors the hosted bus the clients sit on: every subscriber of a
channel receives every message, including the publisher's own, and a
failing subscriber never affects the others.
"""

import inspect
from typing import Any, Awaitable, Callable, Protocol

import structlog

from retroboard.realtime.events import RealtimeMessage

logger = structlog.get_logger()

Handler = Callable[[RealtimeMessage], Any | Awaitable[Any]]


class Publisher(Protocol):
    """Anything messages can be published through."""

    async def publish(self, channel: str, message: RealtimeMessage) -> None: ...


class Broker:
    """Channel-keyed fan-out of realtime messages."""

    def __init__(self) -> None:
        # Map of channel -> subscribed handlers
        self.channels: dict[str, list[Handler]] = {}

    def subscribe(self, channel: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` on ``channel``; returns an unsubscribe function."""
        self.channels.setdefault(channel, []).append(handler)

        def unsubscribe() -> None:
            handlers = self.channels.get(channel)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self.channels[channel]

        return unsubscribe

    def subscriber_count(self, channel: str) -> int:
        return len(self.channels.get(channel, []))

    async def publish(self, channel: str, message: RealtimeMessage) -> None:
        """Deliver ``message`` to every handler on ``channel``."""
        for handler in list(self.channels.get(channel, [])):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "subscriber_delivery_failed",
                    channel=channel,
                    kind=message.kind,
                )


# Global broker instance used by the API process
broker = Broker()
