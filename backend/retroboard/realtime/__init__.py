"""Realtime messaging: event kinds, payload schemas, validation and routing."""

from retroboard.realtime.broker import Broker, Publisher, broker
from retroboard.realtime.events import (
    COUNT_AFFECTING_KINDS,
    EventKind,
    MessageHeaders,
    RealtimeMessage,
    board_channel,
)
from retroboard.realtime.retry import publish_with_retry
from retroboard.realtime.router import MessageRouter, Outcome
from retroboard.realtime.validator import MessageValidator

__all__ = [
    "Broker",
    "COUNT_AFFECTING_KINDS",
    "EventKind",
    "MessageHeaders",
    "MessageRouter",
    "MessageValidator",
    "Outcome",
    "Publisher",
    "RealtimeMessage",
    "board_channel",
    "broker",
    "publish_with_retry",
]
