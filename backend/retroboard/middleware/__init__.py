"""HTTP middleware."""

from retroboard.middleware.logging import LoggingMiddleware
from retroboard.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]
