"""CORS for the landing page origins."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from waitlist.config import Settings

# The frontend only posts JSON and opens an EventSource with credentials
_ALLOWED_HEADERS = ["Content-Type", "X-Request-Id"]
_EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Credentials stay on so the session cookie reaches /me/stats and the SSE stream."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
        expose_headers=_EXPOSED_HEADERS,
        max_age=settings.cors_max_age_seconds,
    )
