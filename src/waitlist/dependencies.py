"""Shared FastAPI dependencies.

The SSE registry and notification dispatcher are built once per app in
``create_app`` and live on ``app.state``.
"""

from fastapi import Request

from waitlist.notifications.dispatcher import NotificationDispatcher
from waitlist.sse.registry import ConnectionRegistry


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.sse_registry


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notification_dispatcher
