"""Event publisher implementations."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from bluegreen.domain.ports.services import EventPublisher


logger = structlog.get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class InMemoryEventPublisher(EventPublisher):
    """In-process event bus; every event is also written to the log."""

    def __init__(self) -> None:
        self._events: list[tuple[str, dict[str, Any]]] = []
        self._handlers: dict[str, list[EventHandler]] = {}

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self._events.append((event_type, payload))
        logger.info(
            "event_published",
            event_type=event_type,
            deployment_id=payload.get("deployment_id"),
        )

        for handler in self._handlers.get(event_type, []):
            try:
                await handler(payload)
            except Exception as e:
                logger.exception("event_handler_failed", event_type=event_type, error=str(e))

    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for event_type, payload in events:
            await self.publish(event_type, payload)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    @property
    def published_events(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._events)

    def event_types(self, deployment_id: str | None = None) -> list[str]:
        return [
            event_type
            for event_type, payload in self._events
            if deployment_id is None or payload.get("deployment_id") == deployment_id
        ]

    def clear(self) -> None:
        self._events.clear()
