"""Unit tests for event publisher."""

from __future__ import annotations

import pytest

from bluegreen.infrastructure.messaging.event_publisher import InMemoryEventPublisher


class TestInMemoryEventPublisher:
    @pytest.mark.asyncio
    async def test_publish(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("deployment.started", {"deployment_id": "d1"})
        assert publisher.published_events == [("deployment.started", {"deployment_id": "d1"})]

    @pytest.mark.asyncio
    async def test_publish_batch(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish_batch([
            ("deployment.started", {"deployment_id": "d1"}),
            ("deployment.completed", {"deployment_id": "d1"}),
        ])
        assert len(publisher.published_events) == 2

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self) -> None:
        publisher = InMemoryEventPublisher()
        received: list = []

        async def handler(payload: dict) -> None:
            received.append(payload)

        publisher.subscribe("deployment.failed", handler)
        await publisher.publish("deployment.failed", {"error_message": "boom"})
        await publisher.publish("deployment.completed", {})
        assert received == [{"error_message": "boom"}]

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_publishing(self) -> None:
        publisher = InMemoryEventPublisher()
        received: list = []

        async def broken(payload: dict) -> None:
            raise RuntimeError("handler bug")

        async def handler(payload: dict) -> None:
            received.append(payload)

        publisher.subscribe("deployment.failed", broken)
        publisher.subscribe("deployment.failed", handler)
        await publisher.publish("deployment.failed", {"deployment_id": "d1"})
        assert received == [{"deployment_id": "d1"}]

    @pytest.mark.asyncio
    async def test_event_types_by_deployment(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("deployment.started", {"deployment_id": "d1"})
        await publisher.publish("deployment.started", {"deployment_id": "d2"})
        await publisher.publish("deployment.completed", {"deployment_id": "d1"})
        assert publisher.event_types("d1") == ["deployment.started", "deployment.completed"]
        assert len(publisher.event_types()) == 3

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("test", {})
        publisher.clear()
        assert len(publisher.published_events) == 0
