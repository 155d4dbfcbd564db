"""EventPublisher Protocol — the core's only view of the notification pipe."""

from typing import Protocol

from src.pm_notify.domain.events import Event


class EventPublisherProtocol(Protocol):
    async def publish(self, event: Event) -> None:
        """Best-effort delivery. Must not raise into the caller."""
        ...

    async def publish_many(self, events: list[Event]) -> None: ...
