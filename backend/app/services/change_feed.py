"""In-process change feed for journey status updates.

Viewers subscribe to receive an event each time a patient's status changes.
Events are published only after the transition has committed. The feed is
advisory: a slow or disconnected subscriber loses events rather than holding
up writers, and clients re-read the patient after each event anyway.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.models.patient import PatientStatus

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


@dataclass(frozen=True)
class ChangeEvent:
    """A committed status change of one patient."""

    patient_id: uuid.UUID
    action: str
    previous_status: PatientStatus | None
    current_status: PatientStatus
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return json.dumps(
            {
                "patient_id": str(self.patient_id),
                "action": self.action,
                "previous_status": self.previous_status.value if self.previous_status else None,
                "current_status": self.current_status.value,
                "occurred_at": self.occurred_at.isoformat(),
            }
        )


@dataclass(eq=False)
class Subscription:
    """One viewer's queue, optionally restricted to a single patient."""

    patient_id: uuid.UUID | None
    queue: asyncio.Queue[ChangeEvent] = field(
        default_factory=lambda: asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
    )

    def wants(self, event: ChangeEvent) -> bool:
        return self.patient_id is None or self.patient_id == event.patient_id

    async def get(self) -> ChangeEvent:
        return await self.queue.get()


class ChangeFeed:
    """Fan-out of change events to all current subscribers."""

    def __init__(self) -> None:
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @asynccontextmanager
    async def subscribe(self, patient_id: uuid.UUID | None = None) -> AsyncIterator[Subscription]:
        """Subscribe for the duration of the ``async with`` block.

        Args:
            patient_id: Only deliver events for this patient; None for all patients.
        """
        subscription = Subscription(patient_id=patient_id)
        self._subscriptions.add(subscription)
        try:
            yield subscription
        finally:
            self._subscriptions.discard(subscription)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to every interested subscriber without blocking."""
        for subscription in list(self._subscriptions):
            if not subscription.wants(event):
                continue
            if subscription.queue.full():
                # Drop the oldest event for this slow subscriber
                subscription.queue.get_nowait()
                logger.warning("Change feed subscriber lagging, dropped an event")
            subscription.queue.put_nowait(event)


change_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """FastAPI dependency returning the process-wide change feed."""
    return change_feed
