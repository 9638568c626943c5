"""Event store — append-only audit log.

Learn: Every credential and ownership-relevant change is recorded as
an immutable event in the same transaction as the change itself. If
the change rolls back, so does its event. Codes and token strings
are never written here — only ids.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.db.models import Event


class EventStore:
    """Append-only event store backed by the relational database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        metadata: dict | None = None,
    ) -> Event:
        """Append an event to a stream. Returns the created event."""
        event = Event(
            stream_id=stream_id,
            type=event_type,
            data=data,
            meta=metadata or {},
        )
        self.db.add(event)
        await self.db.flush()  # get the auto-generated id
        return event

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """Read events for a specific stream, optionally after a given position."""
        result = await self.db.execute(
            select(Event)
            .where(Event.stream_id == stream_id, Event.id > after_id)
            .order_by(Event.id)
            .limit(limit)
        )
        return list(result.scalars().all())
