from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from campus_events.models.event import Event
from campus_events.models.registration import Registration
from campus_events.schemas.event import EventCreate, EventFilter, EventUpdate


def overlaps_window(start_at: datetime, end_at: datetime) -> ColumnElement[bool]:
    """Half-open overlap of ``Event``'s interval with ``[start_at, end_at)``."""
    return and_(Event.start_at < end_at, Event.end_at > start_at)


async def get_event(
    db: AsyncSession, event_id: int, for_update: bool = False
) -> Optional[Event]:
    query = select(Event).filter(Event.id == event_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    first: Optional[Event] = result.scalars().first()
    return first


async def count_registrations(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.count(Registration.id)).filter(Registration.event_id == event_id)
    )
    return int(result.scalar_one())


async def count_registrations_by_event(
    db: AsyncSession, event_ids: Iterable[int]
) -> Dict[int, int]:
    ids = list(event_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Registration.event_id, func.count(Registration.id))
        .filter(Registration.event_id.in_(ids))
        .group_by(Registration.event_id)
    )
    counts = {event_id: 0 for event_id in ids}
    counts.update({row[0]: int(row[1]) for row in result.all()})
    return counts


async def get_events_filtered(
    db: AsyncSession, filters: EventFilter, now: datetime
) -> List[Event]:
    """Get events with optional filtering, soonest first"""
    query = select(Event)

    conditions: list[ColumnElement[bool]] = []
    if filters.category:
        conditions.append(func.lower(Event.category) == filters.category.strip().lower())
    if filters.location:
        conditions.append(Event.location.ilike(f"%{filters.location.strip()}%"))
    if filters.organizer_id is not None:
        conditions.append(Event.organizer_id == filters.organizer_id)
    if filters.search:
        conditions.append(Event.title.ilike(f"%{filters.search.strip()}%"))
    if filters.upcoming_only:
        conditions.append(Event.end_at >= now)
    if filters.available_only:
        taken = (
            select(func.count(Registration.id))
            .filter(Registration.event_id == Event.id)
            .scalar_subquery()
        )
        conditions.append(Event.capacity > taken)

    if conditions:
        query = query.filter(and_(*conditions))

    query = query.order_by(Event.start_at, Event.id).offset(filters.skip).limit(filters.limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_events_by_organizer(db: AsyncSession, organizer_id: int) -> List[Event]:
    result = await db.execute(
        select(Event)
        .filter(Event.organizer_id == organizer_id)
        .order_by(Event.created_at.desc(), Event.id.desc())
    )
    return list(result.scalars().all())


async def find_overlapping_for_organizer(
    db: AsyncSession,
    organizer_id: int,
    start_at: datetime,
    end_at: datetime,
    ignore_event_id: Optional[int] = None,
) -> List[Event]:
    query = select(Event).filter(
        Event.organizer_id == organizer_id, overlaps_window(start_at, end_at)
    )
    if ignore_event_id is not None:
        query = query.filter(Event.id != ignore_event_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_event(
    db: AsyncSession, event: EventCreate, organizer_id: int
) -> Event:
    db_event = Event(**event.model_dump(), organizer_id=organizer_id)
    db.add(db_event)
    await db.flush()
    await db.refresh(db_event)
    return db_event


async def update_event(db: AsyncSession, db_event: Event, event: EventUpdate) -> Event:
    # organizer_id and created_at are never part of the payload
    for key, value in event.model_dump().items():
        setattr(db_event, key, value)
    await db.flush()
    await db.refresh(db_event)
    return db_event


async def delete_event(db: AsyncSession, db_event: Event) -> None:
    await db.execute(delete(Registration).where(Registration.event_id == db_event.id))
    await db.delete(db_event)
    await db.flush()
