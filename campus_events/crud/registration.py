from datetime import datetime
from typing import List, Optional

from sqlalchemy import Integer, func, insert, literal, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from campus_events.models.event import Event
from campus_events.models.registration import Registration
from campus_events.models.types import UTCDateTime

from .event import overlaps_window


async def get_registration(
    db: AsyncSession, event_id: int, user_id: int
) -> Optional[Registration]:
    result = await db.execute(
        select(Registration).filter(
            Registration.event_id == event_id, Registration.user_id == user_id
        )
    )
    first: Optional[Registration] = result.scalars().first()
    return first


async def is_registered(db: AsyncSession, event_id: int, user_id: int) -> bool:
    return await get_registration(db, event_id, user_id) is not None


async def find_overlapping_for_user(
    db: AsyncSession,
    user_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_event_id: Optional[int] = None,
) -> List[Event]:
    """Events the user is registered for that overlap ``[start_at, end_at)``."""
    query = (
        select(Event)
        .join(Registration, Registration.event_id == Event.id)
        .filter(Registration.user_id == user_id, overlaps_window(start_at, end_at))
        .order_by(Event.start_at)
    )
    if exclude_event_id is not None:
        query = query.filter(Event.id != exclude_event_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def insert_if_seat_available(
    db: AsyncSession, event_id: int, user_id: int, registered_at: datetime
) -> bool:
    """Insert the registration only while the event still has a free seat.

    The seat count is read by the INSERT statement itself, so the row is
    written against the count the database sees at write time.
    """
    taken = (
        select(func.count(Registration.id))
        .filter(Registration.event_id == event_id)
        .scalar_subquery()
    )
    capacity = select(Event.capacity).filter(Event.id == event_id).scalar_subquery()
    stmt = insert(Registration.__table__).from_select(
        ["user_id", "event_id", "registered_at"],
        select(
            literal(user_id, Integer),
            literal(event_id, Integer),
            literal(registered_at, UTCDateTime()),
        ).where(capacity > taken),
    )
    result = await db.execute(stmt)
    return bool(result.rowcount == 1)


async def delete_registration(db: AsyncSession, registration: Registration) -> None:
    await db.delete(registration)
    await db.flush()


async def get_registrations_for_user(
    db: AsyncSession, user_id: int
) -> List[Registration]:
    result = await db.execute(
        select(Registration)
        .options(joinedload(Registration.event).joinedload(Event.organizer))
        .filter(Registration.user_id == user_id)
        .order_by(Registration.registered_at.desc(), Registration.id.desc())
    )
    return list(result.scalars().all())

