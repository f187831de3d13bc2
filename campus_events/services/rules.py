"""
Registration rules: room clashes, student time conflicts, capacity and
authorization checks.

The checks only read from the store. Callers run them inside the transaction
that performs the guarded write, after taking the row locks for that write.
"""

import re
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RuleValidationError,
)
from campus_events.crud import event as event_crud
from campus_events.crud import registration as registration_crud
from campus_events.models.event import Event
from campus_events.models.registration import Registration
from campus_events.models.user import User
from campus_events.schemas.event import EventBase


_WHITESPACE = re.compile(r"\s+")


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open ``[start, end)`` overlap; shared endpoints do not count."""
    return a_start < b_end and b_start < a_end


def normalize_location(location: str) -> str:
    return _WHITESPACE.sub(" ", location.strip()).casefold()


async def has_room_clash(
    db: AsyncSession,
    organizer_id: int,
    location: str,
    start_at: datetime,
    end_at: datetime,
    ignore_event_id: Optional[int] = None,
) -> bool:
    """True if another event of this organizer uses the same room at an
    overlapping time. Other organizers' events at the same location never clash.
    """
    wanted = normalize_location(location)
    candidates = await event_crud.find_overlapping_for_organizer(
        db, organizer_id, start_at, end_at, ignore_event_id=ignore_event_id
    )
    return any(
        normalize_location(other.location) == wanted
        and intervals_overlap(other.start_at, other.end_at, start_at, end_at)
        for other in candidates
    )


async def has_time_conflict(
    db: AsyncSession,
    user_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_event_id: Optional[int] = None,
) -> bool:
    """True if one of the user's registered events overlaps the window."""
    overlapping = await registration_crud.find_overlapping_for_user(
        db, user_id, start_at, end_at, exclude_event_id=exclude_event_id
    )
    return any(
        intervals_overlap(other.start_at, other.end_at, start_at, end_at)
        for other in overlapping
    )


async def check_can_register(
    db: AsyncSession, event: Optional[Event], caller: User, now: datetime
) -> None:
    """Ordered registration checks; the first failing one is raised."""
    if event is None:
        raise NotFoundError("Event not found")

    if caller.is_organizer:
        raise ForbiddenError("Organizers cannot register for events.")

    if event.organizer_id == caller.id:
        raise ForbiddenError("Organizers cannot register for their own events.")

    if await has_time_conflict(
        db, caller.id, event.start_at, event.end_at, exclude_event_id=event.id
    ):
        raise ConflictError("Time conflict with another registered event.")

    registered = await event_crud.count_registrations(db, event.id)
    if event.capacity - registered <= 0:
        raise ConflictError("No seats available")

    if event.end_at < now:
        raise ConflictError("Event has ended")

    if await registration_crud.is_registered(db, event.id, caller.id):
        raise ConflictError("Already registered for this event")


async def check_can_unregister(
    db: AsyncSession, event_id: int, caller: User
) -> Registration:
    if caller.is_organizer:
        raise ForbiddenError("Organizers have no registrations to cancel.")

    registration = await registration_crud.get_registration(db, event_id, caller.id)
    if registration is None:
        raise NotFoundError("Not registered")
    return registration


def check_can_manage_event(event: Optional[Event], caller: User) -> Event:
    """Only the owning organizer may change or delete an event."""
    if event is None:
        raise NotFoundError("Event not found")
    if not caller.is_organizer or event.organizer_id != caller.id:
        raise ForbiddenError("Only the event's organizer can change it.")
    return event


async def check_can_write_event(
    db: AsyncSession,
    caller: User,
    candidate: EventBase,
    existing: Optional[Event] = None,
) -> None:
    """Validate a create (``existing`` is None) or an in-place update."""
    if not caller.is_organizer:
        raise ForbiddenError("Only organizers can publish events.")
    if existing is not None:
        check_can_manage_event(existing, caller)

    if not candidate.title:
        raise RuleValidationError("Title is required.")
    if not candidate.location:
        raise RuleValidationError("Location is required.")

    if candidate.end_at <= candidate.start_at:
        raise RuleValidationError("End time must be after start time.")

    if candidate.capacity < 0:
        raise RuleValidationError("Capacity must be non-negative")
    if existing is not None:
        registered = await event_crud.count_registrations(db, existing.id)
        if candidate.capacity < registered:
            raise RuleValidationError(
                "Capacity cannot be less than current registrations"
            )

    if await has_room_clash(
        db,
        caller.id,
        candidate.location,
        candidate.start_at,
        candidate.end_at,
        ignore_event_id=existing.id if existing is not None else None,
    ):
        raise ConflictError("Room already booked in that time slot.")
