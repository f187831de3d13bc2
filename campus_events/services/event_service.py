import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.core.db_utils import db_transaction
from campus_events.core.errors import ConflictError, EventRuleError, ForbiddenError, NotFoundError
from campus_events.crud import event as event_crud
from campus_events.crud import registration as registration_crud
from campus_events.crud import user as user_crud
from campus_events.middleware.monitoring import metrics
from campus_events.models.event import Event as EventModel
from campus_events.models.types import utcnow
from campus_events.models.user import User
from campus_events.schemas.event import (
    Event,
    EventCreate,
    EventFilter,
    EventUpdate,
    RegistrationResult,
)
from campus_events.services import rules

logger = logging.getLogger(__name__)


def to_event_view(
    event: EventModel,
    registered: int,
    viewer: Optional[User] = None,
    is_registered: bool = False,
) -> Event:
    view = Event.model_validate(event)
    return view.model_copy(
        update={
            "registered": registered,
            "is_registered": is_registered,
            "can_edit": bool(
                viewer is not None
                and viewer.is_organizer
                and event.organizer_id == viewer.id
            ),
        }
    )


async def list_events(db: AsyncSession, filters: EventFilter) -> List[Event]:
    events = await event_crud.get_events_filtered(db, filters, now=utcnow())
    counts = await event_crud.count_registrations_by_event(db, (e.id for e in events))
    return [to_event_view(e, counts.get(e.id, 0)) for e in events]


async def get_event_detail(
    db: AsyncSession, event_id: int, viewer: Optional[User] = None
) -> Event:
    event = await event_crud.get_event(db, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    registered = await event_crud.count_registrations(db, event_id)
    is_registered = viewer is not None and await registration_crud.is_registered(
        db, event_id, viewer.id
    )
    return to_event_view(event, registered, viewer=viewer, is_registered=is_registered)


async def _lock_caller(db: AsyncSession, user_id: int) -> User:
    caller = await user_crud.lock(db, user_id)
    if caller is None:
        raise NotFoundError("User not found")
    return caller


async def create_event(
    db: AsyncSession, organizer: User, event_data: EventCreate
) -> Event:
    """
    Validates the candidate against the organizer's schedule and inserts it
    in the same transaction.
    """
    organizer_id = user_crud.identity(organizer)
    async with db_transaction(db):
        caller = await _lock_caller(db, organizer_id)
        await rules.check_can_write_event(db, caller, event_data)
        event = await event_crud.create_event(
            db, event=event_data, organizer_id=organizer_id
        )
    metrics.events_created_total.inc()
    logger.info("Organizer %s created event %s at %r", organizer_id, event.id, event.location)
    return to_event_view(event, 0, viewer=caller)


async def update_event(
    db: AsyncSession, event_id: int, organizer: User, event_data: EventUpdate
) -> Event:
    organizer_id = user_crud.identity(organizer)
    async with db_transaction(db):
        caller = await _lock_caller(db, organizer_id)
        event = await event_crud.get_event(db, event_id, for_update=True)
        event = rules.check_can_manage_event(event, caller)
        await rules.check_can_write_event(db, caller, event_data, existing=event)
        event = await event_crud.update_event(db, event, event_data)
        registered = await event_crud.count_registrations(db, event.id)
    logger.info("Organizer %s updated event %s", organizer_id, event_id)
    return to_event_view(event, registered, viewer=caller)


async def delete_event(db: AsyncSession, event_id: int, organizer: User) -> None:
    """Deletes the event and every registration for it."""
    organizer_id = user_crud.identity(organizer)
    async with db_transaction(db):
        caller = await _lock_caller(db, organizer_id)
        event = await event_crud.get_event(db, event_id, for_update=True)
        event = rules.check_can_manage_event(event, caller)
        await event_crud.delete_event(db, event)
    logger.info("Organizer %s deleted event %s", organizer_id, event_id)


async def register_for_event(
    db: AsyncSession, event_id: int, user: User, now: Optional[datetime] = None
) -> RegistrationResult:
    """
    Runs the registration checks and inserts the registration under the
    user's and the event's row locks. The insert re-checks the seat count
    itself, so two racing requests can never both take the last seat.

    A rejection rolls the session back and expires every instance loaded in
    it, ``user`` included. Only the captured id is used past that point.
    """
    now = now or utcnow()
    user_id = user_crud.identity(user)
    try:
        async with db_transaction(db):
            caller = await _lock_caller(db, user_id)
            event = await event_crud.get_event(db, event_id, for_update=True)
            await rules.check_can_register(db, event, caller, now)

            inserted = await registration_crud.insert_if_seat_available(
                db, event_id=event_id, user_id=user_id, registered_at=now
            )
            if not inserted:
                raise ConflictError("No seats available")
            registered = await event_crud.count_registrations(db, event_id)
    except IntegrityError:
        # Unique (user_id, event_id) lost a race with a concurrent request
        metrics.registrations_total.labels(outcome="rejected").inc()
        raise ConflictError("Already registered for this event")
    except EventRuleError as e:
        metrics.registrations_total.labels(outcome="rejected").inc()
        logger.info("Registration of user %s for event %s rejected: %s", user_id, event_id, e.message)
        raise

    metrics.registrations_total.labels(outcome="accepted").inc()
    logger.info("Student %s registered for event %s (%s taken)", user_id, event_id, registered)
    return RegistrationResult(ok=True, registered=registered)


async def unregister_for_event(
    db: AsyncSession, event_id: int, user: User
) -> RegistrationResult:
    user_id = user_crud.identity(user)
    async with db_transaction(db):
        caller = await _lock_caller(db, user_id)
        await event_crud.get_event(db, event_id, for_update=True)
        registration = await rules.check_can_unregister(db, event_id, caller)
        await registration_crud.delete_registration(db, registration)
        registered = await event_crud.count_registrations(db, event_id)
    metrics.registrations_total.labels(outcome="withdrawn").inc()
    logger.info("Student %s withdrew from event %s", user_id, event_id)
    return RegistrationResult(ok=True, registered=registered)


async def get_conflicting_events(
    db: AsyncSession, event_id: int, student: User
) -> List[Event]:
    """The student's registered events that overlap the given event."""
    if student.is_organizer:
        raise ForbiddenError("Organizers hold no registrations.")
    event = await event_crud.get_event(db, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    overlapping = await registration_crud.find_overlapping_for_user(
        db, student.id, event.start_at, event.end_at, exclude_event_id=event.id
    )
    counts = await event_crud.count_registrations_by_event(db, (e.id for e in overlapping))
    return [
        to_event_view(e, counts.get(e.id, 0), viewer=student, is_registered=True)
        for e in overlapping
    ]
