from datetime import timedelta
from typing import Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.core.errors import ForbiddenError, NotFoundError, RuleValidationError
from campus_events.crud import event as event_crud
from campus_events.models.user import User, UserRole
from campus_events.services import event_service, rules
from conftest import at, event_payload


# --- Interval overlap ---


@pytest.mark.parametrize(  # type: ignore[misc]
    "a, b, expected",
    [
        ((at(10), at(12)), (at(11), at(13)), True),
        ((at(10), at(12)), (at(12), at(13)), False),
        ((at(10), at(12)), (at(8), at(10)), False),
        ((at(10), at(12)), (at(10, 30), at(11)), True),
        ((at(10), at(12)), (at(10), at(12)), True),
        ((at(10), at(12)), (at(13), at(14)), False),
    ],
)
def test_intervals_overlap(a: tuple, b: tuple, expected: bool) -> None:
    assert rules.intervals_overlap(*a, *b) is expected
    assert rules.intervals_overlap(*b, *a) is expected


def test_one_minute_overlap_counts() -> None:
    assert rules.intervals_overlap(at(9), at(10), at(9, 59), at(11))


def test_normalize_location() -> None:
    assert rules.normalize_location("  Lab   2 ") == "lab 2"
    assert rules.normalize_location("LAB 2") == rules.normalize_location("lab 2")
    assert rules.normalize_location("Lab 2") != rules.normalize_location("Lab 3")


# --- Store-backed checks ---


async def test_room_clash_ignores_other_organizers(
    db: AsyncSession,
    organizer: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    other = await make_user(UserRole.ORGANIZER)
    await event_service.create_event(db, organizer, event_payload())

    assert await rules.has_room_clash(db, organizer.id, "lab 2", at(11), at(13))
    assert not await rules.has_room_clash(db, other.id, "Lab 2", at(11), at(13))


async def test_room_clash_skips_the_event_being_edited(
    db: AsyncSession, organizer: User
) -> None:
    created = await event_service.create_event(db, organizer, event_payload())

    assert not await rules.has_room_clash(
        db, organizer.id, "Lab 2", at(10), at(12), ignore_event_id=created.id
    )


async def test_time_conflict_only_sees_registered_events(
    db: AsyncSession, organizer: User, student: User
) -> None:
    first = await event_service.create_event(
        db, organizer, event_payload(start_at=at(9), end_at=at(10))
    )
    assert not await rules.has_time_conflict(db, student.id, at(9, 30), at(10, 30))

    await event_service.register_for_event(db, first.id, student, now=at(0))

    assert await rules.has_time_conflict(db, student.id, at(9, 30), at(10, 30))
    assert not await rules.has_time_conflict(db, student.id, at(10), at(11))
    assert not await rules.has_time_conflict(
        db, student.id, at(9), at(10), exclude_event_id=first.id
    )


async def test_check_can_unregister_requires_registration(
    db: AsyncSession, organizer: User, student: User
) -> None:
    created = await event_service.create_event(db, organizer, event_payload())

    with pytest.raises(NotFoundError, match="Not registered"):
        await rules.check_can_unregister(db, created.id, student)

    with pytest.raises(ForbiddenError):
        await rules.check_can_unregister(db, created.id, organizer)


async def test_check_can_write_event_validation_order(
    db: AsyncSession, organizer: User, student: User
) -> None:
    with pytest.raises(ForbiddenError):
        await rules.check_can_write_event(db, student, event_payload())

    with pytest.raises(RuleValidationError, match="Title is required"):
        await rules.check_can_write_event(db, organizer, event_payload(title="   "))

    with pytest.raises(RuleValidationError, match="End time must be after start time"):
        await rules.check_can_write_event(
            db, organizer, event_payload(end_at=at(10))
        )

    with pytest.raises(RuleValidationError, match="Capacity must be non-negative"):
        await rules.check_can_write_event(db, organizer, event_payload(capacity=-1))


async def test_check_can_manage_event_rejects_other_organizers(
    db: AsyncSession,
    organizer: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    other = await make_user(UserRole.ORGANIZER)
    created = await event_service.create_event(db, organizer, event_payload())
    event = await event_crud.get_event(db, created.id)

    assert rules.check_can_manage_event(event, organizer) is event
    with pytest.raises(ForbiddenError, match="Only the event's organizer"):
        rules.check_can_manage_event(event, other)
    with pytest.raises(NotFoundError):
        rules.check_can_manage_event(None, organizer)


async def test_end_before_start_is_rejected(db: AsyncSession, organizer: User) -> None:
    payload = event_payload(start_at=at(12), end_at=at(12) - timedelta(minutes=1))
    with pytest.raises(RuleValidationError):
        await rules.check_can_write_event(db, organizer, payload)
