"""Per-user dashboard views built from live registration counts."""

from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.core.errors import NotFoundError, RuleValidationError
from campus_events.crud import event as event_crud
from campus_events.crud import registration as registration_crud
from campus_events.crud import user as user_crud
from campus_events.models.user import User, UserRole
from campus_events.schemas.dashboard import (
    DashboardEvent,
    OrganizerDashboard,
    StudentDashboard,
    UserRoleView,
)


async def _get_user_with_role(db: AsyncSession, user_id: int, role: UserRole) -> User:
    user = await user_crud.get(db, user_id)
    if user is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    if user.role != role:
        raise RuleValidationError(f"User {user_id} is not a {role.value}")
    return user


async def get_student_dashboard(db: AsyncSession, student_id: int) -> StudentDashboard:
    """Registered events, most recently registered first."""
    student = await _get_user_with_role(db, student_id, UserRole.STUDENT)

    registrations = await registration_crud.get_registrations_for_user(db, student.id)
    counts = await event_crud.count_registrations_by_event(
        db, (r.event_id for r in registrations)
    )

    events = [
        DashboardEvent(
            id=r.event.id,
            title=r.event.title,
            start_at=r.event.start_at,
            end_at=r.event.end_at,
            location=r.event.location,
            description=r.event.description,
            category=r.event.category,
            capacity=r.event.capacity,
            registered=counts.get(r.event_id, 0),
            organizer_name=r.event.organizer.username if r.event.organizer else "Unknown",
            registered_at=r.registered_at,
        )
        for r in registrations
    ]

    return StudentDashboard(
        student_id=student.id,
        student_name=student.username,
        student_email=student.email,
        registered_events=events,
        total_registrations=len(events),
    )


async def get_organizer_dashboard(
    db: AsyncSession, organizer_id: int
) -> OrganizerDashboard:
    """Published events, newest first, with the registrations across all of them."""
    organizer = await _get_user_with_role(db, organizer_id, UserRole.ORGANIZER)

    published = await event_crud.get_events_by_organizer(db, organizer.id)
    counts = await event_crud.count_registrations_by_event(db, (e.id for e in published))

    events = [
        DashboardEvent(
            id=e.id,
            title=e.title,
            start_at=e.start_at,
            end_at=e.end_at,
            location=e.location,
            description=e.description,
            category=e.category,
            capacity=e.capacity,
            registered=counts.get(e.id, 0),
            created_at=e.created_at,
        )
        for e in published
    ]

    return OrganizerDashboard(
        organizer_id=organizer.id,
        organizer_name=organizer.username,
        organizer_email=organizer.email,
        published_events=events,
        total_events=len(events),
        total_registrations=sum(event.registered for event in events),
    )


async def get_user_role(db: AsyncSession, user_id: int) -> UserRoleView:
    user = await user_crud.get(db, user_id)
    if user is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    return UserRoleView(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        profile_picture_url=user.profile_picture_url,
    )
