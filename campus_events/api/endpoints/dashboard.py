from typing import List, Union

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.api import deps
from campus_events.models.user import User
from campus_events.schemas.dashboard import (
    OrganizerDashboard,
    StudentDashboard,
    UserRoleView,
)
from campus_events.schemas.event import Event, RegistrationResult
from campus_events.services import dashboard, event_service

router = APIRouter()


@router.get("/me", response_model=Union[OrganizerDashboard, StudentDashboard])  # type: ignore[misc]
async def read_my_dashboard(
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Union[OrganizerDashboard, StudentDashboard]:
    """Dashboard for the caller's own role."""
    if current_user.is_organizer:
        return await dashboard.get_organizer_dashboard(db, current_user.id)
    return await dashboard.get_student_dashboard(db, current_user.id)


@router.get("/student/{student_id}", response_model=StudentDashboard)  # type: ignore[misc]
async def read_student_dashboard(
    *,
    db: AsyncSession = Depends(deps.get_db),
    student_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> StudentDashboard:
    """
    **Student Dashboard**

    Registered events, most recently registered first, with live seat counts.
    """
    deps.require_self(student_id, current_user)
    return await dashboard.get_student_dashboard(db, student_id)


@router.delete(
    "/student/{student_id}/events/{event_id}", response_model=RegistrationResult
)  # type: ignore[misc]
async def withdraw_from_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    student_id: int,
    event_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> RegistrationResult:
    deps.require_self(student_id, current_user)
    return await event_service.unregister_for_event(
        db=db, event_id=event_id, user=current_user
    )


@router.get(
    "/student/{student_id}/conflicts/{event_id}", response_model=List[Event]
)  # type: ignore[misc]
async def read_student_conflicts(
    *,
    db: AsyncSession = Depends(deps.get_db),
    student_id: int,
    event_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> List[Event]:
    """The student's registered events that overlap the given event."""
    deps.require_self(student_id, current_user)
    return await event_service.get_conflicting_events(
        db=db, event_id=event_id, student=current_user
    )


@router.get("/organizer/{organizer_id}", response_model=OrganizerDashboard)  # type: ignore[misc]
async def read_organizer_dashboard(
    *,
    db: AsyncSession = Depends(deps.get_db),
    organizer_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> OrganizerDashboard:
    """
    **Organizer Dashboard**

    Published events, newest first, and the registrations across all of them.
    """
    deps.require_self(organizer_id, current_user)
    return await dashboard.get_organizer_dashboard(db, organizer_id)


@router.get("/user/{user_id}/role", response_model=UserRoleView)  # type: ignore[misc]
async def read_user_role(
    *,
    db: AsyncSession = Depends(deps.get_db),
    user_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> UserRoleView:
    return await dashboard.get_user_role(db, user_id)
