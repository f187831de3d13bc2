from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.api import deps
from campus_events.core.settings import settings
from campus_events.models.user import User, UserRole
from campus_events.schemas.event import Event as EventSchema
from campus_events.schemas.event import (
    EventCreate,
    EventFilter,
    EventUpdate,
    RegistrationResult,
)
from campus_events.services import event_service

router = APIRouter()


@router.post(
    "/",
    response_model=EventSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Create New Event",
)  # type: ignore[misc]
async def create_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_in: EventCreate,
    current_user: User = Depends(deps.require_role(UserRole.ORGANIZER)),
) -> EventSchema:
    """
    **Create New Event** (Organizer Only)

    Publish an event in one of the organizer's rooms.

    **Request Body:**
    - `title` (string): Event title
    - `start_at` / `end_at` (datetime): Time slot, ISO format, end after start
    - `location` (string): Room or venue
    - `capacity` (integer): Seats available, zero or more
    - `category`, `description`, `image_url`, `tags` (optional)

    **Example Request:**
    ```json
    {
        "title": "Intro to Robotics",
        "start_at": "2026-03-02T10:00:00Z",
        "end_at": "2026-03-02T12:00:00Z",
        "location": "Lab 2",
        "capacity": 30,
        "category": "Workshop"
    }
    ```

    **Errors:**
    - `401`: Authentication required
    - `403`: Caller is not an organizer
    - `409`: The organizer already uses that room in an overlapping slot
    - `422`: Invalid event data
    """
    return await event_service.create_event(
        db=db, organizer=current_user, event_data=event_in
    )


@router.get("/", response_model=List[EventSchema], summary="List Events with Filters")  # type: ignore[misc]
async def read_events(
    db: AsyncSession = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[str] = Query(None, description="Filter by category"),
    location: Optional[str] = Query(None, description="Filter by location"),
    organizer_id: Optional[int] = Query(None, description="Filter by organizer"),
    search: Optional[str] = Query(None, description="Search event titles"),
    upcoming_only: bool = Query(False, description="Hide events that have ended"),
    available_only: bool = Query(
        False, description="Show only events with free seats"
    ),
) -> List[EventSchema]:
    """
    **Retrieve Events with Filtering**

    Public, soonest first. Seat counts are read live for every request.

    **Example Requests:**
    ```bash
    GET /api/v1/events/?category=Workshop&upcoming_only=true
    GET /api/v1/events/?location=lab&available_only=true&skip=20&limit=10
    ```
    """
    filters = EventFilter(
        skip=skip,
        limit=limit,
        category=category,
        location=location,
        organizer_id=organizer_id,
        search=search,
        upcoming_only=upcoming_only,
        available_only=available_only,
    )
    return await event_service.list_events(db=db, filters=filters)


@router.get("/{event_id}", response_model=EventSchema, summary="Get Event Details")  # type: ignore[misc]
async def read_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: Optional[User] = Depends(deps.get_optional_user),
) -> EventSchema:
    """
    **Get Event by ID**

    With a bearer token the response also tells whether the caller is
    registered (`is_registered`) and may edit the event (`can_edit`).

    **Errors:**
    - `404`: Event not found
    """
    return await event_service.get_event_detail(
        db=db, event_id=event_id, viewer=current_user
    )


@router.put("/{event_id}", response_model=EventSchema, summary="Update Event")  # type: ignore[misc]
async def update_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    event_in: EventUpdate,
    current_user: User = Depends(deps.require_role(UserRole.ORGANIZER)),
) -> EventSchema:
    """
    **Update Event Details** (Owning Organizer Only)

    Replaces every editable field. Capacity may not drop below the number
    of current registrations.

    **Errors:**
    - `403`: Caller does not own the event
    - `404`: Event not found
    - `409`: Room clash with another of the organizer's events
    - `422`: Invalid update data
    """
    return await event_service.update_event(
        db=db, event_id=event_id, organizer=current_user, event_data=event_in
    )


@router.delete("/{event_id}", summary="Delete Event")  # type: ignore[misc]
async def delete_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(deps.require_role(UserRole.ORGANIZER)),
) -> dict:
    """
    **Delete Event** (Owning Organizer Only)

    Permanently deletes the event together with all of its registrations.
    """
    await event_service.delete_event(db=db, event_id=event_id, organizer=current_user)
    return {"detail": "Event deleted successfully"}


@router.post(
    "/{event_id}/register",
    response_model=RegistrationResult,
    summary="Register for Event",
)  # type: ignore[misc]
async def register_for_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> RegistrationResult:
    """
    **Register for Event**

    Takes one seat for the calling student.

    **Errors:**
    - `403`: Organizers cannot register
    - `404`: Event not found
    - `409`: Time conflict, no seats, event ended or already registered
    """
    return await event_service.register_for_event(
        db=db, event_id=event_id, user=current_user
    )


@router.delete(
    "/{event_id}/register",
    response_model=RegistrationResult,
    summary="Cancel Registration",
)  # type: ignore[misc]
async def unregister_for_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(deps.get_current_user),
) -> RegistrationResult:
    return await event_service.unregister_for_event(
        db=db, event_id=event_id, user=current_user
    )


@router.get(
    "/{event_id}/conflicts",
    response_model=List[EventSchema],
    summary="Registered Events Overlapping This One",
)  # type: ignore[misc]
async def read_conflicts(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(deps.require_role(UserRole.STUDENT)),
) -> List[EventSchema]:
    """The caller's registered events whose time slot overlaps this event."""
    return await event_service.get_conflicting_events(
        db=db, event_id=event_id, student=current_user
    )
