from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, computed_field

from ..models.user import UserRole


class DashboardEvent(BaseModel):
    id: int
    title: str
    start_at: datetime
    end_at: datetime
    location: str
    description: Optional[str] = None
    category: Optional[str] = None
    capacity: int
    registered: int

    # student view
    organizer_name: Optional[str] = None
    registered_at: Optional[datetime] = None

    # organizer view
    created_at: Optional[datetime] = None

    @computed_field  # type: ignore[misc]
    @property
    def remaining_seats(self) -> int:
        return max(0, self.capacity - self.registered)


class StudentDashboard(BaseModel):
    student_id: int
    student_name: str
    student_email: str
    registered_events: List[DashboardEvent]
    total_registrations: int


class OrganizerDashboard(BaseModel):
    organizer_id: int
    organizer_name: str
    organizer_email: str
    published_events: List[DashboardEvent]
    total_events: int
    total_registrations: int


class UserRoleView(BaseModel):
    user_id: int
    username: str
    email: EmailStr
    role: UserRole
    profile_picture_url: Optional[str] = None
