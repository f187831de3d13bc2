from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ..models.types import ensure_utc


class EventBase(BaseModel):
    title: str = Field(..., max_length=200)
    start_at: datetime
    end_at: datetime
    location: str = Field(..., max_length=200)
    capacity: int = Field(50, description="Maximum number of registrations.")
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list)

    @field_validator("start_at", "end_at")  # type: ignore[misc]
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("title", "location")  # type: ignore[misc]
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("tags")  # type: ignore[misc]
    @classmethod
    def dedupe_tags(cls, v: List[str]) -> List[str]:
        seen: dict[str, None] = {}
        for tag in v:
            tag = tag.strip()
            if tag:
                seen.setdefault(tag, None)
        return list(seen)


class EventCreate(EventBase):
    pass


class EventUpdate(EventBase):
    pass


class Event(EventBase):
    id: int
    organizer_id: int
    created_at: datetime
    registered: int = 0
    is_registered: bool = False
    can_edit: bool = False

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[misc]
    @property
    def remaining_seats(self) -> int:
        return max(self.capacity - self.registered, 0)


class EventFilter(BaseModel):
    category: Optional[str] = None
    location: Optional[str] = None
    organizer_id: Optional[int] = None
    search: Optional[str] = None
    upcoming_only: bool = False
    available_only: bool = False
    skip: int = Field(0, ge=0)
    limit: int = Field(100, ge=1, le=500)


class RegistrationResult(BaseModel):
    ok: bool
    registered: int
