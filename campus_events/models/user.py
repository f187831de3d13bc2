import enum
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base
from .types import UTCDateTime, utcnow

if TYPE_CHECKING:
    from .event import Event
    from .registration import Registration


class UserRole(str, enum.Enum):
    STUDENT = "student"
    ORGANIZER = "organizer"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    profile_picture_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    # Relationships
    registrations: Mapped[List["Registration"]] = relationship(
        "Registration", back_populates="user", cascade="all, delete-orphan"
    )
    organized_events: Mapped[List["Event"]] = relationship(
        "Event", back_populates="organizer"
    )

    __table_args__ = (Index("idx_user_role_created", "role", "created_at"),)

    @property
    def is_organizer(self) -> bool:
        return self.role == UserRole.ORGANIZER
