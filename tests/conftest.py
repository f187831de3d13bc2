"""Shared fixtures: a file-backed SQLite database per test, users and an API client."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    # Insert at front so local package imports resolve
    sys.path.insert(0, str(REPO_ROOT))

from campus_events.core.database_manager import DatabaseManager, get_db  # noqa: E402
from campus_events.core.security import create_access_token  # noqa: E402
from campus_events.main import app  # noqa: E402
from campus_events.models.user import User, UserRole  # noqa: E402
from campus_events.schemas.event import EventCreate  # noqa: E402

# A fixed Monday far enough ahead that nothing has ended yet
BASE_DAY = datetime(2030, 3, 4, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: int = 0) -> datetime:
    return BASE_DAY + timedelta(days=day, hours=hour, minutes=minute)


def event_payload(**overrides: Any) -> EventCreate:
    data: Dict[str, Any] = {
        "title": "Intro to Robotics",
        "start_at": at(10),
        "end_at": at(12),
        "location": "Lab 2",
        "capacity": 30,
        "category": "Workshop",
    }
    data.update(overrides)
    return EventCreate(**data)


@pytest.fixture  # type: ignore[misc]
async def manager(tmp_path: Path) -> AsyncGenerator[DatabaseManager, None]:
    db_manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'campus_events.db'}")
    await db_manager.create_all()
    yield db_manager
    await db_manager.drop_all()
    await db_manager.close()


@pytest.fixture  # type: ignore[misc]
async def db(manager: DatabaseManager) -> AsyncGenerator[AsyncSession, None]:
    assert manager.session_factory is not None
    async with manager.session_factory() as session:
        yield session


@pytest.fixture  # type: ignore[misc]
def make_user(manager: DatabaseManager) -> Callable[..., Awaitable[User]]:
    counter = {"n": 0}

    async def _make_user(role: UserRole = UserRole.STUDENT, username: str = "") -> User:
        counter["n"] += 1
        name = username or f"{role.value}{counter['n']}"
        assert manager.session_factory is not None
        async with manager.session_factory() as session:
            user = User(email=f"{name}@campus.edu", username=name, role=role)
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _make_user


@pytest.fixture  # type: ignore[misc]
async def organizer(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user(UserRole.ORGANIZER, "olivia")


@pytest.fixture  # type: ignore[misc]
async def student(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user(UserRole.STUDENT, "sam")


@pytest.fixture  # type: ignore[misc]
async def client(manager: DatabaseManager) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        assert manager.session_factory is not None
        async with manager.session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
