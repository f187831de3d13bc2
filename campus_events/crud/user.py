from typing import Any, Optional

from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_events.models.user import User


def identity(user: User) -> int:
    """The user's primary key, read from the identity map key.

    Safe on an instance that a rollback has expired; reading ``user.id`` there
    would need a lazy load.
    """
    key = inspect(user).identity
    if key is None:
        raise ValueError("User has not been persisted")
    return int(key[0])


async def get(db: AsyncSession, id: Any, for_update: bool = False) -> Optional[User]:
    query = select(User).filter(User.id == id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    first: Optional[User] = result.scalars().first()
    return first


async def lock(db: AsyncSession, user_id: int) -> Optional[User]:
    """Hold the user's row for the rest of the transaction.

    Every write a user performs takes this lock first, then the event row,
    so checks made under it stay true until commit. The returned row is
    freshly loaded in this session.
    """
    return await get(db, user_id, for_update=True)
