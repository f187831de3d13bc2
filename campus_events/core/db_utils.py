from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def db_transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Commit on success, roll the whole unit of work back on any exception."""
    try:
        yield db
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise e
