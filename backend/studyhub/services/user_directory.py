"""
StudyHub Backend - User Directory
=================================

What:  Read-only lookup of verified users, used to decide who may upvote.
How:   Case-insensitive match on users.email plus is_verified = true.
Who:   MaterialService.upvote.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyhub.exceptions import StoreFailureError
from studyhub.models.user import User

logger = logging.getLogger(__name__)


class UserDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_verified(self, email: str) -> Optional[User]:
        """The verified user registered under `email`, or None."""
        statement = select(User).where(
            func.lower(User.email) == email.strip().lower(),
            User.is_verified.is_(True),
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return result.scalars().first()
        except SQLAlchemyError as exc:
            logger.error("User lookup failed: %s", str(exc), exc_info=True)
            raise StoreFailureError(
                context={"operation": "find_verified", "error_type": type(exc).__name__}
            ) from exc
