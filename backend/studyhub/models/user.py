"""
StudyHub Backend - User SQLAlchemy Model
========================================

What:  Read-only mapping of the identity service's `users` table.
Who:   UserDirectory (voting eligibility). Nothing in this service writes it;
       accounts, passwords and email verification belong to the identity
       service sharing the database.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Integer, String, false, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from studyhub.database import Base


class User(Base):
    """An account known to the identity service. Only `email` and `is_verified` are read."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', verified={self.is_verified})>"
