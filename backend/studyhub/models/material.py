"""
StudyHub Backend - Material SQLAlchemy Models
=============================================

What:  ORM models for the `materials`, `material_branches` and
       `material_upvotes` tables.
Who:   Used by MaterialStore for every read and write, and by Alembic.

Table Design:
    materials
        - id: 24 hex chars (4-byte creation timestamp + 8 random bytes),
          opaque to clients, serialized as `_id`
        - material_link: UNIQUE (uq_materials_material_link); the database
          constraint is what makes concurrent creates with the same link fail
        - thumbnail: always the canonical drive view URL
        - instructor_name / author: ordered JSON string lists
        - verified_by: 'verified' | 'notVerified' | NULL (NULL = legacy rows)

    material_branches
        One row per (material, branch) in submission order. A child table
        keeps "branch contains X" a plain indexed SQL predicate on both
        PostgreSQL and SQLite.

    material_upvotes
        PRIMARY KEY (material_id, email). The key makes the upvote collection
        a set at the storage layer: adding an existing voter or removing an
        absent one changes nothing.

    Index on created_at DESC serves the default listing order.
"""

import secrets
import time
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyhub.database import Base

VERIFIED = "verified"
NOT_VERIFIED = "notVerified"
VERIFICATION_STATES = (VERIFIED, NOT_VERIFIED)


def generate_material_id() -> str:
    """Return a new 24-hex identifier whose prefix is the creation second."""
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Material(Base):
    """
    A study material (notes, assignment, past paper, handout) in the catalog.

    Lifecycle:
        1. Inserted by the create operation after validation, link
           canonicalization and the duplicate pre-check
        2. Mutated field-by-field by update (id and timestamps excluded)
        3. Upvote rows added/removed one email at a time by the upvote toggle
        4. Deleted permanently; branch and upvote rows go with it

    `branch` and `upvotes` are exposed as plain lists of strings so the
    controller and the response schema never deal with child rows.
    """

    __tablename__ = "materials"

    # ── Identity ──────────────────────────────────────────────────────────
    id: Mapped[str] = mapped_column(
        String(24),
        primary_key=True,
        default=generate_material_id,
        comment="Store-assigned identifier, 24 hex characters",
    )

    # ── Descriptive Fields ────────────────────────────────────────────────
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    instructor_name: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    course_code: Mapped[str] = mapped_column(
        String(100), nullable=False, default="", server_default=text("''")
    )
    desc: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )
    author: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    year_of_writing: Mapped[int] = mapped_column(Integer, nullable=False)
    material_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Asset Fields ──────────────────────────────────────────────────────
    material_link: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="External resource URL; unique across all materials",
    )
    thumbnail: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Canonical drive view URL derived from the submitted link",
    )

    # ── Moderation / Social ───────────────────────────────────────────────
    featured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    contributed_by: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Admin", server_default=text("'Admin'")
    )
    verified_by: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        default=NOT_VERIFIED,
        comment="verified | notVerified | NULL for rows predating moderation",
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # ── Child Collections ─────────────────────────────────────────────────
    branch_entries: Mapped[List["MaterialBranch"]] = relationship(
        back_populates="material",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MaterialBranch.position",
    )
    upvote_entries: Mapped[List["MaterialUpvote"]] = relationship(
        back_populates="material",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MaterialUpvote.created_at",
    )

    __table_args__ = (
        UniqueConstraint("material_link", name="uq_materials_material_link"),
        Index("idx_materials_created_at", created_at.desc()),
    )

    @property
    def branch(self) -> List[str]:
        return [entry.branch for entry in self.branch_entries]

    @branch.setter
    def branch(self, values: List[str]) -> None:
        self.branch_entries = [
            MaterialBranch(branch=value, position=position)
            for position, value in enumerate(values)
        ]

    @property
    def upvotes(self) -> List[str]:
        return [entry.email for entry in self.upvote_entries]

    def has_upvote_from(self, email: str) -> bool:
        return email in self.upvotes

    def __repr__(self) -> str:
        return (
            f"<Material(id={self.id}, type='{self.material_type}', "
            f"link='{self.material_link}')>"
        )


class MaterialBranch(Base):
    """One branch (e.g. 'CSE') a material applies to."""

    __tablename__ = "material_branches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("materials.id", ondelete="CASCADE"),
        nullable=False,
    )
    branch: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    material: Mapped[Material] = relationship(back_populates="branch_entries")

    __table_args__ = (
        Index("idx_material_branches_branch", "branch", "material_id"),
    )


class MaterialUpvote(Base):
    """One voter's upvote on one material."""

    __tablename__ = "material_upvotes"

    material_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("materials.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    material: Mapped[Material] = relationship(back_populates="upvote_entries")
