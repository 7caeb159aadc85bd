"""
StudyHub Backend - Material Store Adapter
=========================================

What:  Persistence primitives for materials: insert, find, update, delete,
       count, page, and set-style upvote add/remove.
How:   Each primitive opens its own session from the factory and runs in
       one transaction (`async_sessionmaker.begin()`), so independent reads
       can run concurrently with asyncio.gather.
Who:   MaterialService. Nothing else issues SQL against the materials tables.

Uniqueness:
    materials.material_link carries the unique constraint
    `uq_materials_material_link`. Whatever the controller pre-checks, the
    database is the final arbiter: an insert or update that collides is
    rolled back and re-raised as DuplicateMaterialError.

Upvote set semantics:
    add_upvote      INSERT ... SELECT ... WHERE NOT EXISTS (voter) AND EXISTS (material)
    remove_upvote   DELETE ... WHERE material_id = :id AND email = :email
    Adding a present voter and removing an absent one are both no-ops. Two
    concurrent adds that both pass the NOT EXISTS test collide on the
    (material_id, email) primary key; the loser's IntegrityError is the
    no-op outcome and is not reported.

Error translation:
    IntegrityError on material_link  → DuplicateMaterialError
    any other SQLAlchemyError        → StoreFailureError (original chained)
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import String, delete, func, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from studyhub.exceptions import DuplicateMaterialError, StoreFailureError
from studyhub.models.material import (
    NOT_VERIFIED,
    VERIFIED,
    Material,
    MaterialBranch,
    MaterialUpvote,
    utcnow,
)
from studyhub.validation import validate_document

logger = logging.getLogger(__name__)

# Listing visibility: 'verified', legacy rows without the column (NULL) and
# 'notVerified'. Only a moderation state outside this tuple would be hidden.
DEFAULT_VISIBLE_STATUSES: Tuple[Optional[str], ...] = (VERIFIED, None, NOT_VERIFIED)

_LINK_CONSTRAINT_MARKER = "material_link"


@dataclass(frozen=True)
class MaterialFilter:
    """
    Listing criteria, translated into SQL by `clauses()`.

    None in `visible_statuses` stands for "verified_by is NULL".
    An empty `visible_statuses` tuple disables the moderation predicate.
    """

    material_type: Optional[str] = None
    semester: Optional[int] = None
    branch: Optional[str] = None
    visible_statuses: Tuple[Optional[str], ...] = DEFAULT_VISIBLE_STATUSES

    def clauses(self) -> List[ColumnElement[bool]]:
        clauses: List[ColumnElement[bool]] = []

        if self.visible_statuses:
            named = [status for status in self.visible_statuses if status is not None]
            alternatives: List[ColumnElement[bool]] = []
            if named:
                alternatives.append(Material.verified_by.in_(named))
            if None in self.visible_statuses:
                alternatives.append(Material.verified_by.is_(None))
            clauses.append(or_(*alternatives))

        if self.material_type is not None:
            clauses.append(Material.material_type == self.material_type)
        if self.semester is not None:
            clauses.append(Material.semester == self.semester)
        if self.branch is not None:
            clauses.append(
                Material.id.in_(
                    select(MaterialBranch.material_id).where(MaterialBranch.branch == self.branch)
                )
            )
        return clauses


def _is_link_conflict(exc: IntegrityError) -> bool:
    return _LINK_CONSTRAINT_MARKER in str(exc.orig)


def document_of(material: Material) -> Dict[str, Any]:
    """Snake_case field dict of a material, as checked by MaterialDocument."""
    return {
        "subject": material.subject,
        "semester": material.semester,
        "instructor_name": material.instructor_name,
        "course_code": material.course_code,
        "desc": material.desc,
        "author": material.author,
        "year_of_writing": material.year_of_writing,
        "branch": material.branch,
        "material_type": material.material_type,
        "material_link": material.material_link,
        "thumbnail": material.thumbnail,
        "featured": material.featured,
        "contributed_by": material.contributed_by,
        "verified_by": material.verified_by,
    }


class MaterialStore:
    """Async SQLAlchemy implementation of the material persistence primitives."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """
        One session, one transaction. Commits on normal exit, rolls back on
        any exception, and translates database errors.
        """
        try:
            async with self._session_factory.begin() as session:
                yield session
        except IntegrityError as exc:
            if _is_link_conflict(exc):
                logger.info("Material link conflict during %s", operation)
                raise DuplicateMaterialError(context={"operation": operation}) from exc
            logger.error("Integrity error during %s: %s", operation, exc.orig)
            raise StoreFailureError(
                context={"operation": operation, "error_type": type(exc).__name__}
            ) from exc
        except SQLAlchemyError as exc:
            logger.error("Database error during %s: %s", operation, str(exc), exc_info=True)
            raise StoreFailureError(
                context={"operation": operation, "error_type": type(exc).__name__}
            ) from exc

    # ── Writes ────────────────────────────────────────────────────────────

    async def insert(self, material: Material) -> Material:
        """
        Persist a new material.

        Raises:
            DuplicateMaterialError: the link is already stored (including a
                concurrent insert that committed first).
        """
        async with self._transaction("insert") as session:
            session.add(material)
        logger.debug("Inserted material %s", material.id)
        return material

    async def update_by_id(
        self, material_id: str, fields: Mapping[str, Any]
    ) -> Optional[Material]:
        """
        Apply `fields` (ORM attribute names, `branch` included) to a stored
        material, re-validate the merged document and refresh `updated_at`.

        Returns None when the id does not resolve.

        Raises:
            ValidationError: the merged document breaks a stored-document constraint.
            DuplicateMaterialError: the new link belongs to another material.
        """
        async with self._transaction("update") as session:
            material = await session.get(Material, material_id)
            if material is None:
                return None
            for attribute, value in fields.items():
                setattr(material, attribute, value)
            validate_document(document_of(material))
            material.updated_at = utcnow()
            await session.flush()
        return material

    async def delete_by_id(self, material_id: str) -> bool:
        """Delete a material with its branch and upvote rows. False if absent."""
        async with self._transaction("delete") as session:
            material = await session.get(Material, material_id)
            if material is None:
                return False
            await session.delete(material)
        return True

    async def add_upvote(self, material_id: str, email: str) -> Optional[Material]:
        """Add `email` to the material's upvotes unless present. None if the material is gone."""
        voter_exists = (
            select(MaterialUpvote.email)
            .where(MaterialUpvote.material_id == material_id, MaterialUpvote.email == email)
            .exists()
        )
        material_exists = select(Material.id).where(Material.id == material_id).exists()
        statement = insert(MaterialUpvote.__table__).from_select(
            ["material_id", "email"],
            select(literal(material_id, String), literal(email, String)).where(
                material_exists, ~voter_exists
            ),
        )
        try:
            async with self._session_factory.begin() as session:
                result = await session.execute(statement)
                if result.rowcount:
                    await self._touch(session, material_id)
        except IntegrityError:
            logger.debug("Upvote by %s on %s was recorded concurrently", email, material_id)
        except SQLAlchemyError as exc:
            logger.error("Database error during add_upvote: %s", str(exc), exc_info=True)
            raise StoreFailureError(
                context={"operation": "add_upvote", "error_type": type(exc).__name__}
            ) from exc
        return await self.find_by_id(material_id)

    async def remove_upvote(self, material_id: str, email: str) -> Optional[Material]:
        """Remove `email` from the material's upvotes if present. None if the material is gone."""
        async with self._transaction("remove_upvote") as session:
            result = await session.execute(
                delete(MaterialUpvote).where(
                    MaterialUpvote.material_id == material_id,
                    MaterialUpvote.email == email,
                )
            )
            if result.rowcount:
                await self._touch(session, material_id)
        return await self.find_by_id(material_id)

    @staticmethod
    async def _touch(session: AsyncSession, material_id: str) -> None:
        await session.execute(
            update(Material).where(Material.id == material_id).values(updated_at=utcnow())
        )

    # ── Reads ─────────────────────────────────────────────────────────────

    async def find_by_id(self, material_id: str) -> Optional[Material]:
        async with self._transaction("find_by_id") as session:
            return await session.get(Material, material_id)

    async def find_one_by_link(self, material_link: str) -> Optional[Material]:
        async with self._transaction("find_one_by_link") as session:
            result = await session.execute(
                select(Material).where(Material.material_link == material_link)
            )
            return result.scalar_one_or_none()

    async def count_matching(self, criteria: MaterialFilter) -> int:
        async with self._transaction("count_matching") as session:
            result = await session.execute(
                select(func.count()).select_from(Material).where(*criteria.clauses())
            )
            return result.scalar_one()

    async def query_page(
        self, criteria: MaterialFilter, skip: int, limit: int
    ) -> Sequence[Material]:
        """Materials matching `criteria`, newest first, rows skip..skip+limit."""
        async with self._transaction("query_page") as session:
            result = await session.execute(
                select(Material)
                .where(*criteria.clauses())
                .order_by(Material.created_at.desc(), Material.id.desc())
                .offset(skip)
                .limit(limit)
            )
            return list(result.scalars().all())
