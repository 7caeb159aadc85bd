"""
StudyHub Backend - Material Service (Resource Controller)
=========================================================

What:  The material resource operations: create, update, delete, get one,
       list (paginated and filtered), list by type, and the upvote toggle.
How:   validate → canonicalize → duplicate check → persist → shape response.
       Every request-derived value goes through a rule-set or a boundary
       parser before it reaches the store; nothing is persisted when a
       rule fails.
Who:   Called by the route handlers in studyhub/routes/materials.py; calls
       MaterialStore and UserDirectory.

Upvote state machine, per (material, voter):

    ┌──────────┐   upvote   ┌───────┐
    │ NotVoted │ ─────────▶ │ Voted │
    │          │ ◀───────── │       │
    └──────────┘   upvote   └───────┘

    Membership of the voter's email in the material's upvotes is the only
    vote state. Each call is one transition; two calls return the material
    to where it started.

Design Decision:
    The service holds no per-request state. It receives its store and user
    directory once, and every store primitive opens its own session, so the
    count and the page of a listing are fetched concurrently.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Mapping, Optional

from studyhub.config import settings
from studyhub.database import async_session_factory
from studyhub.exceptions import DuplicateMaterialError, NotFoundError, ValidationError
from studyhub.models.material import NOT_VERIFIED, Material, generate_material_id, utcnow
from studyhub.schemas.material import (
    MaterialEnvelope,
    MaterialListResponse,
    MaterialResponse,
    MessageResponse,
    Pagination,
    UpvoteResponse,
)
from studyhub.services.drive_links import canonicalize_thumbnail
from studyhub.services.material_store import MaterialFilter, MaterialStore
from studyhub.services.user_directory import UserDirectory
from studyhub.validation import (
    CREATE_MATERIAL_RULES,
    MATERIAL_ID_RULES,
    MATERIAL_TYPE_RULES,
    MAX_SQL_BIGINT,
    MAX_SQL_INTEGER,
    UPDATE_MATERIAL_RULES,
    UPVOTE_RULES,
    parse_bool,
    parse_optional_int,
    parse_positive_int,
)

logger = logging.getLogger(__name__)

# Store-managed keys. Stripped from update payloads whatever their value.
PROTECTED_KEYS = frozenset(
    {"_id", "id", "__v", "createdAt", "updatedAt", "created_at", "updated_at"}
)

# JSON key → ORM attribute for every client-writable field.
ATTRIBUTE_NAMES: Dict[str, str] = {
    "subject": "subject",
    "semester": "semester",
    "instructorName": "instructor_name",
    "materialLink": "material_link",
    "desc": "desc",
    "author": "author",
    "yearOfWriting": "year_of_writing",
    "branch": "branch",
    "materialType": "material_type",
    "thumbnail": "thumbnail",
    "courseCode": "course_code",
    "contributedBy": "contributed_by",
    "verifiedBy": "verified_by",
    "featured": "featured",
}

UPDATABLE_KEYS = frozenset(UPDATE_MATERIAL_RULES.fields) | {"featured"}


class MaterialService:
    """
    Business logic for the material resource.

    Error Handling Strategy:
        Rule failures raise ValidationError (InvalidAssetLinkError for the
        thumbnail) before any store call. Missing records raise
        NotFoundError. Link conflicts raise DuplicateMaterialError whether
        the pre-check or the database constraint caught them. Store failures
        propagate unchanged as StoreFailureError.
    """

    def __init__(self, store: MaterialStore, users: UserDirectory):
        self.store = store
        self.users = users

    # ── Create ────────────────────────────────────────────────────────────

    async def create(self, payload: Mapping[str, Any]) -> MaterialEnvelope:
        """
        Validate and persist a new material.

        Steps:
            1. CREATE_MATERIAL_RULES (first failing rule wins)
            2. Canonicalize the thumbnail share link
            3. Pre-check the link against stored materials
            4. Build the material with defaults and insert it

        Raises:
            ValidationError / InvalidAssetLinkError: a rule failed (→ 400)
            DuplicateMaterialError: the link is taken (→ 409)
        """
        fields = CREATE_MATERIAL_RULES.validate(payload)
        thumbnail = canonicalize_thumbnail(fields["thumbnail"])
        material_link = fields["materialLink"]

        if await self.store.find_one_by_link(material_link) is not None:
            logger.info("Rejected duplicate material link: %s", material_link)
            raise DuplicateMaterialError(material_link=material_link)

        now = utcnow()
        material = Material(
            id=generate_material_id(),
            subject=fields["subject"],
            semester=fields["semester"],
            instructor_name=fields["instructorName"],
            course_code=fields.get("courseCode") or "",
            desc=fields.get("desc") or "",
            author=fields["author"],
            year_of_writing=fields["yearOfWriting"],
            material_type=fields["materialType"],
            material_link=material_link,
            thumbnail=thumbnail,
            featured=parse_bool(payload.get("featured")),
            contributed_by=fields.get("contributedBy") or settings.default_contributor,
            verified_by=fields.get("verifiedBy", NOT_VERIFIED),
            created_at=now,
            updated_at=now,
            upvote_entries=[],
        )
        material.branch = fields["branch"]

        try:
            stored = await self.store.insert(material)
        except DuplicateMaterialError:
            logger.info("Concurrent create already stored link: %s", material_link)
            raise

        logger.info("Material created: %s (%s)", stored.id, stored.material_type)
        return MaterialEnvelope(
            message="Material created successfully",
            material=MaterialResponse.from_material(stored),
        )

    # ── Update / Delete ───────────────────────────────────────────────────

    async def update(self, material_id: str, payload: Mapping[str, Any]) -> MaterialEnvelope:
        """
        Apply a full or partial update.

        Store-managed keys (`_id`, `createdAt`, ...) are dropped, `upvotes`
        and unknown keys are ignored, and the remaining fields are checked
        with UPDATE_MATERIAL_RULES. A supplied thumbnail is re-canonicalized.

        Raises:
            ValidationError: bad id, bad field, or invalid merged document
            NotFoundError: no material with this id (→ 404)
            DuplicateMaterialError: the new link belongs to another material
        """
        material_id = MATERIAL_ID_RULES.validate({"id": material_id})["id"]
        if not isinstance(payload, Mapping):
            raise ValidationError(message="Request body must be a JSON object")

        writable = {
            key: value
            for key, value in payload.items()
            if key not in PROTECTED_KEYS and key in UPDATABLE_KEYS
        }
        cleaned = UPDATE_MATERIAL_RULES.validate(writable)

        changes: Dict[str, Any] = {ATTRIBUTE_NAMES[key]: value for key, value in cleaned.items()}
        if "thumbnail" in changes:
            changes["thumbnail"] = canonicalize_thumbnail(changes["thumbnail"])
        if writable.get("featured") is not None:
            changes["featured"] = parse_bool(writable["featured"])

        material = await self.store.update_by_id(material_id, changes)
        if material is None:
            raise NotFoundError(resource="material", resource_id=material_id)

        logger.info("Material updated: %s (fields=%s)", material_id, sorted(changes))
        return MaterialEnvelope(
            message="Material updated successfully",
            material=MaterialResponse.from_material(material),
        )

    async def delete(self, material_id: str) -> MessageResponse:
        material_id = MATERIAL_ID_RULES.validate({"id": material_id})["id"]
        if not await self.store.delete_by_id(material_id):
            raise NotFoundError(resource="material", resource_id=material_id)
        logger.info("Material deleted: %s", material_id)
        return MessageResponse(message="Material deleted successfully")

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_one(self, material_id: str) -> MaterialResponse:
        """A single material, whatever its verification state."""
        material_id = MATERIAL_ID_RULES.validate({"id": material_id})["id"]
        material = await self.store.find_by_id(material_id)
        if material is None:
            raise NotFoundError(resource="material", resource_id=material_id)
        return MaterialResponse.from_material(material)

    async def list(
        self,
        query: Mapping[str, Any],
        material_type: Optional[str] = None,
    ) -> MaterialListResponse:
        """
        One page of materials, newest first.

        Query parameters (all optional, all parsed leniently):
            page          ≥ 1, default 1 (also when the offset would overflow)
            limit         ≥ 1, default 20, capped at 100
            materialType  exact match (overridden by `material_type`)
            semester      integer; a non-numeric or out-of-range value
                          disables the filter
            branch        materials whose branch list contains the value

        Pagination:
            skip        = (page - 1) * limit
            totalPages  = ceil(total / limit)
            hasNext     = page < totalPages
            hasPrev     = page > 1
        """
        limit = min(
            parse_positive_int(query.get("limit"), settings.page_default_limit),
            settings.page_max_limit,
        )
        # A page whose offset would not fit in OFFSET falls back to page 1.
        page = parse_positive_int(query.get("page"), 1, maximum=MAX_SQL_BIGINT // limit)
        skip = (page - 1) * limit

        if material_type is None:
            material_type = _optional_text(query.get("materialType"))
        criteria = MaterialFilter(
            material_type=material_type,
            semester=parse_optional_int(query.get("semester"), maximum=MAX_SQL_INTEGER),
            branch=_optional_text(query.get("branch")),
        )

        total, materials = await asyncio.gather(
            self.store.count_matching(criteria),
            self.store.query_page(criteria, skip, limit),
        )
        total_pages = math.ceil(total / limit)

        return MaterialListResponse(
            materials=[MaterialResponse.from_material(material) for material in materials],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_materials=total,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )

    async def list_by_type(
        self, material_type: str, query: Mapping[str, Any]
    ) -> MaterialListResponse:
        material_type = MATERIAL_TYPE_RULES.validate({"materialType": material_type})["materialType"]
        return await self.list(query, material_type=material_type)

    # ── Upvote ────────────────────────────────────────────────────────────

    async def upvote(self, payload: Mapping[str, Any]) -> UpvoteResponse:
        """
        Toggle one voter's upvote on one material.

        Steps:
            1. UPVOTE_RULES (materialId shape, email format; email lowercased)
            2. The email must belong to a verified user
            3. The material must exist
            4. Voter present → remove, voter absent → add

        Both the store's add and remove are no-ops when the set already has
        the requested shape, so two racing toggles by one voter cannot
        duplicate or corrupt the set.

        Raises:
            ValidationError: malformed body (→ 400)
            NotFoundError: unknown/unverified user or unknown material (→ 404)
        """
        fields = UPVOTE_RULES.validate(payload)
        material_id, email = fields["materialId"], fields["email"]

        if await self.users.find_verified(email) is None:
            raise NotFoundError(message="User not found or not verified", resource="user")

        material = await self.store.find_by_id(material_id)
        if material is None:
            raise NotFoundError(resource="material", resource_id=material_id)

        if material.has_upvote_from(email):
            updated = await self.store.remove_upvote(material_id, email)
            message = "Upvote removed"
        else:
            updated = await self.store.add_upvote(material_id, email)
            message = "Material upvoted"

        if updated is None:
            # Deleted between the lookup and the toggle.
            raise NotFoundError(resource="material", resource_id=material_id)

        logger.info("%s: material=%s voter=%s", message, material_id, email)
        return UpvoteResponse(
            message=message,
            material=MaterialResponse.from_material(updated),
            upvote_count=len(updated.upvotes),
        )


def _optional_text(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


# ── Singleton Instance ────────────────────────────────────────────────────
material_service = MaterialService(
    store=MaterialStore(async_session_factory),
    users=UserDirectory(async_session_factory),
)


def get_material_service() -> MaterialService:
    """FastAPI dependency; tests replace it through app.dependency_overrides."""
    return material_service
