"""
StudyHub Backend - Pydantic Request/Response Schemas
====================================================

What:  The JSON contract of the materials API and the whole-document
       constraints a stored material must satisfy.
How:   Python attributes are snake_case; JSON keys are camelCase through an
       alias generator, and the identifier is serialized as `_id`. FastAPI
       serializes response models by alias.
Who:   MaterialService builds these from ORM objects; routes declare them as
       response models; validation.validate_document() uses MaterialDocument.

Request bodies are NOT parsed with these models: mutating endpoints accept a
raw JSON object and run the ordered rule-sets in studyhub.validation, so the
client gets the first violated rule's message rather than a list of pydantic
errors.
"""

import re
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic.alias_generators import to_camel

from studyhub.models.material import Material

CANONICAL_THUMBNAIL = re.compile(r"^https://drive\.google\.com/uc\?export=view&id=[a-zA-Z0-9_-]+$")


def as_utc(moment: datetime) -> datetime:
    """SQLite hands back naive datetimes; stored timestamps are always UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class CamelModel(BaseModel):
    """Base for every schema exposed over HTTP: camelCase JSON, snake_case Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════
# Stored Document Constraints
# ══════════════════════════════════════════════════════════════════════════


class MaterialDocument(BaseModel):
    """
    What:  Constraints every stored material satisfies, checked on the merged
           document after a partial update.
    Keys:  snake_case attribute names (the merge happens on the ORM object).
    """

    subject: str = Field(min_length=2, max_length=100)
    semester: int = Field(ge=1, le=8)
    instructor_name: List[str] = Field(min_length=1)
    course_code: str = Field(default="", max_length=100)
    desc: str = Field(default="", max_length=500)
    author: List[str] = Field(min_length=1)
    year_of_writing: int = Field(ge=2000)
    branch: List[str] = Field(min_length=1)
    material_type: str = Field(min_length=2, max_length=50)
    material_link: HttpUrl
    thumbnail: str
    featured: bool = False
    contributed_by: str = Field(default="Admin", max_length=100)
    verified_by: Optional[Literal["verified", "notVerified"]] = None

    @field_validator("instructor_name", "author")
    @classmethod
    def validate_names(cls, names: List[str]) -> List[str]:
        for name in names:
            if not 2 <= len(name.strip()) <= 50:
                raise ValueError("each name must be between 2 and 50 characters")
        return names

    @field_validator("year_of_writing")
    @classmethod
    def validate_year(cls, year: int) -> int:
        current = datetime.now(timezone.utc).year
        if year > current:
            raise ValueError(f"year must not be after {current}")
        return year

    @field_validator("thumbnail")
    @classmethod
    def validate_thumbnail(cls, url: str) -> str:
        if not CANONICAL_THUMBNAIL.match(url):
            raise ValueError("thumbnail must be a canonical drive view URL")
        return url


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MaterialResponse(CamelModel):
    """
    What:  Full representation of a material, moderation fields included.
    Who:   GET /api/materials/{id}, list items, and every mutation envelope.
    """

    id: str = Field(alias="_id", description="Store-assigned identifier (24 hex characters)")
    subject: str
    semester: int
    instructor_name: List[str]
    course_code: str
    desc: str
    author: List[str]
    year_of_writing: int
    branch: List[str]
    material_type: str
    material_link: str
    thumbnail: str = Field(description="Canonical drive view URL")
    featured: bool
    contributed_by: str
    verified_by: Optional[str] = Field(default=None, description="verified | notVerified | null")
    upvotes: List[str] = Field(description="Emails of voters; order carries no meaning")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_material(cls, material: Material) -> "MaterialResponse":
        return cls(
            id=material.id,
            subject=material.subject,
            semester=material.semester,
            instructor_name=list(material.instructor_name),
            course_code=material.course_code,
            desc=material.desc,
            author=list(material.author),
            year_of_writing=material.year_of_writing,
            branch=material.branch,
            material_type=material.material_type,
            material_link=material.material_link,
            thumbnail=material.thumbnail,
            featured=material.featured,
            contributed_by=material.contributed_by,
            verified_by=material.verified_by,
            upvotes=material.upvotes,
            created_at=as_utc(material.created_at),
            updated_at=as_utc(material.updated_at),
        )


class MaterialEnvelope(CamelModel):
    """Returned by create (201) and update (200)."""

    message: str
    material: MaterialResponse


class UpvoteResponse(CamelModel):
    """Returned by POST /api/materials/upvote."""

    message: str = Field(description="'Material upvoted' or 'Upvote removed'")
    material: MaterialResponse
    upvote_count: int = Field(description="Number of voters after this call")


class MessageResponse(CamelModel):
    message: str


class Pagination(CamelModel):
    """
    Offset pagination block.

    total_pages is ceil(total_materials / limit) with the limit actually
    applied (after the 100-item cap), so it is 0 for an empty result.
    """

    current_page: int
    total_pages: int
    total_materials: int
    has_next: bool
    has_prev: bool


class MaterialListResponse(CamelModel):
    """Returned by GET /api/materials and GET /api/materials/type/{materialType}."""

    materials: List[MaterialResponse]
    pagination: Pagination


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Error body shared by every failing endpoint.

    Example:
        {
            "error": "duplicate_material",
            "message": "Material with this link already exists",
            "request_id": "1f0c2a9b"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
