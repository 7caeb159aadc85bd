"""Create materials, material_branches, material_upvotes and users tables

Revision ID: 001
Revises: None
Create Date: 2026-01-15 00:00:00.000000+00:00

What:  Initial schema of the materials catalog.
How:   Portable column types (PostgreSQL in production, SQLite locally);
       see studyhub/models/material.py for the table design.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "materials",
        sa.Column(
            "id",
            sa.String(24),
            nullable=False,
            comment="Store-assigned identifier, 24 hex characters",
        ),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("instructor_name", sa.JSON(), nullable=False),
        sa.Column("course_code", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("desc", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("author", sa.JSON(), nullable=False),
        sa.Column("year_of_writing", sa.Integer(), nullable=False),
        sa.Column("material_type", sa.String(50), nullable=False),
        sa.Column(
            "material_link",
            sa.Text(),
            nullable=False,
            comment="External resource URL; unique across all materials",
        ),
        sa.Column(
            "thumbnail",
            sa.Text(),
            nullable=False,
            comment="Canonical drive view URL derived from the submitted link",
        ),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "contributed_by", sa.String(100), nullable=False, server_default=sa.text("'Admin'")
        ),
        sa.Column(
            "verified_by",
            sa.String(20),
            nullable=True,
            comment="verified | notVerified | NULL for rows predating moderation",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("material_link", name="uq_materials_material_link"),
    )
    op.create_index("ix_materials_material_type", "materials", ["material_type"])
    op.create_index("idx_materials_created_at", "materials", [sa.text("created_at DESC")])

    op.create_table(
        "material_branches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("material_id", sa.String(24), nullable=False),
        sa.Column("branch", sa.String(100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["material_id"], ["materials.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    # Serves the "branch contains X" listing filter.
    op.create_index(
        "idx_material_branches_branch", "material_branches", ["branch", "material_id"]
    )

    op.create_table(
        "material_upvotes",
        sa.Column("material_id", sa.String(24), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["material_id"], ["materials.id"], ondelete="CASCADE"),
        # One row per voter per material: the upvote set cannot hold duplicates.
        sa.PrimaryKeyConstraint("material_id", "email"),
    )

    # Owned by the identity service; created here so a fresh database is usable.
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("material_upvotes")
    op.drop_index("idx_material_branches_branch", table_name="material_branches")
    op.drop_table("material_branches")
    op.drop_index("idx_materials_created_at", table_name="materials")
    op.drop_index("ix_materials_material_type", table_name="materials")
    op.drop_table("materials")
