"""
StudyHub Backend - Application Package Initializer
==================================================

What:  Marks the `studyhub` directory as a Python package.
Who:   Imported by uvicorn (`studyhub.main:app`), Alembic and pytest.

Architecture Note:
    The backend keeps a layered structure:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Controller + Adapters)  │  ← validation, canonicalization,
    │                                     │    duplicate checks, upvote toggle
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch the database; the material controller talks to the
    material store and the user directory, and those two adapters are the
    only code that issues SQL.
"""

__version__ = "1.0.0"
