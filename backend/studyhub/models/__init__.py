"""
StudyHub Backend - ORM Models
=============================

Importing this package registers every table with `Base.metadata`, which
Alembic autogenerate and the test suite's `create_all` rely on.
"""

from studyhub.models.material import Material, MaterialBranch, MaterialUpvote
from studyhub.models.user import User

__all__ = ["Material", "MaterialBranch", "MaterialUpvote", "User"]
