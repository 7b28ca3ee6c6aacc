"""SQLAlchemy ORM models for the account service.

All models are exported from this module for convenient imports:
    from app.models import User, UserRole, AuthProvider
"""

from app.models.base import Base, TimestampMixin
from app.models.user import AuthProvider, User, UserRole

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Users
    "User",
    "UserRole",
    "AuthProvider",
]
