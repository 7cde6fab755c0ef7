"""
Field Service SQLAlchemy Models
===============================

Central import point for all ORM models. Import ``Base`` from here for the
``create_all`` convenience in tests.

Usage::

    from fieldops.models import Base, User, FieldServiceOrder
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin

# -- Users --
from .user import User, UserStatus

# -- Field service --
from .fieldService import (
    FieldServiceEvent,
    FieldServiceOrder,
    FieldServiceProvider,
    FieldServiceProviderStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserStatus",
    "FieldServiceEvent",
    "FieldServiceOrder",
    "FieldServiceProvider",
    "FieldServiceProviderStatus",
]
