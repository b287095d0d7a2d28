"""
TipKesho SQLAlchemy Models
==========================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from tipkesho.models import Base, Creator, TipRecord, TipStatus
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Directory --
from .user import User
from .creator import Creator

# -- Sessions --
from .session import AuthSession

# -- Tip ledger --
from .tip import PaymentProvider, TipRecord, TipStatus

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Directory
    "User",
    "Creator",
    # Sessions
    "AuthSession",
    # Tip ledger
    "TipRecord",
    "TipStatus",
    "PaymentProvider",
]
