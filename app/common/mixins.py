"""
Common mixins for owner-partitioned billing models
"""
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, String


def utcnow() -> datetime:
    """Naive UTC timestamp; all billing timestamps are stored this way."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OwnerMixin:
    """Partition key: every document belongs to exactly one vendor (owner)"""

    owner_id = Column(String(64), primary_key=True, nullable=False, index=True)


class TimestampMixin:
    """Mixin for models that need timestamp tracking. Set by the system, never by the client."""

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
