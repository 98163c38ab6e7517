"""
ORM models for the event counter.

Two tables:
- users:  client-generated identities (the stored admin flag is informational).
- events: named events with four tally counters and a spotlight flag.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from event_counter.database.db_connection import Base

COUNTER_FIELDS = ("adults", "kids", "newsletterSignups", "volunteers")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as ISO-8601, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "isAdmin": bool(self.is_admin),
            "createdAt": isoformat(self.created_at),
        }


class Event(Base):
    __tablename__ = "events"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_spotlighted = Column(Boolean, default=False, nullable=False, index=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=False)

    adults = Column(Integer, default=0, nullable=False)
    kids = Column(Integer, default=0, nullable=False)
    newsletter_signups = Column(Integer, default=0, nullable=False)
    volunteers = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    # JSON key -> column attribute
    FIELD_MAP = {
        "name": "name",
        "description": "description",
        "isSpotlighted": "is_spotlighted",
        "adults": "adults",
        "kids": "kids",
        "newsletterSignups": "newsletter_signups",
        "volunteers": "volunteers",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isSpotlighted": bool(self.is_spotlighted),
            "createdBy": self.created_by,
            "adults": self.adults,
            "kids": self.kids,
            "newsletterSignups": self.newsletter_signups,
            "volunteers": self.volunteers,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
