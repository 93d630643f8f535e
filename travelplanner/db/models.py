"""SQLAlchemy ORM models for the travel planner.

This module defines the database schema for:
- Users (one local row per remote Telegram identity)
- Trips (owned by a user)
- Memberships (user role within a trip)
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MembershipRole(str, Enum):
    """Role of a user within a trip."""

    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class User(Base):
    """Local user provisioned from a remote identity on first sight.

    name and avatar are overwritten on every successful authentication.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_id = Column(BigInteger, nullable=False, unique=True)
    name = Column(String(255), nullable=False, default="")
    avatar = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    memberships = relationship(
        "Membership", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, telegram_id={self.telegram_id!r})>"


class Trip(Base):
    """A trip shared between members."""

    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    hero_image_url = Column(String(1024), nullable=True)
    owner_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    owner = relationship("User")
    memberships = relationship(
        "Membership", back_populates="trip", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id!r}, title={self.title!r}, owner_id={self.owner_id!r})>"


class Membership(Base):
    """A user's role within a trip. At most one per (trip, user)."""

    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(
        Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role = Column(String(20), nullable=False, default=MembershipRole.VIEWER.value)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    trip = relationship("Trip", back_populates="memberships")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("trip_id", "user_id", name="uq_membership_trip_user"),
    )

    def __repr__(self) -> str:
        return f"<Membership(trip_id={self.trip_id!r}, user_id={self.user_id!r}, role={self.role!r})>"
