"""Database module: ORM models and session management."""

from travelplanner.db.models import Base, Membership, MembershipRole, Trip, User
from travelplanner.db.session import get_db, init_database

__all__ = [
    "Base",
    "Membership",
    "MembershipRole",
    "Trip",
    "User",
    "get_db",
    "init_database",
]
