"""Database-backed user records for launch-payload authentication.

Users are never registered explicitly. The first authenticated request
from an unseen Telegram identity creates the row; every later one
refreshes the display name and avatar. This is the only code path that
writes users for authentication.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from travelplanner.db.models import User

log = logging.getLogger(__name__)


class DatabaseUserStore:
    """Upserts users keyed by telegram_id.

    Requires a database session for each operation.
    """

    def get_by_telegram_id(self, db: Session, telegram_id: int) -> User | None:
        """Get user by remote Telegram id."""
        return db.query(User).filter(User.telegram_id == telegram_id).first()

    def get_by_id(self, db: Session, user_id: int) -> User | None:
        """Get user by local id."""
        return db.query(User).filter(User.id == user_id).first()

    def upsert(
        self,
        db: Session,
        telegram_id: int,
        name: str,
        avatar: str | None = None,
        existing: User | None = None,
    ) -> tuple[User, bool]:
        """Create or refresh the user for a remote identity.

        A racing request may insert the same telegram_id between our lookup
        and our insert. The unique constraint rejects the second insert; we
        then re-read the winner's row and update it instead.

        Args:
            db: Database session
            telegram_id: Remote id (unique key)
            name: Display name, always overwritten
            avatar: Avatar URL, overwritten only when non-empty
            existing: Row already loaded by the caller, if any

        Returns:
            Tuple of (User, created)

        Raises:
            sqlalchemy.exc.SQLAlchemyError: Storage failure.
        """
        user = existing if existing is not None else self.get_by_telegram_id(db, telegram_id)

        if user is None:
            now = datetime.utcnow()
            user = User(
                telegram_id=telegram_id,
                name=name,
                avatar=avatar or None,
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            try:
                db.commit()
                log.info(f"Created user {user.id} for telegram_id={telegram_id}")
                return user, True
            except IntegrityError:
                db.rollback()
                log.info(f"Concurrent first sight of telegram_id={telegram_id}, attaching to existing row")
                user = self.get_by_telegram_id(db, telegram_id)
                if user is None:
                    raise

        self._apply_profile(user, name, avatar)
        db.commit()
        return user, False

    @staticmethod
    def _apply_profile(user: User, name: str, avatar: str | None) -> None:
        user.name = name
        if avatar:
            user.avatar = avatar
        user.updated_at = datetime.utcnow()


# Global store instance (singleton pattern)
_db_user_store: DatabaseUserStore | None = None


def get_db_user_store() -> DatabaseUserStore:
    """Get the global database user store instance."""
    global _db_user_store

    if _db_user_store is None:
        _db_user_store = DatabaseUserStore()

    return _db_user_store


def reset_db_user_store() -> None:
    """Reset the global store (for testing)."""
    global _db_user_store
    _db_user_store = None
