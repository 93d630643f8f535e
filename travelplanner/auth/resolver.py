"""Identity resolution: verified launch payload -> local user -> Principal.

Per request state machine:

    no payload      -> fallback principal (development) | Unauthenticated
    payload present -> verified?   no  -> Unauthenticated
                                   yes -> claim parses? no  -> Unauthenticated
                                                        yes -> upsert -> Principal

A payload that failed verification is always rejected, even when its
identity claim parses.

The upsert runs in Starlette's threadpool so the event loop stays free
while the database round trip is in flight. Storage failure fails
closed with STORAGE_UNAVAILABLE; cancellation propagates and no principal
is produced.
"""

import asyncio
import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from travelplanner.audit import AuditLogger, get_audit_logger
from travelplanner.config import AuthSettings
from travelplanner.db import session as db_session

from .db_users import DatabaseUserStore, get_db_user_store
from .exceptions import (
    AuthErrorCode,
    LaunchAuthError,
    StorageUnavailableError,
    UnauthenticatedError,
)
from .identity import parse_identity_claim
from .init_data import parse_init_data
from .principal import Principal

log = logging.getLogger(__name__)


class IdentityResolver:
    """Maps a launch payload onto a local user and builds the Principal."""

    def __init__(
        self,
        settings: AuthSettings,
        session_factory: Callable[[], Session] | None = None,
        user_store: DatabaseUserStore | None = None,
        audit: AuditLogger | None = None,
    ):
        """Initialize the resolver.

        Args:
            settings: Auth settings (placeholder identity lives here)
            session_factory: Callable returning a new Session; defaults to
                the application's SessionLocal
            user_store: User store; defaults to the global instance
            audit: Audit logger; defaults to the global instance
        """
        self.settings = settings
        self._session_factory = session_factory
        self._store = user_store or get_db_user_store()
        self._audit = audit

    @property
    def audit(self) -> AuditLogger:
        return self._audit or get_audit_logger()

    def _new_session(self) -> Session:
        if self._session_factory is not None:
            return self._session_factory()
        return db_session.SessionLocal()

    async def resolve(
        self,
        init_data: str | None,
        verified: bool,
        allow_unverified_fallback: bool,
        *,
        reason: str | None = None,
    ) -> Principal:
        """Resolve the request principal.

        Args:
            init_data: Raw launch payload (None or empty when absent)
            verified: Verifier verdict for init_data
            allow_unverified_fallback: Substitute the placeholder identity
                when no payload is supplied
            reason: Verifier reason code, reported when verified is False

        Returns:
            Principal for the local user.

        Raises:
            UnauthenticatedError: Every failure mode.
        """
        if not init_data:
            if not allow_unverified_fallback:
                raise UnauthenticatedError(
                    AuthErrorCode.INIT_DATA_MISSING, "Launch payload required"
                )
            log.debug(f"No launch payload, using placeholder telegram_id={self.settings.mock_telegram_id}")
            principal = await self._bind(
                self.settings.mock_telegram_id, self.settings.mock_user_name, None
            )
            self.audit.log(
                action="auth.fallback",
                principal=principal.identity,
                details={"telegram_id": principal.telegram_id},
            )
            return principal

        if not verified:
            raise UnauthenticatedError(
                reason or AuthErrorCode.SIGNATURE_MISMATCH, "Invalid launch payload"
            )

        try:
            claim = parse_identity_claim(parse_init_data(init_data))
        except LaunchAuthError as e:
            log.warning(f"Verified launch payload without usable identity: {e.message}")
            raise UnauthenticatedError.from_error(e)

        return await self._bind(claim.id, claim.display_name, claim.photo_url)

    async def _bind(self, telegram_id: int, name: str, avatar: str | None) -> Principal:
        try:
            user_id, created = await run_in_threadpool(
                self._upsert, telegram_id, name, avatar
            )
        except asyncio.CancelledError:
            # No principal is produced; the cancellation ends the request
            log.warning(f"User storage call cancelled for telegram_id={telegram_id}")
            raise
        except StorageUnavailableError as e:
            raise UnauthenticatedError.from_error(e)

        self.audit.log(
            action="user.create" if created else "user.update",
            principal=str(user_id),
            resource_type="user",
            resource_id=str(user_id),
            details={"telegram_id": telegram_id},
        )
        return Principal(user_id=user_id, telegram_id=telegram_id, name=name)

    def _upsert(self, telegram_id: int, name: str, avatar: str | None) -> tuple[int, bool]:
        """Run the upsert in its own session.

        A storage failure after the row was read still yields the prior
        row's id. Without a prior row there is nothing to attach to.

        Raises:
            StorageUnavailableError: Lookup or creation failed, or the
                store raised something other than a database error.
        """
        prior_id: int | None = None
        db = self._new_session()
        try:
            existing = self._store.get_by_telegram_id(db, telegram_id)
            if existing is not None:
                prior_id = existing.id
            user, created = self._store.upsert(db, telegram_id, name, avatar, existing=existing)
            return user.id, created
        except SQLAlchemyError as e:
            db.rollback()
            if prior_id is not None:
                log.error(
                    f"Failed to refresh user {prior_id} (telegram_id={telegram_id}), "
                    f"continuing with stored record: {e}"
                )
                return prior_id, False
            log.error(f"Failed to create user for telegram_id={telegram_id}: {e}")
            raise StorageUnavailableError(f"Could not persist user: {type(e).__name__}")
        except Exception as e:
            db.rollback()
            log.exception(f"Unexpected user storage error for telegram_id={telegram_id}")
            raise StorageUnavailableError(f"User storage failed: {type(e).__name__}") from e
        finally:
            db.close()
