"""Launch-payload authentication backend.

Runs once per request, inline, before any route handler:

1. Exempt path prefixes skip authentication entirely.
2. The raw payload is read from the X-Telegram-Init-Data header, falling
   back to the initData query parameter.
3. The verifier checks the payload (skipped only in the trusted
   development environment).
4. The resolver maps it onto a local user and returns the Principal,
   which Starlette exposes as ``request.user``.

Any failure raises LaunchAuthenticationError, which the middleware's
on_error handler turns into a 401 carrying the reason code.
"""

import logging

from starlette.authentication import (
    AuthCredentials,
    AuthenticationBackend,
    AuthenticationError,
)
from starlette.requests import HTTPConnection

from travelplanner.audit import get_audit_logger
from travelplanner.config import INIT_DATA_HEADER, INIT_DATA_QUERY_PARAM, AuthSettings

from .exceptions import UnauthenticatedError
from .principal import Principal
from .resolver import IdentityResolver
from .verifier import InitDataVerifier

log = logging.getLogger(__name__)

AUTH_SCOPE = "authenticated"


class LaunchAuthenticationError(AuthenticationError):
    """AuthenticationError that carries an AuthErrorCode."""

    def __init__(self, code: str, message: str = "Unauthenticated"):
        self.code = code
        self.message = message
        super().__init__(message)


def extract_init_data(conn: HTTPConnection) -> str | None:
    """Raw launch payload from the header, else from the query string."""
    return conn.headers.get(INIT_DATA_HEADER) or conn.query_params.get(INIT_DATA_QUERY_PARAM)


class TelegramAuthBackend(AuthenticationBackend):
    """Authenticates requests from the Telegram launch payload."""

    def __init__(
        self,
        settings: AuthSettings,
        verifier: InitDataVerifier | None = None,
        resolver: IdentityResolver | None = None,
        exempt_prefixes: tuple[str, ...] | None = None,
    ):
        """Initialize the backend.

        Args:
            settings: Auth settings snapshot
            verifier: Payload verifier (built from settings if omitted)
            resolver: Identity resolver (built from settings if omitted)
            exempt_prefixes: Path prefixes that skip authentication
        """
        self.settings = settings
        self.verifier = verifier or InitDataVerifier(settings)
        self.resolver = resolver or IdentityResolver(settings)
        self.exempt_prefixes = tuple(
            p.lower() for p in (exempt_prefixes if exempt_prefixes is not None else settings.exempt_prefixes)
        )

        if settings.trust_unverified:
            log.warning("Launch payload verification disabled (trusted development environment)")
        if not settings.bot_token:
            log.warning("TELEGRAM_BOT_TOKEN not set: keyed-hash payloads will be rejected")

    def is_exempt(self, path: str) -> bool:
        path = path.lower()
        return any(
            path == prefix or path.startswith(prefix + "/") for prefix in self.exempt_prefixes
        )

    async def authenticate(
        self, conn: HTTPConnection
    ) -> tuple[AuthCredentials, Principal] | None:
        """Authenticate a request.

        Returns:
            (credentials, principal), or None for exempt paths.

        Raises:
            LaunchAuthenticationError: The request could not be authenticated.
        """
        if self.is_exempt(conn.url.path):
            return None

        audit = get_audit_logger()
        init_data = extract_init_data(conn)
        scheme = "fallback"
        verified = False
        reason = None

        if init_data:
            if self.settings.trust_unverified:
                verified = True
                scheme = "trusted"
            else:
                result = self.verifier.verify(init_data)
                verified = result.valid
                scheme = result.scheme.value
                reason = result.reason
                if not verified:
                    log.warning(
                        f"Invalid launch payload: reason={reason} "
                        f"has_secret={self.verifier.has_secret}",
                        extra={"route": conn.url.path},
                    )

        try:
            principal = await self.resolver.resolve(
                init_data,
                verified,
                self.settings.allow_unverified_fallback,
                reason=reason,
            )
        except UnauthenticatedError as e:
            audit.log_auth_failure(e.code, conn)
            raise LaunchAuthenticationError(e.code, e.message)

        audit.log_auth_success(principal.identity, scheme, conn)
        return AuthCredentials([AUTH_SCOPE]), principal
