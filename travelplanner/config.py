"""Travel planner configuration constants.

Environment-based configuration, grouped by concern:
- PERSISTENCE: data directory and database URL
- TELEGRAM LAUNCH AUTH: shared secret, signature scheme, freshness window
- DEVELOPMENT: placeholder identity and trusted-environment bypass
- OPERATIONAL: CORS, logging, audit

The auth subsystem never reads these constants directly. AuthSettings
snapshots them once and is handed to the verifier, resolver and
authentication backend when the application is built.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


# =============================================================================
# PERSISTENCE CONFIGURATION
# =============================================================================

def _get_data_dir() -> Path:
    """Determine data directory based on environment.

    Priority:
    1. TRAVELPLANNER_DATA_DIR env var (explicit override)
    2. ~/.travelplanner (local development)
    3. /tmp/travelplanner (container fallback when home unavailable)
    """
    env_path = os.getenv("TRAVELPLANNER_DATA_DIR")
    if env_path:
        return Path(env_path)

    try:
        home_path = Path.home() / ".travelplanner"
        home_path.mkdir(parents=True, exist_ok=True)
        return home_path
    except (OSError, PermissionError):
        return Path("/tmp/travelplanner")


DATA_DIR: Path = _get_data_dir()


def _get_database_url() -> str:
    """Get database URL from environment.

    Priority:
    1. TRAVELPLANNER_DATABASE_URL - explicit full connection string
    2. SQLite fallback for local development
    """
    if url := os.getenv("TRAVELPLANNER_DATABASE_URL"):
        return url
    return f"sqlite:///{DATA_DIR}/travelplanner.db"


DATABASE_URL: str = _get_database_url()


# =============================================================================
# TELEGRAM LAUNCH AUTH
# =============================================================================

# Production deployments run with "production"; "development" unlocks the
# placeholder identity and the trusted-environment bypass below.
ENVIRONMENT: str = os.getenv("TRAVELPLANNER_ENV", "production").lower()
IS_DEVELOPMENT: bool = ENVIRONMENT == "development"

# Shared secret for the keyed-hash scheme. Unset disables that scheme.
TELEGRAM_BOT_TOKEN: str | None = os.getenv("TELEGRAM_BOT_TOKEN") or None


def _get_bot_id() -> int | None:
    """Bot id from TELEGRAM_BOT_ID, else the numeric prefix of the token."""
    raw = os.getenv("TELEGRAM_BOT_ID")
    if not raw and TELEGRAM_BOT_TOKEN and ":" in TELEGRAM_BOT_TOKEN:
        raw = TELEGRAM_BOT_TOKEN.split(":", 1)[0]
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


TELEGRAM_BOT_ID: int | None = _get_bot_id()

# Detached-signature scheme: Ed25519 public keys published by the platform
TELEGRAM_PUBLIC_KEY_PRODUCTION: str = (
    "e7bf03a2fa4602af4580703d88dda5bb59f32ed8b02a56c187fe7d34caed242d"
)
TELEGRAM_PUBLIC_KEY_TEST: str = (
    "40055058a4ee38156a06562e52eece92a771bcd8346a8c4615cb7376eddf72ec"
)

# When false (default) the detached-signature scheme checks structure and
# freshness only. When true the signature is verified with Ed25519.
TELEGRAM_VERIFY_ED25519: bool = _env_bool("TELEGRAM_VERIFY_ED25519")
TELEGRAM_USE_TEST_ENVIRONMENT: bool = _env_bool("TELEGRAM_USE_TEST_ENVIRONMENT")

# Replay window for auth_date (seconds)
INIT_DATA_MAX_AGE_SECONDS: int = int(os.getenv("TELEGRAM_INIT_DATA_MAX_AGE", "86400"))

# Optional limit on auth_date values in the future (seconds). Unset: no limit.
INIT_DATA_CLOCK_SKEW_SECONDS: int | None = (
    int(os.environ["TELEGRAM_INIT_DATA_MAX_FUTURE"])
    if os.getenv("TELEGRAM_INIT_DATA_MAX_FUTURE")
    else None
)

# Where the launch payload is read from
INIT_DATA_HEADER: str = "X-Telegram-Init-Data"
INIT_DATA_QUERY_PARAM: str = "initData"


# =============================================================================
# DEVELOPMENT
# =============================================================================

DEV_MOCK_TELEGRAM_ID: int = int(os.getenv("DEV_MOCK_TELEGRAM_ID", "123456789"))
DEV_MOCK_USER_NAME: str = os.getenv("DEV_MOCK_USER_NAME", "Test User")

# Trusted-environment bypass: accept payloads without verifying them.
# Only honoured in development. Production never enables this.
TELEGRAM_TRUST_UNVERIFIED: bool = _env_bool("TELEGRAM_TRUST_UNVERIFIED")


# =============================================================================
# OPERATIONAL
# =============================================================================

SERVICE_PORT: int = int(os.getenv("TRAVELPLANNER_PORT", "8000"))

CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("TRAVELPLANNER_CORS_ORIGINS", "*").split(",")
    if o.strip()
]

AUDIT_ENABLED: bool = _env_bool("TRAVELPLANNER_AUDIT_ENABLED", "true")

# Paths that bypass launch-payload authentication (prefix match, lowercase)
AUTH_EXEMPT_PREFIXES: tuple[str, ...] = (
    "/api/telegram/validate",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/healthz",
)


# =============================================================================
# AUTH SETTINGS VALUE OBJECT
# =============================================================================


@dataclass(frozen=True)
class AuthSettings:
    """Immutable snapshot of everything the launch-auth subsystem needs.

    Attributes:
        bot_token: Shared secret for the keyed-hash scheme (None disables it)
        bot_id: Numeric bot id, part of the Ed25519 check string
        verify_ed25519: Verify detached signatures cryptographically
        public_key_hex: Ed25519 public key used when verify_ed25519 is set
        max_age_seconds: Freshness window for auth_date
        clock_skew_seconds: Allowed auth_date drift into the future
            (None: unlimited)
        allow_unverified_fallback: Substitute the placeholder identity when
            no payload is supplied
        trust_unverified: Skip verification of supplied payloads
        mock_telegram_id: Placeholder remote id
        mock_user_name: Placeholder display name
        exempt_prefixes: Path prefixes that bypass authentication
    """

    bot_token: str | None = None
    bot_id: int | None = None
    verify_ed25519: bool = False
    public_key_hex: str = TELEGRAM_PUBLIC_KEY_PRODUCTION
    max_age_seconds: int = 86400
    clock_skew_seconds: int | None = None
    allow_unverified_fallback: bool = False
    trust_unverified: bool = False
    mock_telegram_id: int = 123456789
    mock_user_name: str = "Test User"
    exempt_prefixes: tuple[str, ...] = field(default=AUTH_EXEMPT_PREFIXES)

    @classmethod
    def from_config(cls) -> "AuthSettings":
        """Build settings from the module-level environment constants."""
        return cls(
            bot_token=TELEGRAM_BOT_TOKEN,
            bot_id=TELEGRAM_BOT_ID,
            verify_ed25519=TELEGRAM_VERIFY_ED25519,
            public_key_hex=(
                TELEGRAM_PUBLIC_KEY_TEST
                if TELEGRAM_USE_TEST_ENVIRONMENT
                else TELEGRAM_PUBLIC_KEY_PRODUCTION
            ),
            max_age_seconds=INIT_DATA_MAX_AGE_SECONDS,
            clock_skew_seconds=INIT_DATA_CLOCK_SKEW_SECONDS,
            allow_unverified_fallback=IS_DEVELOPMENT,
            trust_unverified=IS_DEVELOPMENT and TELEGRAM_TRUST_UNVERIFIED,
            mock_telegram_id=DEV_MOCK_TELEGRAM_ID,
            mock_user_name=DEV_MOCK_USER_NAME,
            exempt_prefixes=AUTH_EXEMPT_PREFIXES,
        )
