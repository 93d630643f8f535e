"""Launch-payload authentication for the travel planner API."""

from travelplanner.auth.backend import LaunchAuthenticationError, TelegramAuthBackend
from travelplanner.auth.dependencies import (
    check_trip_role,
    get_current_telegram_id,
    get_current_user_id,
    has_trip_role,
    require_principal,
)
from travelplanner.auth.exceptions import AuthErrorCode, UnauthenticatedError
from travelplanner.auth.principal import Principal
from travelplanner.auth.resolver import IdentityResolver
from travelplanner.auth.verifier import (
    InitDataVerifier,
    VerificationResult,
    VerificationScheme,
    verify_init_data,
)

__all__ = [
    "AuthErrorCode",
    "IdentityResolver",
    "InitDataVerifier",
    "LaunchAuthenticationError",
    "Principal",
    "TelegramAuthBackend",
    "UnauthenticatedError",
    "VerificationResult",
    "VerificationScheme",
    "check_trip_role",
    "get_current_telegram_id",
    "get_current_user_id",
    "has_trip_role",
    "require_principal",
    "verify_init_data",
]
