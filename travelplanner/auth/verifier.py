"""Launch payload signature verification.

Two verification schemes exist and exactly one is chosen per payload:

- HASH_BASED: the payload carries ``hash`` and a shared secret (the bot
  token) is configured. HMAC-SHA256 over the data-check string, keyed by
  HMAC-SHA256("WebAppData", bot_token).
- SIGNATURE_BASED: the payload carries ``signature`` (128 hex chars,
  64 bytes). Structural and freshness checks; optionally a real Ed25519
  check against the platform public key.
- UNSUPPORTED: neither applies.

The keyed-hash scheme wins when both fields are present and a secret is
configured. Verification never raises: every failure folds into a
VerificationResult with valid=False and a reason code. Diagnostics are
for logging only.

Note: pysodium is imported lazily so the hash scheme works on hosts
without libsodium.
"""

import hmac
import json
import logging
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from travelplanner.config import AuthSettings

from .exceptions import (
    AuthErrorCode,
    LaunchAuthError,
    MalformedPayloadError,
    SignatureMismatchError,
    StalePayloadError,
    UnsupportedSchemeError,
)
from .init_data import (
    AUTH_DATE_FIELD,
    HASH_FIELD,
    SIGNATURE_FIELD,
    USER_FIELD,
    build_data_check_string,
    compute_hash,
    parse_init_data,
)

log = logging.getLogger(__name__)

SIGNATURE_HEX_LENGTH = 128
_HEX_DIGITS = frozenset(string.hexdigits)


class VerificationScheme(str, Enum):
    """Verification scheme chosen for a payload."""

    HASH_BASED = "hash"
    SIGNATURE_BASED = "signature"
    UNSUPPORTED = "unsupported"


@dataclass
class VerificationResult:
    """Outcome of verifying one launch payload.

    Attributes:
        valid: Whether the payload is authentic and fresh
        scheme: The scheme that was applied
        reason: AuthErrorCode value when invalid, None when valid
        diagnostics: Structural facts about the payload, for logging only
    """

    valid: bool
    scheme: VerificationScheme = VerificationScheme.UNSUPPORTED
    reason: str | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)


def select_scheme(fields: Mapping[str, str], secret: str | None) -> VerificationScheme:
    """Resolve the verification scheme for a decoded payload."""
    if fields.get(HASH_FIELD) and secret:
        return VerificationScheme.HASH_BASED
    if SIGNATURE_FIELD in fields:
        return VerificationScheme.SIGNATURE_BASED
    return VerificationScheme.UNSUPPORTED


def _diagnostics(fields: Mapping[str, str], secret: str | None) -> dict[str, Any]:
    return {
        "has_hash": bool(fields.get(HASH_FIELD)),
        "has_signature": bool(fields.get(SIGNATURE_FIELD)),
        "has_user": bool(fields.get(USER_FIELD)),
        "has_auth_date": bool(fields.get(AUTH_DATE_FIELD)),
        "has_secret": bool(secret),
        "keys": sorted(fields),
    }


def verify_hash(fields: Mapping[str, str], secret: str) -> None:
    """Keyed-hash scheme.

    Raises:
        SignatureMismatchError: Computed hash differs from the hash field.
    """
    received = fields[HASH_FIELD].lower()
    if not received.isascii():
        raise SignatureMismatchError("Keyed hash contains non-ASCII characters")
    computed = compute_hash(fields, secret)
    if not hmac.compare_digest(computed, received):
        raise SignatureMismatchError("Keyed hash does not match payload")


def check_freshness(
    fields: Mapping[str, str],
    now: float,
    max_age_seconds: int,
    clock_skew_seconds: int | None = None,
) -> int:
    """Validate auth_date against the replay window.

    Returns:
        Age of the payload in seconds.

    Raises:
        MalformedPayloadError: auth_date is not an integer.
        StalePayloadError: Older than max_age_seconds, or further in the future
            than clock_skew_seconds when that limit is set.
    """
    raw = fields[AUTH_DATE_FIELD]
    if not (raw.isascii() and raw.lstrip("-").isdigit()):
        raise MalformedPayloadError(f"auth_date is not a Unix timestamp: {raw[:32]!r}")
    auth_date = int(raw)

    age = int(now) - auth_date
    if age > max_age_seconds:
        raise StalePayloadError(f"auth_date is {age}s old (max {max_age_seconds}s)")
    if clock_skew_seconds is not None and -age > clock_skew_seconds:
        raise StalePayloadError(f"auth_date is {-age}s in the future")
    return age


def verify_ed25519(
    fields: Mapping[str, str],
    signature_hex: str,
    bot_id: int | None,
    public_key_hex: str,
) -> None:
    """Verify the detached Ed25519 signature.

    The signed message is ``"<bot_id>:WebAppData\\n"`` followed by the
    data-check string with both authenticity fields removed.

    Raises:
        SignatureMismatchError: Signature invalid or bot id unknown.
    """
    if bot_id is None:
        raise SignatureMismatchError("Ed25519 verification requires a bot id")

    message = f"{bot_id}:WebAppData\n{build_data_check_string(fields)}".encode("utf-8")

    import pysodium
    try:
        pysodium.crypto_sign_verify_detached(
            bytes.fromhex(signature_hex),
            message,
            bytes.fromhex(public_key_hex),
        )
    except ValueError:
        raise SignatureMismatchError("Ed25519 signature verification failed")


def verify_signature_scheme(
    fields: Mapping[str, str],
    now: float,
    settings: AuthSettings,
    diagnostics: dict[str, Any],
) -> None:
    """Detached-signature scheme: shape, required fields, freshness.

    Raises:
        SignatureMismatchError: Signature has the wrong length or characters,
            or fails Ed25519 verification when enabled.
        MalformedPayloadError: user or auth_date missing, auth_date unparseable.
        StalePayloadError: Outside the freshness window.
    """
    signature = fields[SIGNATURE_FIELD]
    diagnostics["signature_length"] = len(signature)

    if len(signature) != SIGNATURE_HEX_LENGTH:
        raise SignatureMismatchError(
            f"Signature length is {len(signature)}, expected {SIGNATURE_HEX_LENGTH}"
        )
    if not all(c in _HEX_DIGITS for c in signature):
        raise SignatureMismatchError("Signature contains non-hex characters")
    if USER_FIELD not in fields:
        raise MalformedPayloadError("Missing 'user' field")
    if AUTH_DATE_FIELD not in fields:
        raise MalformedPayloadError("Missing 'auth_date' field")

    diagnostics["age_seconds"] = check_freshness(
        fields, now, settings.max_age_seconds, settings.clock_skew_seconds
    )

    if settings.verify_ed25519:
        verify_ed25519(fields, signature, settings.bot_id, settings.public_key_hex)


def verify_init_data(
    init_data: str,
    secret: str | None,
    *,
    now: float | None = None,
    settings: AuthSettings | None = None,
) -> VerificationResult:
    """Verify a raw launch payload.

    Args:
        init_data: Raw percent-encoded payload (may be empty).
        secret: Shared secret (bot token). None disables the hash scheme.
        now: Verification time as Unix seconds; defaults to time.time().
            Only the detached-signature scheme reads it.
        settings: Freshness and Ed25519 options; defaults to AuthSettings().

    Returns:
        VerificationResult. Never raises.
    """
    settings = settings or AuthSettings()
    result = VerificationResult(valid=False)

    if not init_data:
        result.reason = AuthErrorCode.INIT_DATA_MISSING
        return result

    try:
        fields = parse_init_data(init_data)
        result.diagnostics = _diagnostics(fields, secret)
        result.scheme = select_scheme(fields, secret)

        if result.scheme is VerificationScheme.HASH_BASED:
            verify_hash(fields, secret)
        elif result.scheme is VerificationScheme.SIGNATURE_BASED:
            verify_signature_scheme(
                fields,
                time.time() if now is None else now,
                settings,
                result.diagnostics,
            )
        else:
            raise UnsupportedSchemeError(
                "Payload has no signature and no hash verifiable with the configured secret"
            )

        result.valid = True
    except LaunchAuthError as e:
        result.reason = e.code
        result.diagnostics["error"] = e.message
    except Exception as e:
        log.error(f"Unexpected launch payload verification error: {e}")
        result.reason = AuthErrorCode.MALFORMED_PAYLOAD
        result.diagnostics["error"] = type(e).__name__

    log.debug(
        f"init_data verification scheme={result.scheme.value} "
        f"valid={result.valid} reason={result.reason} "
        f"diagnostics={json.dumps(result.diagnostics, default=str)}"
    )
    return result


class InitDataVerifier:
    """Verifier bound to one AuthSettings snapshot."""

    def __init__(self, settings: AuthSettings):
        self.settings = settings

    @property
    def has_secret(self) -> bool:
        return bool(self.settings.bot_token)

    def verify(self, init_data: str, *, now: float | None = None) -> VerificationResult:
        return verify_init_data(
            init_data,
            self.settings.bot_token,
            now=now,
            settings=self.settings,
        )
