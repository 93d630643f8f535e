"""Launch payload (initData) parsing and canonicalization.

The host application hands the embedded client a percent-encoded query
string. Verification never works on that raw string: fields are decoded,
the authenticity fields are removed, and the rest are sorted by key and
joined into the data-check string the platform signed.

Wire format:
    key=value pairs separated by '&'; split on the first '=' only;
    key and value percent-decoded as UTF-8 ('+' is NOT a space).
"""

import hashlib
import hmac
from typing import Iterable, Mapping
from urllib.parse import quote, unquote

from .exceptions import MalformedPayloadError

# Field names
USER_FIELD = "user"
AUTH_DATE_FIELD = "auth_date"
HASH_FIELD = "hash"
SIGNATURE_FIELD = "signature"

AUTHENTICITY_FIELDS: tuple[str, ...] = (HASH_FIELD, SIGNATURE_FIELD)

# Constant key for deriving the per-bot secret from the bot token
WEB_APP_DATA_KEY = b"WebAppData"


def parse_init_data(raw: str) -> dict[str, str]:
    """Decode a raw launch payload into a field mapping.

    Duplicate keys follow query-string semantics: the last one wins.

    Args:
        raw: The still-percent-encoded payload.

    Returns:
        Mapping of decoded field name to decoded value.

    Raises:
        MalformedPayloadError: Empty payload, a pair without '=', or
            percent-escapes that do not decode as UTF-8.
    """
    if not raw:
        raise MalformedPayloadError("Launch payload is empty")

    fields: dict[str, str] = {}
    for pair in raw.split("&"):
        key, sep, value = pair.partition("=")
        if not sep:
            raise MalformedPayloadError(f"Field without '=' in launch payload: {pair[:32]!r}")
        try:
            fields[unquote(key, errors="strict")] = unquote(value, errors="strict")
        except UnicodeDecodeError as e:
            raise MalformedPayloadError(f"Invalid percent-encoding: {e}")
    return fields


def build_data_check_string(
    fields: Mapping[str, str],
    exclude: Iterable[str] = AUTHENTICITY_FIELDS,
) -> str:
    """Build the canonical data-check string.

    Excluded fields are dropped, the remaining pairs are rendered as
    ``key=value``, sorted by key and joined with newlines. Insertion order
    of ``fields`` never affects the result.
    """
    excluded = set(exclude)
    return "\n".join(
        f"{key}={fields[key]}" for key in sorted(fields) if key not in excluded
    )


def derive_secret_key(bot_token: str) -> bytes:
    """HMAC-SHA256(key="WebAppData", message=bot_token)."""
    return hmac.new(WEB_APP_DATA_KEY, bot_token.encode("utf-8"), hashlib.sha256).digest()


def compute_hash(fields: Mapping[str, str], bot_token: str) -> str:
    """Lowercase hex HMAC-SHA256 of the data-check string under the derived key."""
    data_check_string = build_data_check_string(fields)
    return hmac.new(
        derive_secret_key(bot_token),
        data_check_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def encode_init_data(fields: Mapping[str, str]) -> str:
    """Percent-encode a field mapping back into a launch payload."""
    return "&".join(
        f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in fields.items()
    )


def sign_init_data(fields: Mapping[str, str], bot_token: str) -> str:
    """Return an encoded payload carrying a correct keyed hash.

    Used by tests and scripts/generate-init-data.py to produce payloads
    the way the platform does.
    """
    unsigned = {k: v for k, v in fields.items() if k not in AUTHENTICITY_FIELDS}
    signed = dict(unsigned)
    signed[HASH_FIELD] = compute_hash(unsigned, bot_token)
    return encode_init_data(signed)
