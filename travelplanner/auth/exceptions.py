"""Launch-payload authentication exceptions mapped to reason codes.

Every failure inside the auth subsystem carries one of the AuthErrorCode
values. The verifier folds them into VerificationResult.reason; the
resolver surfaces them to the request pipeline as UnauthenticatedError.
"""


class AuthErrorCode:
    """Machine-readable reason codes returned with 401 responses."""

    INIT_DATA_MISSING = "INIT_DATA_MISSING"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    UNSUPPORTED_SCHEME = "UNSUPPORTED_SCHEME"
    STALE_PAYLOAD = "STALE_PAYLOAD"
    UNKNOWN_CLAIM_SHAPE = "UNKNOWN_CLAIM_SHAPE"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"


class LaunchAuthError(Exception):
    """Base exception for launch-payload authentication.

    Carries an error code from AuthErrorCode.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class MalformedPayloadError(LaunchAuthError):
    """Payload is not a well-formed percent-encoded query string."""

    def __init__(self, message: str = "Malformed launch payload"):
        super().__init__(AuthErrorCode.MALFORMED_PAYLOAD, message)


class SignatureMismatchError(LaunchAuthError):
    """Keyed hash or detached signature does not match the payload."""

    def __init__(self, message: str = "Launch payload signature mismatch"):
        super().__init__(AuthErrorCode.SIGNATURE_MISMATCH, message)


class UnsupportedSchemeError(LaunchAuthError):
    """No verification scheme applies.

    Raised when neither authenticity field is present, or only the keyed
    hash is present and no shared secret is configured.
    """

    def __init__(self, message: str = "No supported verification scheme"):
        super().__init__(AuthErrorCode.UNSUPPORTED_SCHEME, message)


class StalePayloadError(LaunchAuthError):
    """auth_date falls outside the freshness window."""

    def __init__(self, message: str = "Launch payload is too old"):
        super().__init__(AuthErrorCode.STALE_PAYLOAD, message)


class UnknownClaimShapeError(LaunchAuthError):
    """The user field is missing or is not a valid identity claim."""

    def __init__(self, message: str = "Identity claim could not be parsed"):
        super().__init__(AuthErrorCode.UNKNOWN_CLAIM_SHAPE, message)


class StorageUnavailableError(LaunchAuthError):
    """User storage failed and no prior record can stand in."""

    def __init__(self, message: str = "User storage unavailable"):
        super().__init__(AuthErrorCode.STORAGE_UNAVAILABLE, message)


class UnauthenticatedError(LaunchAuthError):
    """The single failure outcome of identity resolution.

    The code is the reason of the underlying failure.
    """

    def __init__(
        self,
        code: str = AuthErrorCode.SIGNATURE_MISMATCH,
        message: str = "Unauthenticated",
    ):
        super().__init__(code, message)

    @classmethod
    def from_error(cls, exc: LaunchAuthError) -> "UnauthenticatedError":
        return cls(exc.code, exc.message)
