"""Launch payload validation endpoint.

Lets the embedded client check its payload before calling the rest of
the API. The path is exempt from the authentication middleware and the
endpoint never writes to user storage.
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from travelplanner.api.models import ErrorResponse, ValidateInitDataRequest, ValidateInitDataResponse
from travelplanner.audit import get_audit_logger
from travelplanner.auth.exceptions import LaunchAuthError
from travelplanner.auth.identity import parse_identity_claim
from travelplanner.auth.init_data import parse_init_data

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/telegram", tags=["telegram"])


@router.post(
    "/validate",
    response_model=ValidateInitDataResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def validate_init_data(body: ValidateInitDataRequest, request: Request):
    """Validate a launch payload and return the identity it carries."""
    if not body.init_data:
        raise HTTPException(status_code=400, detail="initData is required")

    settings = request.app.state.auth_settings
    if settings.trust_unverified:
        scheme = "trusted"
    else:
        result = request.app.state.verifier.verify(body.init_data)
        if not result.valid:
            get_audit_logger().log_auth_failure(result.reason, request)
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid initData", "code": result.reason},
            )
        scheme = result.scheme.value

    try:
        user = parse_identity_claim(parse_init_data(body.init_data))
    except LaunchAuthError as e:
        log.info(f"Validated payload carries no usable identity: {e.message}")
        user = None

    return ValidateInitDataResponse(valid=True, scheme=scheme, user=user)
