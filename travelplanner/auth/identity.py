"""Identity claim carried in the launch payload's ``user`` field."""

import json
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import UnknownClaimShapeError
from .init_data import USER_FIELD

# Remote ids are stored as signed 64-bit integers
TELEGRAM_ID_MAX = 2**63 - 1


class IdentityClaim(BaseModel):
    """Remote identity as asserted by the host platform.

    Only ``id`` is trusted as a stable key; the rest is display metadata.
    """

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., gt=0, le=TELEGRAM_ID_MAX, description="Remote (Telegram) user id")
    first_name: str = Field(..., description="First name")
    last_name: Optional[str] = Field(None, description="Last name")
    username: Optional[str] = Field(None, description="Handle without '@'")
    photo_url: Optional[str] = Field(None, description="Avatar URL")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


def parse_identity_claim(fields: Mapping[str, str]) -> IdentityClaim:
    """Deserialize the identity claim from decoded payload fields.

    Raises:
        UnknownClaimShapeError: Field missing, not JSON, or wrong shape.
    """
    raw = fields.get(USER_FIELD)
    if not raw:
        raise UnknownClaimShapeError("Launch payload has no 'user' field")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise UnknownClaimShapeError(f"'user' field is not JSON: {e.msg}")

    if not isinstance(data, dict):
        raise UnknownClaimShapeError("'user' field is not a JSON object")

    try:
        return IdentityClaim.model_validate(data)
    except ValidationError as e:
        raise UnknownClaimShapeError(f"'user' field has unexpected shape: {e.error_count()} errors")
