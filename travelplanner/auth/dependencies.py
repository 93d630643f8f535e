"""Principal access and trip-role authorization for route handlers.

Downstream handlers consume exactly two ambient values from the
principal: the local user id and the Telegram id. Trip access is decided
by comparing the caller's membership role with the required role.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from travelplanner.db.models import Membership, MembershipRole

from .principal import Principal

log = logging.getLogger(__name__)


# Role hierarchy: owner > editor > viewer
# Each role includes all permissions of roles below it
TRIP_ROLE_HIERARCHY: dict[MembershipRole, set[MembershipRole]] = {
    MembershipRole.OWNER: {MembershipRole.OWNER, MembershipRole.EDITOR, MembershipRole.VIEWER},
    MembershipRole.EDITOR: {MembershipRole.EDITOR, MembershipRole.VIEWER},
    MembershipRole.VIEWER: {MembershipRole.VIEWER},
}


async def _current_principal(request: Request) -> Principal:
    user = request.scope.get("user")
    if not isinstance(user, Principal):
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "TelegramInitData"},
        )
    return user


# Pre-built authentication dependency
require_principal: Annotated[Principal, Depends] = Depends(_current_principal)


async def get_current_user_id(principal: Principal = require_principal) -> int:
    """Local user id of the caller."""
    return principal.user_id


async def get_current_telegram_id(principal: Principal = require_principal) -> int:
    """Telegram id of the caller."""
    return principal.telegram_id


def has_trip_role(membership: Membership | None, required_role: MembershipRole) -> bool:
    """Check a membership against the required role, respecting hierarchy."""
    if membership is None:
        return False
    try:
        role = MembershipRole(membership.role)
    except ValueError:
        log.warning(f"Unknown membership role: {membership.role}")
        return False
    return required_role in TRIP_ROLE_HIERARCHY.get(role, {role})


def check_trip_role(
    membership: Membership | None,
    required_role: MembershipRole,
    principal: Principal,
) -> None:
    """Raise 403 unless the membership grants required_role."""
    if has_trip_role(membership, required_role):
        return

    log.warning(
        f"Access denied for user {principal.user_id}: "
        f"requires {required_role.value}, has {membership.role if membership else None}"
    )
    raise HTTPException(status_code=403, detail="Insufficient permissions")
