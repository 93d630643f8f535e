"""Trip endpoints.

Membership decides access: any member can read a trip, only the owner
can change member roles.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session, selectinload

from travelplanner.api.models import (
    CreateTripRequest,
    MemberResponse,
    TripResponse,
    UpdateMemberRoleRequest,
)
from travelplanner.audit import get_audit_logger
from travelplanner.auth.dependencies import check_trip_role, require_principal
from travelplanner.auth.principal import Principal
from travelplanner.db.models import Membership, MembershipRole, Trip
from travelplanner.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/trips", tags=["trips"])


# =============================================================================
# Helper Functions
# =============================================================================


def _membership_for(trip: Trip, user_id: int) -> Membership | None:
    return next((m for m in trip.memberships if m.user_id == user_id), None)


def _trip_to_response(trip: Trip, caller_id: int) -> TripResponse:
    caller = _membership_for(trip, caller_id)
    return TripResponse(
        id=trip.id,
        title=trip.title,
        start_date=trip.start_date,
        end_date=trip.end_date,
        hero_image_url=trip.hero_image_url,
        owner_id=trip.owner_id,
        owner_name=trip.owner.name,
        role=MembershipRole(caller.role),
        created_at=trip.created_at,
        updated_at=trip.updated_at,
        members=[
            MemberResponse(
                user_id=m.user_id,
                name=m.user.name,
                avatar=m.user.avatar,
                role=MembershipRole(m.role),
            )
            for m in trip.memberships
        ],
    )


def _load_trip(db: Session, trip_id: int) -> Trip:
    trip = (
        db.query(Trip)
        .options(
            selectinload(Trip.owner),
            selectinload(Trip.memberships).selectinload(Membership.user),
        )
        .filter(Trip.id == trip_id)
        .first()
    )
    if trip is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=list[TripResponse])
def list_trips(
    principal: Principal = require_principal,
    db: Session = Depends(get_db),
) -> list[TripResponse]:
    """List trips the caller is a member of."""
    trips = (
        db.query(Trip)
        .options(
            selectinload(Trip.owner),
            selectinload(Trip.memberships).selectinload(Membership.user),
        )
        .join(Membership, Membership.trip_id == Trip.id)
        .filter(Membership.user_id == principal.user_id)
        .order_by(Trip.created_at.desc(), Trip.id.desc())
        .all()
    )
    log.debug(f"Found {len(trips)} trips for user {principal.user_id}")
    return [_trip_to_response(t, principal.user_id) for t in trips]


@router.post("", response_model=TripResponse, status_code=201)
def create_trip(
    body: CreateTripRequest,
    request: Request,
    principal: Principal = require_principal,
    db: Session = Depends(get_db),
) -> TripResponse:
    """Create a trip with the caller as owner."""
    now = datetime.utcnow()
    trip = Trip(
        title=body.title,
        start_date=body.start_date,
        end_date=body.end_date,
        owner_id=principal.user_id,
        created_at=now,
        updated_at=now,
    )
    trip.memberships.append(
        Membership(user_id=principal.user_id, role=MembershipRole.OWNER.value, created_at=now)
    )
    db.add(trip)
    db.commit()

    get_audit_logger().log_access(
        action="trip.create",
        principal_id=principal.identity,
        resource=f"trip:{trip.id}",
        conn=request,
    )
    return _trip_to_response(_load_trip(db, trip.id), principal.user_id)


@router.get("/{trip_id}", response_model=TripResponse)
def get_trip(
    trip_id: int,
    principal: Principal = require_principal,
    db: Session = Depends(get_db),
) -> TripResponse:
    """Get a trip. Requires membership."""
    trip = _load_trip(db, trip_id)
    check_trip_role(_membership_for(trip, principal.user_id), MembershipRole.VIEWER, principal)
    return _trip_to_response(trip, principal.user_id)


@router.put("/{trip_id}/members/role", status_code=204)
def update_member_role(
    trip_id: int,
    body: UpdateMemberRoleRequest,
    request: Request,
    principal: Principal = require_principal,
    db: Session = Depends(get_db),
) -> Response:
    """Change a member's role. Owner only; the owner's role is fixed."""
    trip = _load_trip(db, trip_id)
    check_trip_role(_membership_for(trip, principal.user_id), MembershipRole.OWNER, principal)

    target = _membership_for(trip, body.user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Member not found")
    if target.role == MembershipRole.OWNER.value:
        raise HTTPException(status_code=400, detail="Cannot change owner role")
    if body.role is MembershipRole.OWNER:
        raise HTTPException(status_code=400, detail="Ownership cannot be assigned")

    previous = target.role
    target.role = body.role.value
    db.commit()

    get_audit_logger().log_access(
        action="trip.member_role_update",
        principal_id=principal.identity,
        resource=f"trip:{trip_id}",
        details={"user_id": body.user_id, "from": previous, "to": body.role.value},
        conn=request,
    )
    return Response(status_code=204)
