"""Current user endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from travelplanner.api.models import UserResponse
from travelplanner.auth.db_users import get_db_user_store
from travelplanner.auth.dependencies import get_current_user_id
from travelplanner.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_me(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Return the caller's local user record."""
    user = get_db_user_store().get_by_id(db, user_id)
    if user is None:
        # Row deleted after this request authenticated
        raise HTTPException(status_code=401, detail="User no longer exists")
    return UserResponse.model_validate(user)
