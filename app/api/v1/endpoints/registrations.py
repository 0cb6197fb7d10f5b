#app/api/v1/endpoints/registrations.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.api import deps
from app.db.session import get_db
from app import crud
from app.core.limiter import limiter
from app.schemas.registration import (
    PaginatedRegistrations,
    RegistrationCreate,
    RegistrationCreateResponse,
    RegistrationDetail,
    RegistrationStatusUpdate,
)
from app.schemas.token import TokenPayload
from app.services.registration.registration_service import RegistrationService

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.post(
    "",
    response_model=RegistrationCreateResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
def create_registration(
    request: Request,
    registration_in: RegistrationCreate,
    db: Session = Depends(get_db),
    current_user: Optional[TokenPayload] = Depends(deps.get_current_user_optional),
):
    """
    Register one or more attendees for an event.

    Works with or without a bearer token. Free events are confirmed at once;
    paid events reserve tickets and stay `pending` until payment settles.
    Anonymous callers of a paid event receive a short-lived `guestToken`
    to start checkout with.
    """
    service = RegistrationService(db)
    return service.create_registration(
        registration_in, user_id=current_user.sub if current_user else None
    )


@router.get("", response_model=PaginatedRegistrations)
def list_registrations(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
    event_id: Optional[str] = Query(None, alias="eventId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
):
    """Retrieves a paginated list of the registrations the caller may see."""
    return RegistrationService(db).list_registrations(
        current_user=current_user,
        event_id=event_id,
        user_id=user_id,
        page=page,
        limit=limit,
    )


@router.get("/{registration_id}", response_model=RegistrationDetail)
def get_registration(
    registration_id: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Retrieve a registration with its attendees, answers and purchase.
    """
    return RegistrationService(db).get_registration(
        registration_id, current_user=current_user
    )


@router.post("/{registration_id}/cancel", response_model=RegistrationDetail)
async def cancel_registration(
    registration_id: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Cancel a registration and release its reserved tickets.
    """
    await RegistrationService(db).cancel_registration(
        registration_id, current_user=current_user
    )
    return crud.registration.get_with_details(db, registration_id=registration_id)


@router.patch("/{registration_id}/status", response_model=RegistrationDetail)
async def update_registration_status(
    registration_id: str,
    status_in: RegistrationStatusUpdate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Change a registration's status. Event organizer or admin only.
    """
    await RegistrationService(db).update_registration_status(
        registration_id, status=status_in.status, current_user=current_user
    )
    return crud.registration.get_with_details(db, registration_id=registration_id)
