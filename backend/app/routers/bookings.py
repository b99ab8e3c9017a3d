"""
FindNearPG Risk Backend - Booking Router
Tenant booking requests.
"""
from typing import Optional, Union
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB, UserRole
from ..auth import get_current_user, normalize_role
from ..services.bookings import BookingService, BookingServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


class CreateBookingRequest(BaseModel):
    propertyId: Union[int, str]
    roomType: Optional[str] = None
    acceptedTerms: bool = False


class BookingResponse(BaseModel):
    id: int
    property_id: int
    user_id: int
    room_type: Optional[str] = None
    amount: Optional[int] = None
    transaction_id: Optional[str] = None
    payment_status: str
    booking_status: str


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: CreateBookingRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user)
):
    """
    Create a pending booking. Payment completes through the gateway callback.
    """
    if normalize_role(current_user.role) != UserRole.USER.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only user accounts can create bookings. Owners can only browse properties."
        )

    service = BookingService(db)
    try:
        booking = service.create_booking(
            user_id=current_user.id,
            property_id=request.propertyId,
            room_type=request.roomType,
            accepted_terms=request.acceptedTerms,
        )
        db.commit()
    except BookingServiceError as e:
        # Rejected attempts may still have recorded a risk signal
        db.commit()
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating booking: {e}")
        raise HTTPException(status_code=500, detail="Failed to create booking")

    return BookingResponse(
        id=booking.id,
        property_id=booking.property_id,
        user_id=booking.user_id,
        room_type=booking.room_type,
        amount=booking.amount,
        transaction_id=booking.transaction_id,
        payment_status=booking.payment_status,
        booking_status=booking.booking_status,
    )
