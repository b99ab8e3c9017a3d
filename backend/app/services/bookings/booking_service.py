"""
Booking Service

Creates pending bookings for tenants. Payment is settled later through the
gateway callback (see services.payments).
"""
from typing import Any, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ...models.db_models import (
    BookingDB,
    BookingStatus,
    PaymentStatus,
    PropertyDB,
    SuspiciousEventType,
)
from ..risk.suspicious_monitor import SuspiciousActivityMonitor, coerce_id


logger = logging.getLogger(__name__)


SHARING_LABELS = {
    "1": "Single Sharing",
    "2": "Double Sharing",
    "3": "Triple Sharing",
}


class BookingServiceError(Exception):
    """Raised when a booking request is rejected."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def room_type_to_sharing_key(room_type: Any) -> Optional[str]:
    """Map '1' / 'single sharing' style input to a sharing key."""
    normalized = str(room_type or "").strip().lower()
    if not normalized:
        return None
    if normalized == "1" or "single" in normalized:
        return "1"
    if normalized == "2" or "double" in normalized:
        return "2"
    if normalized == "3" or "triple" in normalized:
        return "3"
    return None


class BookingService:
    """
    Tenant booking creation.

    Usage:
        service = BookingService(db)
        booking = service.create_booking(user_id, property_id, "double", accepted_terms=True)
    """

    def __init__(self, db: Session, monitor: Optional[SuspiciousActivityMonitor] = None):
        self.db = db
        self.monitor = monitor or SuspiciousActivityMonitor(db)

    def create_booking(
        self,
        user_id: Any,
        property_id: Any,
        room_type: Any = None,
        accepted_terms: bool = False,
    ) -> BookingDB:
        """
        Create a pending booking.

        Raises:
            BookingServiceError: missing fields, unknown property, terms not
                accepted, unapproved listing, no rooms, bad room type, or an
                active booking already exists (409)
        """
        tenant_id = coerce_id(user_id)
        property_id = coerce_id(property_id)
        if tenant_id is None or property_id is None:
            raise BookingServiceError("Missing required fields")

        prop = self.db.query(PropertyDB).filter(PropertyDB.id == property_id).first()
        if prop is None:
            raise BookingServiceError("Property not found", status_code=404)

        if not accepted_terms:
            self.monitor.track_suspicious_event(
                SuspiciousEventType.TERMS_NOT_ACCEPTED.value,
                prop.owner_id,
                user_id=tenant_id,
                property_id=prop.id,
                severity=SuspiciousActivityMonitor.TERMS_NOT_ACCEPTED_SEVERITY,
            )
            self.monitor.recompute_owner_risk(prop.owner_id)
            raise BookingServiceError("You must accept booking terms to continue")

        if not prop.is_approved:
            raise BookingServiceError("Property is not approved yet")
        if (prop.available_rooms or 0) <= 0:
            raise BookingServiceError("No rooms available")

        sharing_key = room_type_to_sharing_key(room_type) or room_type_to_sharing_key(prop.sharing)
        if sharing_key is None:
            raise BookingServiceError("Invalid room type")
        available = ["1", "2", "3"] if prop.sharing == "all123" else [str(prop.sharing or "")]
        if sharing_key not in available:
            raise BookingServiceError("Selected room type is not available for this property")

        active = self.db.query(BookingDB).filter(
            BookingDB.user_id == tenant_id,
            BookingDB.property_id == prop.id,
            BookingDB.booking_status.notin_([
                BookingStatus.CANCELLED.value,
                BookingStatus.FAILED.value,
            ]),
        ).first()
        if active is not None:
            raise BookingServiceError(
                "You already have an active booking for this property.", status_code=409
            )

        booking = BookingDB(
            property_id=prop.id,
            user_id=tenant_id,
            room_type=SHARING_LABELS[sharing_key],
            amount=prop.price,
            transaction_id=f"TXN{uuid4().hex[:20].upper()}",
            payment_status=PaymentStatus.PENDING.value,
            booking_status=BookingStatus.PENDING.value,
        )
        self.db.add(booking)
        self.db.flush()

        logger.info(f"Booking {booking.id} created for property {prop.id} by user {tenant_id}")
        return booking
