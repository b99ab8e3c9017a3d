"""
Booking Payment Service

Writes gateway payment outcomes onto bookings.

- First transition into PAID takes a room off the listing and refreshes
  the owner's risk (conversion improves).
- A transition into CANCELLED / FAILED is recorded as a suspicious event
  against the owner before the refresh.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
import base64
import binascii
import json
import logging

from sqlalchemy.orm import Session

from ...models.db_models import (
    BookingDB,
    BookingStatus,
    PaymentStatus,
    PropertyDB,
    SuspiciousEventType,
)
from ..risk.suspicious_monitor import SuspiciousActivityMonitor


logger = logging.getLogger(__name__)


def normalize_phonepe_state(raw_state: Any) -> Tuple[str, str]:
    """
    Map a PhonePe transaction state to (payment_status, booking_status).

    SUCCESS / COMPLETED / PAYMENT_SUCCESS -> paid / confirmed
    PENDING / INITIATED / PAYMENT_PENDING -> pending / pending
    anything else                         -> failed / cancelled
    """
    state = str(raw_state or "").strip().upper()
    if state in ("SUCCESS", "COMPLETED", "PAYMENT_SUCCESS"):
        return PaymentStatus.PAID.value, BookingStatus.CONFIRMED.value
    if state in ("PENDING", "INITIATED", "PAYMENT_PENDING"):
        return PaymentStatus.PENDING.value, BookingStatus.PENDING.value
    return PaymentStatus.FAILED.value, BookingStatus.CANCELLED.value


def parse_callback_payload(payload: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Decode a PhonePe callback body.

    The gateway posts {"response": "<base64 JSON>"}; already-decoded bodies
    are passed through. Undecodable payloads yield None.
    """
    if not payload:
        return None
    encoded = payload.get("response")
    if not encoded:
        return payload
    try:
        decoded = json.loads(base64.b64decode(encoded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return decoded if isinstance(decoded, dict) else None


def callback_transaction_id(parsed: Optional[Dict[str, Any]]) -> Optional[str]:
    if not parsed:
        return None
    data = parsed.get("data") or {}
    return (
        data.get("merchantTransactionId")
        or parsed.get("merchantTransactionId")
        or parsed.get("transactionId")
    )


def callback_state(parsed: Optional[Dict[str, Any]]) -> str:
    """Gateway state carried in the callback; missing means FAILED."""
    if not parsed:
        return "FAILED"
    data = parsed.get("data") or {}
    return parsed.get("code") or parsed.get("status") or data.get("state") or "FAILED"


@dataclass
class PaymentStateResult:
    """Outcome of applying a gateway state to a booking."""
    updated: bool
    booking_id: Optional[int] = None
    payment_status: Optional[str] = None
    booking_status: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class BookingPaymentService:
    """
    Applies payment state to bookings.

    Usage:
        service = BookingPaymentService(db)
        result = service.apply_gateway_state(transaction_id, "PAYMENT_ERROR")
    """

    def __init__(self, db: Session, monitor: Optional[SuspiciousActivityMonitor] = None):
        self.db = db
        self.monitor = monitor or SuspiciousActivityMonitor(db)

    def apply_gateway_state(self, transaction_id: str, raw_state: Any) -> PaymentStateResult:
        payment_status, booking_status = normalize_phonepe_state(raw_state)
        return self.apply_booking_state(transaction_id, payment_status, booking_status)

    def apply_booking_state(
        self,
        transaction_id: str,
        payment_status: str,
        booking_status: str,
    ) -> PaymentStateResult:
        """
        Overwrite a booking's payment and booking status.

        Args:
            transaction_id: Merchant transaction id of the booking
            payment_status: New payment status (pending, paid, failed)
            booking_status: New booking status (pending, confirmed, cancelled, failed)

        Returns:
            PaymentStateResult; updated=False when the booking is unknown
        """
        booking = self.db.query(BookingDB).filter(
            BookingDB.transaction_id == transaction_id
        ).first()
        if booking is None:
            logger.warning(f"Payment state for unknown transaction {transaction_id}")
            return PaymentStateResult(updated=False, reason="booking-not-found")

        was_paid = str(booking.payment_status or "").lower() == PaymentStatus.PAID.value

        booking.payment_status = payment_status
        booking.booking_status = booking_status
        booking.updated_at = datetime.utcnow()
        self.db.flush()

        prop = self.db.query(PropertyDB).filter(PropertyDB.id == booking.property_id).first()

        if not was_paid and payment_status == PaymentStatus.PAID.value:
            if prop is not None:
                prop.available_rooms = max(0, (prop.available_rooms or 0) - 1)
                prop.updated_at = datetime.utcnow()
                self.db.flush()
                self.monitor.recompute_owner_risk(prop.owner_id)
        elif prop is not None and booking_status in (
            BookingStatus.CANCELLED.value,
            BookingStatus.FAILED.value,
        ):
            self.monitor.track_suspicious_event(
                SuspiciousEventType.PAYMENT_CANCELLED_OR_FAILED.value,
                prop.owner_id,
                user_id=booking.user_id,
                property_id=booking.property_id,
                severity=SuspiciousActivityMonitor.PAYMENT_FAILURE_SEVERITY,
                details={"transactionId": transaction_id, "bookingStatus": booking_status},
            )
            self.monitor.recompute_owner_risk(prop.owner_id)

        logger.info(
            f"Booking {booking.id} payment state applied: "
            f"payment={payment_status} booking={booking_status}"
        )
        return PaymentStateResult(
            updated=True,
            booking_id=booking.id,
            payment_status=payment_status,
            booking_status=booking_status,
        )
