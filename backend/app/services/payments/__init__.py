"""
Payment State Application

Applies payment-gateway outcomes to bookings and feeds payment failures
into the owner risk pipeline. The gateway client itself lives elsewhere.
"""

from .booking_payment_service import (
    BookingPaymentService,
    PaymentStateResult,
    callback_state,
    callback_transaction_id,
    normalize_phonepe_state,
    parse_callback_payload,
)

__all__ = [
    "BookingPaymentService",
    "PaymentStateResult",
    "callback_state",
    "callback_transaction_id",
    "normalize_phonepe_state",
    "parse_callback_payload",
]
