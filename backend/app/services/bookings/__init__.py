"""
Booking Requests

Tenant booking creation. Rejected attempts that skip the booking terms are
fed into the owner risk pipeline.
"""

from .booking_service import BookingService, BookingServiceError, room_type_to_sharing_key

__all__ = [
    "BookingService",
    "BookingServiceError",
    "room_type_to_sharing_key",
]
