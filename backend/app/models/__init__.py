"""FindNearPG Risk Backend - Data Models"""
from .db_models import (
    # Enums
    UserRole, PaymentStatus, BookingStatus, RiskLevel, RankingPenaltyLevel, SuspiciousEventType,
    # Marketplace entities
    UserDB, PropertyDB, BookingDB,
    # Risk pipeline
    SuspiciousEventDB, PropertyViewDB, OwnerRiskDB,
)

__all__ = [
    "UserRole", "PaymentStatus", "BookingStatus", "RiskLevel", "RankingPenaltyLevel", "SuspiciousEventType",
    "UserDB", "PropertyDB", "BookingDB",
    "SuspiciousEventDB", "PropertyViewDB", "OwnerRiskDB",
]
