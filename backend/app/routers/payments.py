"""
FindNearPG Risk Backend - Payment Router
PhonePe server-to-server callback.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.payments import (
    BookingPaymentService,
    callback_state,
    callback_transaction_id,
    parse_callback_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


class CallbackResponse(BaseModel):
    success: bool
    transactionId: str
    state: str
    update: Dict[str, Any]


@router.post("/phonepe/callback", response_model=CallbackResponse)
async def phonepe_callback(
    payload: Optional[Dict[str, Any]] = Body(None),
    db: Session = Depends(get_db)
):
    """
    Apply the gateway-reported state to the matching booking.
    """
    parsed = parse_callback_payload(payload)
    transaction_id = callback_transaction_id(parsed)
    if not transaction_id:
        raise HTTPException(status_code=400, detail="Missing transaction id in callback")

    state = str(callback_state(parsed))

    try:
        result = BookingPaymentService(db).apply_gateway_state(transaction_id, state)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"PhonePe callback error: {e}")
        raise HTTPException(status_code=500, detail="Failed to process callback")

    return CallbackResponse(
        success=True,
        transactionId=str(transaction_id),
        state=state,
        update=result.to_dict(),
    )
