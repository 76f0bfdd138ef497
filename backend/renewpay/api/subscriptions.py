"""
Subscriptions API Endpoints

Renewal checkout, status, history and offline renewals.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict
import logging

from ..config import Settings, get_settings
from ..db.init_db import get_db
from ..models.subscriptions import ManualRenewalRequest, Subscription, SubscriptionStatus
from ..services.subscription_service import (
    get_subscription_status,
    initiate_renewal,
    list_subscriptions,
    record_manual_renewal,
)
from .sessions import require_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/renew")
async def renew_subscription_endpoint(
    session_data: Dict[str, Any] = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Start a PayU renewal for the signed-in user.

    Returns:
        {
            "subscription": Subscription,   # pending/unpaid
            "payment_form": {"action": str, "method": "POST", "fields": {...}}
        }

    The client renders payment_form as a hidden form and auto-submits it.
    """
    subscription, payment_request = await initiate_renewal(
        db, session_data["user_id"], session_data["session_id"], settings
    )
    return {
        "subscription": subscription.model_dump(mode="json"),
        "payment_form": payment_request.model_dump(),
    }


@router.get("/status")
async def get_subscription_status_endpoint(
    user_id: str = Query(..., description="User identifier"),
    db: AsyncSession = Depends(get_db)
) -> SubscriptionStatus:
    """
    Get access status for a user's current subscription.

    Example:
        GET /api/subscriptions/status?user_id=user_001
    """
    return await get_subscription_status(db, user_id)


@router.get("/user/{user_id}")
async def get_user_subscriptions_endpoint(
    user_id: str,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get all subscriptions for a user, newest first.

    Returns:
        {"user_id": str, "count": int, "subscriptions": List[Subscription]}
    """
    subscriptions = await list_subscriptions(db, user_id)
    return {
        "user_id": user_id,
        "count": len(subscriptions),
        "subscriptions": [s.model_dump(mode="json") for s in subscriptions],
    }


@router.post("/manual-renewal", status_code=201)
async def manual_renewal_endpoint(
    body: ManualRenewalRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> Subscription:
    """
    Record an offline renewal (bank transfer, UPI, card, cheque, cash).

    The subscription is marked paid only when a transaction reference is given.
    """
    return await record_manual_renewal(db, body, settings)
