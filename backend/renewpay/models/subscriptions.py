"""
Pydantic Subscription Models

API-facing views of subscription rows, status summaries and reconciliation
outcomes.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class Subscription(BaseModel):
    """Subscription record as stored, one row per renewal attempt."""
    id: str
    user_id: str
    subscription_type: Literal["trial", "annual"]
    status: Literal["pending", "active", "expired"]
    payment_status: Literal["unpaid", "paid"]
    amount: Decimal = Field(gt=0)
    transaction_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    start_date: date
    end_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionStatus(BaseModel):
    """Access summary for the owner's current subscription."""
    is_active: bool = False
    is_expired: bool = True
    is_trial: bool = False
    days_remaining: int = 0
    subscription: Optional[Subscription] = None


class ReconciliationResult(BaseModel):
    """Terminal outcome of a gateway callback, shown to the user."""
    outcome: Literal["activated", "already_paid", "failed"]
    subscription_id: str
    transaction_id: str
    message: str


class ManualRenewalRequest(BaseModel):
    """Offline renewal recorded by the owner (bank transfer, UPI, cheque, cash)."""
    user_id: str
    payment_method: Literal["bank_transfer", "upi", "card", "cheque", "cash"] = "bank_transfer"
    transaction_id: Optional[str] = Field(default=None, max_length=30)
    notes: Optional[str] = None


class SignInRequest(BaseModel):
    """Sign-in payload; the profile is created or refreshed from it."""
    user_id: str = Field(min_length=1)
    full_name: str = ""
    email: str = ""
    phone: str = ""
