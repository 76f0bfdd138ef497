"""
SQLAlchemy ORM Models for RenewPay

Defines the subscriptions, profiles and sessions tables.
A subscription row doubles as the pending gateway transaction until it is paid.
"""
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Numeric, Text, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SubscriptionModel(Base):
    """
    ORM model for subscriptions table.

    Lifecycle: pending -> active/paid, or pending -> expired, or deleted on
    gateway failure. transaction_id is the PayU txnid (max 30 chars).
    """
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    subscription_type = Column(String, nullable=False, default="annual")
    status = Column(String, nullable=False, default="pending", index=True)
    payment_status = Column(String, nullable=False, default="unpaid")
    amount = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String(30), index=True)
    gateway_payment_id = Column(String)
    payment_method = Column(String)
    notes = Column(Text)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'active', 'expired')", name="subscription_status_check"),
        CheckConstraint("payment_status IN ('unpaid', 'paid')", name="payment_status_check"),
        CheckConstraint("subscription_type IN ('trial', 'annual')", name="subscription_type_check"),
        CheckConstraint("amount > 0", name="amount_positive_check"),
    )


class ProfileModel(Base):
    """
    ORM model for profiles table.

    Holds payer identity used to fill the PayU form and the reference to the
    owner's current subscription.
    """
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    subscription_id = Column(String)
    subscription_status = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class SessionModel(Base):
    """
    ORM model for sessions table.

    Created on sign-in, deleted on sign-out. context_data carries the
    pending checkout correlation across the gateway redirect.
    """
    __tablename__ = "sessions"

    session_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    context_data = Column(Text)  # JSON blob
    last_activity_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
