"""
Subscription Service

Renewal initiation, status summaries, manual (offline) renewals and the
expiry sweeps for lapsed and orphaned subscriptions.
"""
import calendar
import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..config import Settings
from ..db.models import SubscriptionModel
from ..exceptions import NotFoundError
from ..models.payments import PaymentParams, PaymentRequest
from ..models.subscriptions import ManualRenewalRequest, Subscription, SubscriptionStatus
from .payu_service import build_payment_request, generate_transaction_id, require_merchant_config
from .session_service import set_pending_checkout
from .subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def split_full_name(full_name: str) -> Tuple[str, str]:
    """First word is the first name, the rest is the last name."""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _renewal_window(current: Optional[SubscriptionModel], today: date, months: int) -> Tuple[date, date]:
    # Renewals extend an unexpired subscription instead of overlapping it
    start = today
    if current is not None and current.end_date > today:
        start = current.end_date
    return start, add_months(start, months)


# ============================================================================
# Gateway Renewal
# ============================================================================

async def initiate_renewal(
    db: AsyncSession,
    user_id: str,
    session_id: str,
    settings: Settings,
    today: Optional[date] = None
) -> Tuple[Subscription, PaymentRequest]:
    """
    Create a pending renewal and the signed PayU form to pay for it.

    Args:
        db: Database session
        user_id: Signed-in owner
        session_id: Session that will carry the checkout correlation
        settings: Merchant secrets, plan price and public URL
        today: Override for the current date

    Returns:
        (pending Subscription, PaymentRequest form descriptor)

    Raises:
        ConfigError: Merchant secrets missing (nothing is written)
        NotFoundError: Owner has no profile
        ValidationError: Profile lacks a usable email or name (nothing is written)
    """
    require_merchant_config(settings.payu_merchant_key, settings.payu_merchant_salt)

    today = today or date.today()
    repo = SubscriptionRepository(db)

    profile = await repo.get_profile(user_id)
    if profile is None:
        raise NotFoundError(f"No profile found for user: {user_id}")

    current = await repo.latest_active(user_id)
    start_date, end_date = _renewal_window(current, today, settings.renewal_months)

    transaction_id = generate_transaction_id()
    first_name, last_name = split_full_name(profile.full_name)
    base_url = settings.public_base_url.rstrip("/")

    payment_request = build_payment_request(
        settings.payu_merchant_key,
        settings.payu_merchant_salt,
        PaymentParams(
            transaction_id=transaction_id,
            amount=settings.renewal_amount,
            product_info=settings.product_info,
            first_name=first_name,
            last_name=last_name,
            email=profile.email,
            phone=profile.phone,
            success_url=f"{base_url}/api/payments/payu/success?txnid={transaction_id}",
            failure_url=f"{base_url}/api/payments/payu/failure?txnid={transaction_id}",
        ),
        test_mode=settings.payu_test_mode
    )

    subscription = SubscriptionModel(
        id=str(uuid.uuid4()),
        user_id=user_id,
        subscription_type="annual",
        status="pending",
        payment_status="unpaid",
        amount=settings.renewal_amount,
        transaction_id=transaction_id,
        payment_method="payu",
        notes="Awaiting PayU payment",
        start_date=start_date,
        end_date=end_date,
        created_at=datetime.utcnow(),
    )

    try:
        await repo.insert(subscription)
        await set_pending_checkout(db, session_id, subscription.id, transaction_id, commit=False)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Initiated renewal: subscription={subscription.id}, txnid={transaction_id}, "
        f"user={user_id}, window={start_date}..{end_date}"
    )

    return Subscription.model_validate(subscription), payment_request


# ============================================================================
# Status and History
# ============================================================================

async def get_subscription_status(
    db: AsyncSession,
    user_id: str,
    today: Optional[date] = None
) -> SubscriptionStatus:
    """
    Summarize access for the owner's latest active subscription.

    A subscription grants access only while active, paid and not past its
    end date.
    """
    today = today or date.today()
    current = await SubscriptionRepository(db).latest_active(user_id)

    if current is None:
        return SubscriptionStatus()

    is_expired = current.end_date < today
    days_remaining = (current.end_date - today).days

    return SubscriptionStatus(
        is_active=not is_expired and current.status == "active" and current.payment_status == "paid",
        is_expired=is_expired,
        is_trial=current.subscription_type == "trial",
        days_remaining=0 if is_expired else days_remaining,
        subscription=Subscription.model_validate(current),
    )


async def list_subscriptions(db: AsyncSession, user_id: str) -> List[Subscription]:
    """All subscriptions of an owner, newest first."""
    rows = await SubscriptionRepository(db).list_for_user(user_id)
    return [Subscription.model_validate(row) for row in rows]


# ============================================================================
# Manual Renewal
# ============================================================================

async def record_manual_renewal(
    db: AsyncSession,
    request: ManualRenewalRequest,
    settings: Settings,
    today: Optional[date] = None
) -> Subscription:
    """
    Record an offline renewal (bank transfer, UPI, cheque, cash).

    The new subscription is active immediately; it is marked paid only when
    a payment reference is supplied. The previous active subscription is
    expired and the profile points at the new one.
    """
    today = today or date.today()
    repo = SubscriptionRepository(db)

    profile = await repo.get_profile(request.user_id)
    if profile is None:
        raise NotFoundError(f"No profile found for user: {request.user_id}")

    current = await repo.latest_active(request.user_id)
    start_date, end_date = _renewal_window(current, today, settings.renewal_months)

    subscription = SubscriptionModel(
        id=str(uuid.uuid4()),
        user_id=request.user_id,
        subscription_type="annual",
        status="active",
        payment_status="paid" if request.transaction_id else "unpaid",
        amount=settings.renewal_amount,
        transaction_id=request.transaction_id or None,
        payment_method=request.payment_method,
        notes=request.notes or f"Annual renewal - {request.payment_method}",
        start_date=start_date,
        end_date=end_date,
        created_at=datetime.utcnow(),
    )

    try:
        await repo.insert(subscription)
        if current is not None:
            await repo.update(current.id, {"status": "expired"})
        await repo.set_profile_subscription(request.user_id, subscription.id, "active")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Recorded manual renewal: subscription={subscription.id}, "
        f"method={request.payment_method}, paid={subscription.payment_status == 'paid'}"
    )

    return Subscription.model_validate(subscription)


# ============================================================================
# Expiry Sweeps
# ============================================================================

async def expire_lapsed_subscriptions(db: AsyncSession, today: Optional[date] = None) -> int:
    """Expire active subscriptions whose end date has passed."""
    today = today or date.today()
    count = await SubscriptionRepository(db).expire_before("end_date", today, "active")
    await db.commit()

    if count:
        logger.info(f"Expired {count} lapsed subscriptions (end_date < {today})")
    return count


async def expire_orphaned_pending(
    db: AsyncSession,
    older_than: timedelta,
    now: Optional[datetime] = None
) -> int:
    """
    Expire unpaid pending subscriptions abandoned at the gateway.

    Rows are expired, never deleted, so a late verified callback can still
    activate them.
    """
    cutoff = (now or datetime.utcnow()) - older_than
    count = await SubscriptionRepository(db).expire_before(
        "created_at", cutoff, "pending", payment_status="unpaid"
    )
    await db.commit()

    if count:
        logger.info(f"Expired {count} orphaned pending subscriptions (created before {cutoff.isoformat()})")
    return count
