"""
Reconciliation Service

Turns a PayU return callback into a durable subscription state change.

Success path (verified hash and status "success" only), executed as one database transaction:
    a. expire the owner's other pending subscriptions
    b. expire the owner's other active-but-unpaid subscriptions
    c. activate this subscription, conditioned on it still being unpaid
    d. point the owner's profile at it

A repeated success callback finds (c) touching no row, re-reads the row and
reports the earlier activation instead of failing. Failure/cancel callbacks
and forged callbacks delete the unpaid pending row; a paid row is never
deleted. A verified callback with any other status (e.g. "pending") leaves
the row untouched.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..config import Settings
from ..exceptions import ReconciliationConflict, SignatureMismatchError, ValidationError
from ..models.payments import PaymentCallback
from ..models.subscriptions import ReconciliationResult
from .payu_service import verify_callback
from .session_service import (
    clear_pending_checkout,
    get_completed_checkout,
    get_pending_checkout,
    get_session,
)
from .subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)

INVALID_CORRELATION_MESSAGE = "Invalid payment verification data. Please contact support."
FAILED_MESSAGE = "Payment was cancelled or failed. Please try again."
ACTIVATED_MESSAGE = "Payment successful! Your subscription has been renewed for 12 months."
ALREADY_PAID_MESSAGE = "Payment already verified! Your subscription has been renewed."
UNCONFIRMED_MESSAGE = (
    "Payment is not yet confirmed by PayU. If the amount was debited, "
    "please contact support with your transaction ID."
)


# ============================================================================
# Core Lifecycle
# ============================================================================

async def reconcile_payment(
    db: AsyncSession,
    user_id: str,
    subscription_id: str,
    stored_transaction_id: str,
    callback: PaymentCallback,
    support_email: str = ""
) -> ReconciliationResult:
    """
    Apply a verified successful callback. Does not commit.

    Args:
        db: Database session (caller commits or rolls back)
        user_id: Owner of the pending subscription
        subscription_id: Pending subscription from the checkout correlation
        stored_transaction_id: txnid recorded when the checkout started
        callback: Hash-verified PayU callback
        support_email: Contact included in conflict messages

    Returns:
        ReconciliationResult with outcome "activated" or "already_paid"

    Raises:
        ReconciliationConflict: Row neither activatable nor already paid
            by this transaction
    """
    repo = SubscriptionRepository(db)

    expired_pending = await repo.update_where(
        user_id, "pending", {"status": "expired"}, excluding_id=subscription_id
    )
    expired_unpaid = await repo.update_where(
        user_id, "active", {"status": "expired"},
        excluding_id=subscription_id,
        not_equal={"payment_status": "paid"}
    )
    if expired_pending or expired_unpaid:
        logger.info(
            f"Expired siblings of {subscription_id}: pending={expired_pending}, "
            f"active_unpaid={expired_unpaid}"
        )

    affected = await repo.update(
        subscription_id,
        {
            "status": "active",
            "payment_status": "paid",
            "payment_method": "payu",
            "transaction_id": callback.txnid,
            "gateway_payment_id": callback.mihpayid,
            "notes": f"Payment successful via PayU - Transaction ID: {callback.txnid}",
        },
        equal={"user_id": user_id, "transaction_id": stored_transaction_id},
        not_equal={"payment_status": "paid"}
    )

    if affected == 0:
        existing = await repo.get(subscription_id)
        if (
            existing is not None
            and existing.user_id == user_id
            and existing.payment_status == "paid"
            and existing.transaction_id == callback.txnid
        ):
            logger.info(f"Replayed callback for already paid subscription {subscription_id}")
            return ReconciliationResult(
                outcome="already_paid",
                subscription_id=subscription_id,
                transaction_id=callback.txnid,
                message=ALREADY_PAID_MESSAGE,
            )

        logger.error(
            f"Reconciliation conflict for subscription {subscription_id}: "
            f"found={'yes' if existing else 'no'}, "
            f"payment_status={existing.payment_status if existing else None}"
        )
        raise ReconciliationConflict(
            "Failed to verify payment. Please contact support"
            + (f" at {support_email}" if support_email else "")
            + " with your transaction ID.",
            details={"subscription_id": subscription_id, "transaction_id": callback.txnid}
        )

    await repo.set_profile_subscription(user_id, subscription_id, "active")

    logger.info(f"Activated subscription {subscription_id} for txnid={callback.txnid}")
    return ReconciliationResult(
        outcome="activated",
        subscription_id=subscription_id,
        transaction_id=callback.txnid,
        message=ACTIVATED_MESSAGE,
    )


async def cleanup_failed_payment(
    db: AsyncSession,
    user_id: str,
    subscription_id: str,
    stored_transaction_id: Optional[str]
) -> int:
    """
    Delete an unpaid pending subscription after a failed payment. Does not commit.

    Returns:
        Number of rows deleted (0 if already gone or already paid)
    """
    equal = {"user_id": user_id}
    if stored_transaction_id:
        equal["transaction_id"] = stored_transaction_id

    deleted = await SubscriptionRepository(db).delete(
        subscription_id, equal=equal, not_equal={"payment_status": "paid"}
    )
    logger.info(f"Failed payment cleanup for subscription {subscription_id}: deleted={deleted}")
    return deleted


# ============================================================================
# Return URL Handlers
# ============================================================================

async def _load_correlation(
    db: AsyncSession,
    session_id: Optional[str],
    callback: PaymentCallback,
    allow_completed: bool
) -> Tuple[str, str, Optional[str]]:
    """
    Resolve (user_id, subscription_id, stored_transaction_id) for a callback.

    Raises:
        ValidationError: No signed-in owner, no pending checkout, or a txnid
            that does not belong to this checkout
    """
    session_data = await get_session(db, session_id)
    subscription_id, stored_transaction_id = await get_pending_checkout(db, session_id)

    if allow_completed and not subscription_id:
        completed_id, completed_txnid = await get_completed_checkout(db, session_id)
        if completed_txnid and completed_txnid == callback.txnid:
            subscription_id, stored_transaction_id = completed_id, completed_txnid

    missing = [
        name for name, value in (
            ("user", session_data),
            ("pending_subscription_id", subscription_id),
        )
        if not value
    ]
    if missing:
        raise ValidationError(INVALID_CORRELATION_MESSAGE, details={"missing": missing})

    if callback.txnid and stored_transaction_id and callback.txnid != stored_transaction_id:
        raise ValidationError(
            INVALID_CORRELATION_MESSAGE,
            details={"reason": "transaction id does not match the pending checkout"}
        )

    return session_data["user_id"], subscription_id, stored_transaction_id


async def _fail_checkout(
    db: AsyncSession,
    session_id: Optional[str],
    callback: PaymentCallback,
    user_id: str,
    subscription_id: str,
    stored_transaction_id: Optional[str]
) -> ReconciliationResult:
    """Delete the unpaid pending row and forget the checkout, then commit."""
    try:
        await cleanup_failed_payment(db, user_id, subscription_id, stored_transaction_id)
        await clear_pending_checkout(db, session_id, commit=False)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return ReconciliationResult(
        outcome="failed",
        subscription_id=subscription_id,
        transaction_id=callback.txnid or stored_transaction_id or "",
        message=FAILED_MESSAGE,
    )


async def handle_failure_callback(
    db: AsyncSession,
    session_id: Optional[str],
    callback: PaymentCallback
) -> ReconciliationResult:
    """
    Clean up after PayU reports failure or cancellation.

    Raises:
        ValidationError: No pending checkout to clean up
    """
    correlation = await _load_correlation(db, session_id, callback, allow_completed=False)
    return await _fail_checkout(db, session_id, callback, *correlation)


async def handle_success_callback(
    db: AsyncSession,
    session_id: Optional[str],
    callback: PaymentCallback,
    settings: Settings
) -> ReconciliationResult:
    """
    Process a callback on the success URL.

    Flow:
        1. Resolve correlation (ValidationError when missing, nothing mutated)
        2. failure/cancel status -> failure cleanup
        3. Verify hash; mismatch -> failure cleanup + SignatureMismatchError
        4. Any verified status other than success leaves the row pending
        5. Check the amount against the stored subscription
        6. Reconcile and commit atomically

    Raises:
        ConfigError: Merchant secrets missing
        ValidationError: Missing correlation, txnid, unconfirmed status or
            amount mismatch
        SignatureMismatchError: Forged or corrupted callback
        ReconciliationConflict: Unexpected stored state
    """
    if not callback.txnid:
        raise ValidationError(INVALID_CORRELATION_MESSAGE, details={"missing": ["txnid"]})

    correlation = await _load_correlation(db, session_id, callback, allow_completed=True)
    user_id, subscription_id, stored_transaction_id = correlation

    if callback.is_failure:
        return await _fail_checkout(db, session_id, callback, *correlation)

    if not verify_callback(settings.payu_merchant_key, settings.payu_merchant_salt, callback):
        await _fail_checkout(db, session_id, callback, *correlation)
        raise SignatureMismatchError(
            "Payment verification failed. If you have already made the payment, "
            "please contact support with your transaction ID.",
            details={"transaction_id": callback.txnid}
        )

    if not callback.is_success:
        logger.warning(
            f"Verified callback without success status: txnid={callback.txnid}, status={callback.status}"
        )
        raise ValidationError(
            UNCONFIRMED_MESSAGE,
            details={"transaction_id": callback.txnid, "status": callback.status}
        )

    repo = SubscriptionRepository(db)
    subscription = await repo.get(subscription_id)
    if subscription is None:
        raise ReconciliationConflict(
            f"Pending subscription no longer exists. Please contact support at {settings.support_email}.",
            details={"subscription_id": subscription_id, "transaction_id": callback.txnid}
        )

    try:
        paid_amount = Decimal(callback.amount)
    except InvalidOperation:
        paid_amount = None

    if paid_amount is None or not paid_amount.is_finite():
        raise ValidationError("Invalid payment amount", details={"amount": callback.amount})

    if paid_amount != subscription.amount:
        raise ValidationError(
            f"Amount mismatch: subscription amount is {subscription.amount}, received {callback.amount}",
            details={"subscription_id": subscription_id}
        )

    try:
        result = await reconcile_payment(
            db,
            user_id,
            subscription_id,
            stored_transaction_id,
            callback,
            support_email=settings.support_email
        )
        await clear_pending_checkout(db, session_id, completed=True, commit=False)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return result
