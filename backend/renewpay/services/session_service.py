"""
Session Management Service

Server-side sign-in sessions. A session is created on sign-in and deleted on
sign-out; its context_data carries the pending checkout correlation
(pending_subscription_id, pending_transaction_id) across the full-page
redirect to PayU and back.
"""
import json
import uuid
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Tuple
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db.models import SessionModel

logger = logging.getLogger(__name__)

PENDING_SUBSCRIPTION_KEY = "pending_subscription_id"
PENDING_TRANSACTION_KEY = "pending_transaction_id"
COMPLETED_SUBSCRIPTION_KEY = "completed_subscription_id"
COMPLETED_TRANSACTION_KEY = "completed_transaction_id"


def _serialize(session: SessionModel) -> Dict[str, Any]:
    return {
        "session_id": session.session_id,
        "user_id": session.user_id,
        "context_data": json.loads(session.context_data) if session.context_data else {},
        "created_at": session.created_at.isoformat(),
        "last_activity_at": session.last_activity_at.isoformat()
    }


async def _load(db: AsyncSession, session_id: str) -> Optional[SessionModel]:
    result = await db.execute(
        select(SessionModel).where(SessionModel.session_id == session_id)
    )
    return result.scalar_one_or_none()


# ============================================================================
# Sign-in / Sign-out
# ============================================================================

async def create_session(
    db: AsyncSession,
    user_id: str,
    commit: bool = True
) -> Dict[str, Any]:
    """
    Create a new session for a signed-in user.

    Args:
        db: Database session
        user_id: User identifier
        commit: Commit immediately (False when part of a larger transaction)

    Returns:
        Created session data:
        {
            "session_id": str,
            "user_id": str,
            "context_data": Dict,
            "created_at": str,
            "last_activity_at": str
        }
    """
    now = datetime.utcnow()
    db_session = SessionModel(
        session_id=f"session_{uuid.uuid4().hex}",
        user_id=user_id,
        context_data=json.dumps({}),
        last_activity_at=now,
        created_at=now
    )

    db.add(db_session)
    await db.flush()
    if commit:
        await db.commit()

    logger.info(f"Created session: {db_session.session_id[:16]}... for user {user_id}")
    return _serialize(db_session)


async def get_session(
    db: AsyncSession,
    session_id: Optional[str]
) -> Optional[Dict[str, Any]]:
    """Retrieve session data by ID, or None if unknown."""
    if not session_id:
        return None

    session = await _load(db, session_id)
    if not session:
        return None

    return _serialize(session)


async def end_session(db: AsyncSession, session_id: str) -> bool:
    """
    Sign out: delete the session and everything held in its context.

    Returns:
        True if a session was deleted
    """
    result = await db.execute(
        delete(SessionModel).where(SessionModel.session_id == session_id)
    )
    await db.commit()

    deleted = result.rowcount > 0
    if deleted:
        logger.info(f"Ended session: {session_id[:16]}...")
    return deleted


# ============================================================================
# Pending Checkout Correlation
# ============================================================================

async def _update_context(
    db: AsyncSession,
    session_id: str,
    changes: Dict[str, Optional[str]],
    commit: bool
) -> bool:
    session = await _load(db, session_id)
    if not session:
        logger.warning(f"Session not found for update: {session_id[:16]}...")
        return False

    context = json.loads(session.context_data) if session.context_data else {}
    for key, value in changes.items():
        if value is None:
            context.pop(key, None)
        else:
            context[key] = value

    session.context_data = json.dumps(context)
    session.last_activity_at = datetime.utcnow()

    await db.flush()
    if commit:
        await db.commit()
    return True


async def set_pending_checkout(
    db: AsyncSession,
    session_id: str,
    subscription_id: str,
    transaction_id: str,
    commit: bool = True
) -> bool:
    """
    Remember which pending subscription this browser was sent to pay for.

    Starting a new checkout forgets any previously completed one.
    """
    return await _update_context(
        db,
        session_id,
        {
            PENDING_SUBSCRIPTION_KEY: subscription_id,
            PENDING_TRANSACTION_KEY: transaction_id,
            COMPLETED_SUBSCRIPTION_KEY: None,
            COMPLETED_TRANSACTION_KEY: None,
        },
        commit
    )


async def get_pending_checkout(
    db: AsyncSession,
    session_id: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """
    Read the pending checkout correlation.

    Returns:
        (pending_subscription_id, pending_transaction_id), either may be None
    """
    session_data = await get_session(db, session_id)
    if not session_data:
        return None, None

    context = session_data["context_data"]
    return context.get(PENDING_SUBSCRIPTION_KEY), context.get(PENDING_TRANSACTION_KEY)


async def get_completed_checkout(
    db: AsyncSession,
    session_id: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """
    Read the last checkout reconciled in this session.

    Lets a reloaded success page replay reconciliation instead of failing.
    """
    session_data = await get_session(db, session_id)
    if not session_data:
        return None, None

    context = session_data["context_data"]
    return context.get(COMPLETED_SUBSCRIPTION_KEY), context.get(COMPLETED_TRANSACTION_KEY)


async def clear_pending_checkout(
    db: AsyncSession,
    session_id: str,
    completed: bool = False,
    commit: bool = True
) -> bool:
    """
    Forget the pending checkout after reconciliation or failure cleanup.

    Args:
        completed: Keep the ids as the completed checkout (successful payment)
    """
    changes: Dict[str, Optional[str]] = {
        PENDING_SUBSCRIPTION_KEY: None,
        PENDING_TRANSACTION_KEY: None,
    }
    if completed:
        subscription_id, transaction_id = await get_pending_checkout(db, session_id)
        if subscription_id:
            changes[COMPLETED_SUBSCRIPTION_KEY] = subscription_id
            changes[COMPLETED_TRANSACTION_KEY] = transaction_id

    return await _update_context(db, session_id, changes, commit)


# ============================================================================
# Session Cleanup
# ============================================================================

async def delete_inactive_sessions(
    db: AsyncSession,
    days_inactive: int = 30
) -> int:
    """
    Delete sessions inactive for specified number of days.

    Returns:
        Number of sessions deleted
    """
    cutoff = datetime.utcnow() - timedelta(days=days_inactive)

    result = await db.execute(
        delete(SessionModel).where(SessionModel.last_activity_at < cutoff)
    )

    deleted_count = result.rowcount
    await db.commit()

    logger.info(f"Deleted {deleted_count} inactive sessions (older than {days_inactive} days)")
    return deleted_count
