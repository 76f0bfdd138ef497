"""
Subscription Repository

Narrow persistence interface over the subscriptions and profiles tables.

Every mutating call returns the number of rows it touched, and updates and
deletes accept equality/inequality conditions on current column values so
callers can express "only if still unpaid" without a read-modify-write.
Callers own the transaction: nothing here commits.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db.models import ProfileModel, SubscriptionModel

logger = logging.getLogger(__name__)


def _conditions(equal: Optional[Dict[str, Any]], not_equal: Optional[Dict[str, Any]]) -> list:
    """Translate {column: value} filters into SQLAlchemy clauses."""
    clauses = []
    for column, value in (equal or {}).items():
        clauses.append(getattr(SubscriptionModel, column) == value)
    for column, value in (not_equal or {}).items():
        clauses.append(getattr(SubscriptionModel, column) != value)
    return clauses


class SubscriptionRepository:
    """
    Subscription persistence bound to one AsyncSession.

    Example:
        repo = SubscriptionRepository(db)
        affected = await repo.update(
            sub_id, {"status": "active"}, not_equal={"payment_status": "paid"}
        )
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def insert(self, subscription: SubscriptionModel) -> SubscriptionModel:
        self.db.add(subscription)
        await self.db.flush()
        return subscription

    async def get(self, subscription_id: str) -> Optional[SubscriptionModel]:
        """Fresh read of a subscription, bypassing stale identity-map state."""
        result = await self.db.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update(
        self,
        subscription_id: str,
        fields: Dict[str, Any],
        equal: Optional[Dict[str, Any]] = None,
        not_equal: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Conditionally update one subscription.

        Returns:
            Number of rows updated (0 when the id or a condition did not match)
        """
        values = dict(fields, updated_at=datetime.utcnow())
        result = await self.db.execute(
            update(SubscriptionModel)
            .where(SubscriptionModel.id == subscription_id, *_conditions(equal, not_equal))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(
        self,
        subscription_id: str,
        equal: Optional[Dict[str, Any]] = None,
        not_equal: Optional[Dict[str, Any]] = None
    ) -> int:
        """Conditionally delete one subscription. Deletes are immediate and final."""
        result = await self.db.execute(
            delete(SubscriptionModel)
            .where(SubscriptionModel.id == subscription_id, *_conditions(equal, not_equal))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def update_where(
        self,
        user_id: str,
        status: str,
        fields: Dict[str, Any],
        excluding_id: Optional[str] = None,
        not_equal: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Update every subscription of an owner currently in `status`.

        Args:
            user_id: Owner whose rows are updated
            status: Current status filter
            fields: New column values
            excluding_id: Subscription left untouched
            not_equal: Extra inequality filters, e.g. {"payment_status": "paid"}

        Returns:
            Number of rows updated
        """
        clauses = [
            SubscriptionModel.user_id == user_id,
            SubscriptionModel.status == status,
            *_conditions(None, not_equal),
        ]
        if excluding_id is not None:
            clauses.append(SubscriptionModel.id != excluding_id)

        values = dict(fields, updated_at=datetime.utcnow())
        result = await self.db.execute(
            update(SubscriptionModel)
            .where(*clauses)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_for_user(self, user_id: str) -> List[SubscriptionModel]:
        """All subscriptions of an owner, newest first."""
        result = await self.db.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .order_by(SubscriptionModel.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def latest_active(self, user_id: str) -> Optional[SubscriptionModel]:
        """Active subscription with the furthest end date, if any."""
        result = await self.db.execute(
            select(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.status == "active"
            )
            .order_by(SubscriptionModel.end_date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def expire_before(self, cutoff_column: str, cutoff: Any, status: str, **filters: Any) -> int:
        """
        Mark rows in `status` whose `cutoff_column` is before `cutoff` as expired.

        Extra keyword filters are equality conditions.
        """
        column = getattr(SubscriptionModel, cutoff_column)
        result = await self.db.execute(
            update(SubscriptionModel)
            .where(
                SubscriptionModel.status == status,
                column < cutoff,
                *_conditions(filters, None)
            )
            .values(status="expired", updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[ProfileModel]:
        result = await self.db.execute(
            select(ProfileModel)
            .where(ProfileModel.id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_profile(
        self,
        user_id: str,
        full_name: str = "",
        email: str = "",
        phone: str = ""
    ) -> ProfileModel:
        """Create the profile or refresh its non-empty identity fields."""
        profile = await self.get_profile(user_id)
        if profile is None:
            profile = ProfileModel(id=user_id, full_name=full_name, email=email, phone=phone)
            self.db.add(profile)
        else:
            if full_name:
                profile.full_name = full_name
            if email:
                profile.email = email
            if phone:
                profile.phone = phone
        await self.db.flush()
        return profile

    async def set_profile_subscription(
        self,
        user_id: str,
        subscription_id: str,
        subscription_status: str = "active"
    ) -> int:
        """Point the owner's profile at their current subscription."""
        result = await self.db.execute(
            update(ProfileModel)
            .where(ProfileModel.id == user_id)
            .values(
                subscription_id=subscription_id,
                subscription_status=subscription_status,
                updated_at=datetime.utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
