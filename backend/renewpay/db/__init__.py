"""
Database package for RenewPay.

Exports database initialization, models, and session management.
"""
from .init_db import initialize_database, create_tables, get_db, get_async_session, AsyncSessionLocal
from .models import (
    Base,
    SubscriptionModel,
    ProfileModel,
    SessionModel
)

__all__ = [
    "initialize_database",
    "create_tables",
    "get_db",
    "get_async_session",
    "AsyncSessionLocal",
    "Base",
    "SubscriptionModel",
    "ProfileModel",
    "SessionModel",
]
