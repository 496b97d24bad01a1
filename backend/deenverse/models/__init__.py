# Models package init
"""
DeenVerse Backend: ORM Models
==============================

Importing this package registers every table on Base.metadata (used by
Alembic autogenerate and by the test suite's create_all()).
"""

from deenverse.models.account import Account, AccountRole, AccountSession
from deenverse.models.connection import (
    ConnectionRequest,
    ConnectionStatus,
    ConnectionType,
    make_pair_key,
)
from deenverse.models.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedEntityType,
    priority_for,
)

__all__ = [
    "Account",
    "AccountRole",
    "AccountSession",
    "ConnectionRequest",
    "ConnectionStatus",
    "ConnectionType",
    "make_pair_key",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "RelatedEntityType",
    "priority_for",
]
