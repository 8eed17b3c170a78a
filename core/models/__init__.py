"""
Resellers Hub Database Models Package

Complete data structure for the reseller platform:
- User: Custom user model with email login and a reseller role
- Agent: Storefront, profit balance and upline link
- DataBundle / RoleBasePrice / CustomPricing: Catalog and price tiers
- ResultChecker: Exam result checker voucher stock
- Transaction / TransactionEvent: Orders and their state history
- DispatchAttempt: Provider delivery calls per recipient
- LedgerEntry: Every wallet and profit balance movement
- Withdrawal: Profit payouts
- SupportChat / ChatMessage: Support desk conversations
- Setting / Announcement / ApiKey / AuditLog: Platform administration
- Notification / PushSubscription / NotificationPreference: Alerts
"""

from .user import User, phone_validator
from .agent import Agent, slug_validator
from .catalog import Network, DataBundle, RoleBasePrice, CustomPricing, ResultChecker
from .transaction import Transaction, TransactionEvent, DispatchAttempt
from .ledger import LedgerEntry
from .withdrawal import Withdrawal
from .support import SupportChat, ChatMessage
from .system import Setting, Announcement, ApiKey, AuditLog
from .notification import Notification, PushSubscription, NotificationPreference


__all__ = [
    # Validators
    'phone_validator',
    'slug_validator',

    # Accounts
    'User',
    'Agent',

    # Catalog
    'Network',
    'DataBundle',
    'RoleBasePrice',
    'CustomPricing',
    'ResultChecker',

    # Orders
    'Transaction',
    'TransactionEvent',
    'DispatchAttempt',

    # Money
    'LedgerEntry',
    'Withdrawal',

    # Support
    'SupportChat',
    'ChatMessage',

    # Platform
    'Setting',
    'Announcement',
    'ApiKey',
    'AuditLog',

    # Notification
    'Notification',
    'PushSubscription',
    'NotificationPreference',
]
