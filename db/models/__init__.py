from db.models.address_history import AddressHistory
from db.models.contact import Contact
from db.models.conversation_context import ConversationContextRecord
from db.models.limit_order import LimitOrder, LimitOrderStatus
from db.models.safe_lock import SafeLock, SafeLockStatus
from db.models.savings_goal import SavingsGoal
from db.models.scheduled_payment import ScheduledPayment, ScheduledPaymentStatus
from db.models.subscription import Subscription, SubscriptionFrequency
from db.models.user_settings import UserSettings

__all__ = [
    "AddressHistory",
    "Contact",
    "ConversationContextRecord",
    "LimitOrder",
    "LimitOrderStatus",
    "SafeLock",
    "SafeLockStatus",
    "SavingsGoal",
    "ScheduledPayment",
    "ScheduledPaymentStatus",
    "Subscription",
    "SubscriptionFrequency",
    "UserSettings",
]
