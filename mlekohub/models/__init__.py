"""
SQLAlchemy modeli za MlekoHub.

Ovaj modul exportuje sve modele kako bi bili dostupni
za import iz mlekohub.models.
"""

from .customer import CustomerProfile, Address
from .product import Product, ProductPricing, ProductUnit
from .subscription import (
    Subscription, SubscriptionHistory, Vacation, Holiday,
    SubscriptionFrequency, SubscriptionStatus, SubscriptionChangeType
)
from .adhoc import (
    AdhocRequest, AdhocRequestItem, AdhocCapacity,
    AdhocRequestStatus, AdhocItemStatus
)
from .delivery import (
    Delivery, DeliveryType, DeliveryStatus,
    TERMINAL_DELIVERY_STATUSES, BILLABLE_DELIVERY_STATUSES
)
from .billing import (
    Bill, BillItem, Payment,
    BillStatus, BillItemType, PaymentStatus, PaymentMethod
)
from .wallet import (
    CustomerWallet, WalletTransaction,
    WalletTransactionType, WalletReferenceType
)
from .system_settings import SystemSetting

__all__ = [
    # Customer
    'CustomerProfile',
    'Address',
    # Product
    'Product',
    'ProductPricing',
    'ProductUnit',
    # Subscription
    'Subscription',
    'SubscriptionHistory',
    'Vacation',
    'Holiday',
    'SubscriptionFrequency',
    'SubscriptionStatus',
    'SubscriptionChangeType',
    # Adhoc
    'AdhocRequest',
    'AdhocRequestItem',
    'AdhocCapacity',
    'AdhocRequestStatus',
    'AdhocItemStatus',
    # Delivery
    'Delivery',
    'DeliveryType',
    'DeliveryStatus',
    'TERMINAL_DELIVERY_STATUSES',
    'BILLABLE_DELIVERY_STATUSES',
    # Billing
    'Bill',
    'BillItem',
    'Payment',
    'BillStatus',
    'BillItemType',
    'PaymentStatus',
    'PaymentMethod',
    # Wallet
    'CustomerWallet',
    'WalletTransaction',
    'WalletTransactionType',
    'WalletReferenceType',
    # Settings
    'SystemSetting',
]
