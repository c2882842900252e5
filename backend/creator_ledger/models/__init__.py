"""Database models for the creator ledger."""
from creator_ledger.models.user import User
from creator_ledger.models.product import Product, Course
from creator_ledger.models.order import Order, OrderItem
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.balance import CreatorBalance
from creator_ledger.models.payout import PayoutAccount, PayoutRequest
from creator_ledger.models.settlement_run import SettlementRun
from creator_ledger.models.download import ProductDownloadStats, ProductDownloadEvent
from creator_ledger.models.notification import AdminNotification

__all__ = [
    "User",
    "Product",
    "Course",
    "Order",
    "OrderItem",
    "EarningEvent",
    "CreatorBalance",
    "PayoutAccount",
    "PayoutRequest",
    "SettlementRun",
    "ProductDownloadStats",
    "ProductDownloadEvent",
    "AdminNotification",
]
