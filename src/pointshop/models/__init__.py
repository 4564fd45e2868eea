"""SQLAlchemy models for the points shop."""

from .point_balance import PointBalance
from .points_ledger import PointsEventType, PointsLedgerEntry
from .redemption import RedemptionTransaction, TransactionStatus

__all__ = [
    "PointBalance",
    "PointsEventType",
    "PointsLedgerEntry",
    "RedemptionTransaction",
    "TransactionStatus",
]
