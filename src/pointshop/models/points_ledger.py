"""Points ledger model capturing balance movements."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, String

from ..core.database import Base
from ..utils.datetime import utc_now


class PointsEventType(str, enum.Enum):
    """Ledger event classification."""

    CREDIT = "CREDIT"
    REDEMPTION = "REDEMPTION"
    REFUND = "REFUND"


class PointsLedgerEntry(Base):
    """Immutable ledger of point deltas for each user."""

    __tablename__ = "points_ledger"
    __table_args__ = (
        CheckConstraint(
            "((event_type = 'REDEMPTION' AND points_delta < 0) "
            "OR (event_type IN ('CREDIT', 'REFUND') AND points_delta > 0))",
            name="points_ledger_delta_sign",
        ),
    )

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    related_transaction = Column(
        String(36),
        ForeignKey("redemption_transactions.transaction_id", ondelete="SET NULL"),
    )
    event_type = Column(Enum(PointsEventType, name="points_event_type"), nullable=False)
    points_delta = Column(Integer, nullable=False)
    reason = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
