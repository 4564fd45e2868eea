"""Redemption transaction model."""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum as SAEnum, Integer, Numeric, String

from ..core.database import Base
from ..utils.datetime import utc_now


class TransactionStatus(str, enum.Enum):
    """Review states of a redemption."""

    PENDING_APPROVAL = "pending-approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class RedemptionTransaction(Base):
    """Durable audit record of points exchanged for a catalog product."""

    __tablename__ = "redemption_transactions"

    transaction_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    points_spent = Column(Integer, nullable=False)
    monetary_price = Column(Numeric(10, 2), nullable=False)
    contact_email = Column(String(320), nullable=False)
    status = Column(
        SAEnum(
            TransactionStatus,
            name="transaction_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=TransactionStatus.PENDING_APPROVAL,
    )
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    review_message_id = Column(String(64))
    reviewed_by = Column(String(64))
    reviewed_at = Column(DateTime(timezone=True))
