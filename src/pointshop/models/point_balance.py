"""Current points balance per identity."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from ..core.database import Base
from ..utils.datetime import utc_now


class PointBalance(Base):
    """Spendable points for one external user; debited only through conditional updates."""

    __tablename__ = "point_balances"
    __table_args__ = (
        CheckConstraint("points >= 0", name="point_balances_points_positive"),
        CheckConstraint("credited_total >= 0", name="point_balances_credited_positive"),
    )

    user_id = Column(String(64), primary_key=True)
    points = Column(Integer, nullable=False, default=0)
    credited_total = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
