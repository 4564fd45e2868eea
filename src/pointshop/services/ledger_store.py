"""Ledger store: balances, redemption records and review state."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    PointBalance,
    PointsEventType,
    PointsLedgerEntry,
    RedemptionTransaction,
    TransactionStatus,
)
from ..utils.datetime import utc_now

logger = logging.getLogger(__name__)


class InsufficientBalance(Exception):
    """Raised when a conditional debit finds fewer points than required."""

    def __init__(self, user_id: str, points: int) -> None:
        super().__init__(f"Balance of {user_id} does not cover {points} points")
        self.user_id = user_id
        self.points = points


class LedgerStore:
    """Read/write contract over the points ledger for one database session.

    Balances are never cached; every read goes to the database.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_balance(self, user_id: str) -> int:
        stmt = select(PointBalance.points).where(PointBalance.user_id == user_id)
        points = (await self.session.execute(stmt)).scalar_one_or_none()
        return points or 0

    async def get_history(self, user_id: str, *, limit: int = 100) -> Sequence[RedemptionTransaction]:
        """Return the user's redemptions, newest first."""

        stmt = (
            select(RedemptionTransaction)
            .where(RedemptionTransaction.user_id == user_id)
            .order_by(RedemptionTransaction.created_at.desc(), RedemptionTransaction.transaction_id.desc())
            .limit(limit)
        )
        return (await self.session.execute(stmt)).scalars().all()

    async def get_transaction(self, transaction_id: str) -> Optional[RedemptionTransaction]:
        return await self.session.get(RedemptionTransaction, transaction_id)

    async def transaction_exists(self, transaction_id: str) -> bool:
        """Check the database directly, bypassing the session identity map."""

        stmt = select(RedemptionTransaction.transaction_id).where(RedemptionTransaction.transaction_id == transaction_id)
        return (await self.session.execute(stmt)).scalar_one_or_none() is not None

    async def record_redemption(
        self,
        *,
        user_id: str,
        product_id: str,
        points: int,
        monetary_price: Decimal,
        contact_email: str,
        created_at: Optional[datetime] = None,
        transaction_id: Optional[str] = None,
    ) -> Optional[str]:
        """Debit ``points`` and insert the transaction in a single commit.

        The debit only applies while the stored balance still covers it, so two
        concurrent redemptions can never both spend the same points. Raises
        ``InsufficientBalance`` when the debit does not apply; nothing is
        written in that case. Returns the new transaction id; callers may choose
        it up front through ``transaction_id``.
        """

        now = created_at or utc_now()
        try:
            debit = (
                update(PointBalance)
                .where(PointBalance.user_id == user_id, PointBalance.points >= points)
                .values(points=PointBalance.points - points, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(debit)
            if result.rowcount != 1:
                await self.session.rollback()
                raise InsufficientBalance(user_id, points)

            transaction = RedemptionTransaction(
                transaction_id=transaction_id or str(uuid.uuid4()),
                user_id=user_id,
                product_id=product_id,
                points_spent=points,
                monetary_price=monetary_price,
                contact_email=contact_email,
                status=TransactionStatus.PENDING_APPROVAL,
                created_at=now,
            )
            self.session.add(transaction)
            await self.session.flush()

            self.session.add(
                PointsLedgerEntry(
                    user_id=user_id,
                    related_transaction=transaction.transaction_id,
                    event_type=PointsEventType.REDEMPTION,
                    points_delta=-points,
                    reason=f"redeemed {product_id}",
                    created_at=now,
                )
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        return transaction.transaction_id

    async def credit_points(self, user_id: str, points: int, *, reason: Optional[str] = None) -> int:
        """Add earned points to a balance and return the new balance."""

        if points <= 0:
            raise ValueError("Credited points must be positive.")

        now = utc_now()
        try:
            balance = await self.session.get(PointBalance, user_id, with_for_update=True, populate_existing=True)
            if balance is None:
                balance = PointBalance(user_id=user_id, points=0, credited_total=0)
                self.session.add(balance)

            balance.points = (balance.points or 0) + points
            balance.credited_total = (balance.credited_total or 0) + points
            balance.updated_at = now
            self.session.add(
                PointsLedgerEntry(
                    user_id=user_id,
                    event_type=PointsEventType.CREDIT,
                    points_delta=points,
                    reason=reason,
                    created_at=now,
                )
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        return balance.points

    async def balance_before(self, transaction_id: str) -> Optional[int]:
        """Rebuild the balance a user held just before a redemption was debited."""

        entry_stmt = select(PointsLedgerEntry.entry_id, PointsLedgerEntry.user_id).where(
            PointsLedgerEntry.related_transaction == transaction_id,
            PointsLedgerEntry.event_type == PointsEventType.REDEMPTION,
        )
        entry = (await self.session.execute(entry_stmt)).first()
        if entry is None:
            return None

        total_stmt = select(func.coalesce(func.sum(PointsLedgerEntry.points_delta), 0)).where(
            PointsLedgerEntry.user_id == entry.user_id,
            PointsLedgerEntry.entry_id < entry.entry_id,
        )
        return (await self.session.execute(total_stmt)).scalar_one()

    async def list_pending_review(self, *, limit: int = 100) -> Sequence[RedemptionTransaction]:
        stmt = (
            select(RedemptionTransaction)
            .where(RedemptionTransaction.status == TransactionStatus.PENDING_APPROVAL)
            .order_by(RedemptionTransaction.created_at.asc())
            .limit(limit)
        )
        return (await self.session.execute(stmt)).scalars().all()

    async def attach_review_message(self, transaction_id: str, message_id: str) -> None:
        stmt = (
            update(RedemptionTransaction)
            .where(RedemptionTransaction.transaction_id == transaction_id)
            .values(review_message_id=message_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def resolve_transaction(
        self,
        transaction_id: str,
        *,
        approved: bool,
        reviewer_id: Optional[str] = None,
    ) -> Optional[RedemptionTransaction]:
        """Move a pending transaction to approved or rejected.

        Rejection refunds the spent points in the same commit. Returns ``None``
        when the transaction is unknown or was already resolved.
        """

        now = utc_now()
        status = TransactionStatus.APPROVED if approved else TransactionStatus.REJECTED
        try:
            stmt = (
                update(RedemptionTransaction)
                .where(
                    RedemptionTransaction.transaction_id == transaction_id,
                    RedemptionTransaction.status == TransactionStatus.PENDING_APPROVAL,
                )
                .values(status=status, reviewed_by=reviewer_id, reviewed_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                await self.session.rollback()
                return None

            transaction = await self.session.get(RedemptionTransaction, transaction_id, populate_existing=True)
            if not approved:
                refund = (
                    update(PointBalance)
                    .where(PointBalance.user_id == transaction.user_id)
                    .values(points=PointBalance.points + transaction.points_spent, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                await self.session.execute(refund)
                self.session.add(
                    PointsLedgerEntry(
                        user_id=transaction.user_id,
                        related_transaction=transaction.transaction_id,
                        event_type=PointsEventType.REFUND,
                        points_delta=transaction.points_spent,
                        reason="redemption rejected",
                        created_at=now,
                    )
                )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        logger.info("transaction %s resolved as %s by %s", transaction_id, status.value, reviewer_id)
        return transaction
