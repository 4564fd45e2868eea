"""Reconciliation of pending redemptions with the review channel."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import DependencyError
from ..schemas import TransactionRead
from ..utils.datetime import as_utc, utc_now
from .approval_dispatcher import ApprovalDispatcher
from .catalog_service import Catalog
from .ledger_store import LedgerStore

logger = logging.getLogger(__name__)


async def run_review_sync(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    dispatcher: ApprovalDispatcher,
    catalog: Catalog,
    redispatch_after_seconds: int = 300,
    current_time: datetime | None = None,
) -> dict[str, int]:
    """Resend undelivered approval requests and apply reviewer reactions.

    A tracked review message that is missing its approve/reject reactions
    gets them back instead of a second message.

    Returns summary statistics useful for logging/testing.
    """

    now = current_time or utc_now()
    redispatch_cutoff = now - timedelta(seconds=redispatch_after_seconds)

    summary = {
        "pending": 0,
        "redispatched": 0,
        "approved": 0,
        "rejected": 0,
        "restored": 0,
        "failed": 0,
    }

    async with session_factory() as session:
        store = LedgerStore(session)
        pending = await store.list_pending_review()
        summary["pending"] = len(pending)

        for record in pending:
            transaction = TransactionRead.model_validate(record)

            if record.review_message_id is None:
                # Leave fresh transactions to the dispatch started by the request
                if as_utc(transaction.created_at) > redispatch_cutoff:
                    continue
                product = catalog.get(transaction.product_id)
                if product is None:
                    logger.warning("transaction %s references unknown product %s", transaction.transaction_id, transaction.product_id)
                    summary["failed"] += 1
                    continue
                balance_before = await store.balance_before(transaction.transaction_id)
                try:
                    await dispatcher.deliver(transaction, balance_before or 0, product)
                except DependencyError as exc:
                    logger.warning("redispatch of %s failed: %s", transaction.transaction_id, exc)
                    summary["failed"] += 1
                    continue
                summary["redispatched"] += 1
                continue

            try:
                reactions = await dispatcher.read_reactions(record.review_message_id)
                decision = dispatcher.decide(reactions)
                if decision is None:
                    if await dispatcher.restore_affordance(record.review_message_id, reactions):
                        summary["restored"] += 1
                    continue
            except DependencyError as exc:
                logger.warning("reviewing reactions for %s failed: %s", transaction.transaction_id, exc)
                summary["failed"] += 1
                continue

            resolved = await store.resolve_transaction(
                transaction.transaction_id,
                approved=decision.approved,
                reviewer_id=decision.reviewer_id,
            )
            if resolved is not None:
                summary["approved" if decision.approved else "rejected"] += 1

    return summary
