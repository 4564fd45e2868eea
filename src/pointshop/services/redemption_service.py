"""Domain logic for points redemptions."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..core.errors import (
    IneligibilityReason,
    IneligibleError,
    NotFoundError,
    TransactionError,
    ValidationError,
)
from ..models import TransactionStatus
from ..schemas import Product, TransactionRead
from ..utils.datetime import utc_now
from . import eligibility
from .approval_dispatcher import ApprovalDispatcher, DispatchReceipt
from .catalog_service import Catalog
from .ledger_store import InsufficientBalance, LedgerStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9-]+(?:\.[a-zA-Z0-9-]+)*$")


@dataclass
class RedemptionSuccess:
    """A committed redemption along with the refreshed account view."""

    transaction: TransactionRead
    product: Product
    balance_before: int
    balance: int
    history: List[TransactionRead]
    dispatch: Optional[asyncio.Task[DispatchReceipt]] = field(default=None, repr=False)


RedemptionResult = Union[RedemptionSuccess, ValidationError, NotFoundError, IneligibleError, TransactionError]


def validate_request(product_id: Optional[str], contact_email: Optional[str]) -> tuple[str, str]:
    if not product_id or not contact_email:
        raise ValidationError("Product and contact email are required")
    contact_email = contact_email.strip()
    if not EMAIL_PATTERN.match(contact_email):
        raise ValidationError("Invalid email address")
    return product_id, contact_email


async def account_view(store: LedgerStore, user_id: str) -> tuple[int, List[TransactionRead]]:
    """Return the current balance and history for ``user_id``."""

    balance = await store.get_balance(user_id)
    history = [TransactionRead.model_validate(row) for row in await store.get_history(user_id)]
    return balance, history


async def _committed_despite_timeout(store: LedgerStore, transaction_id: str, timeout: float) -> bool:
    """Return whether a timed-out ``record_redemption`` still reached the database.

    The wait can expire while the commit is already applied, so the row is
    looked up before the redemption is reported as failed.
    """

    try:
        await store.session.rollback()
        return await asyncio.wait_for(store.transaction_exists(transaction_id), timeout)
    except (asyncio.TimeoutError, SQLAlchemyError) as exc:
        logger.error("could not confirm whether %s was committed: %r", transaction_id, exc)
        return False


async def redeem(
    store: LedgerStore,
    *,
    catalog: Catalog,
    user_id: str,
    product_id: Optional[str],
    contact_email: Optional[str],
    dispatcher: Optional[ApprovalDispatcher] = None,
    timeout: float = 5.0,
) -> RedemptionResult:
    """Exchange points for a catalog product.

    Recoverable failures are returned, not raised, and leave the ledger
    untouched. The approval request is only dispatched after the debit and
    the transaction record have been committed together. Once committed, the
    redemption is reported as a success even when the account refresh fails.
    """

    try:
        product_id, contact_email = validate_request(product_id, contact_email)
    except ValidationError as exc:
        return exc

    product = catalog.get(product_id)
    if product is None:
        return NotFoundError(f"Product {product_id} not found")

    logger.info("%s is redeeming %s", user_id, product.id)

    try:
        balance_before = await asyncio.wait_for(store.get_balance(user_id), timeout)
    except (asyncio.TimeoutError, SQLAlchemyError) as exc:
        logger.warning("balance read failed for %s: %r", user_id, exc)
        return TransactionError()

    logger.info("Points: %s Required points: %s", balance_before, product.points)
    verdict = eligibility.evaluate(balance_before, product)
    if not verdict.eligible:
        return IneligibleError(
            verdict.reason or IneligibilityReason.INSUFFICIENT_POINTS,
            shortfall=verdict.shortfall,
        )

    created_at = utc_now()
    new_transaction_id = str(uuid.uuid4())
    try:
        transaction_id = await asyncio.wait_for(
            store.record_redemption(
                user_id=user_id,
                product_id=product.id,
                points=product.points,
                monetary_price=product.price,
                contact_email=contact_email,
                created_at=created_at,
                transaction_id=new_transaction_id,
            ),
            timeout,
        )
    except InsufficientBalance:
        logger.info("concurrent debit left %s without enough points for %s", user_id, product.id)
        return IneligibleError(IneligibilityReason.INSUFFICIENT_POINTS)
    except asyncio.TimeoutError:
        logger.error("recording redemption for %s timed out", user_id)
        if not await _committed_despite_timeout(store, new_transaction_id, timeout):
            return TransactionError()
        logger.warning("redemption %s committed before the timeout fired", new_transaction_id)
        transaction_id = new_transaction_id
    except SQLAlchemyError:
        logger.exception("recording redemption for %s failed", user_id)
        return TransactionError()

    if not transaction_id:
        logger.error("ledger store returned no transaction id for %s", user_id)
        return TransactionError()

    logger.info("Transaction ID: %s", transaction_id)

    transaction = TransactionRead(
        transaction_id=transaction_id,
        user_id=user_id,
        product_id=product.id,
        points_spent=product.points,
        monetary_price=product.price,
        contact_email=contact_email,
        status=TransactionStatus.PENDING_APPROVAL,
        created_at=created_at,
    )

    dispatch = None
    if dispatcher is not None:
        dispatch = dispatcher.schedule(transaction, balance_before, product)

    try:
        balance, history = await asyncio.wait_for(account_view(store, user_id), timeout)
    except (asyncio.TimeoutError, SQLAlchemyError) as exc:
        logger.warning("account refresh after %s failed: %r", transaction_id, exc)
        balance = balance_before - product.points
        history = [transaction]

    return RedemptionSuccess(
        transaction=transaction,
        product=product,
        balance_before=balance_before,
        balance=balance,
        history=history,
        dispatch=dispatch,
    )
