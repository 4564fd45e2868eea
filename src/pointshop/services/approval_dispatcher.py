"""Human approval requests for committed redemptions.

A dispatch runs as its own asyncio task once the transaction is committed.
Its outcome is reported through the task result and logs only; a failed
dispatch leaves the transaction pending. The review sync job sends it again
when no message was posted, or restores the missing reactions when one was.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import DependencyError
from ..models import TransactionStatus
from ..schemas import Identity, Product, TransactionRead
from ..utils.datetime import as_utc
from .ledger_store import LedgerStore
from .review_channel import MAX_FIELD_VALUE_LENGTH, DiscordReviewChannel

logger = logging.getLogger(__name__)

PENDING_COLOR = 0xE74C3C


@dataclass(frozen=True)
class DispatchReceipt:
    transaction_id: str
    message_id: str


@dataclass(frozen=True)
class ReviewDecision:
    approved: bool
    reviewer_id: str


class ApprovalDispatcher:
    """Sends transaction summaries to the review channel with approve/reject reactions."""

    def __init__(
        self,
        channel: DiscordReviewChannel,
        *,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        approve_emoji: str = "✅",
        reject_emoji: str = "❌",
        reviewer_ids: Iterable[str] = (),
    ) -> None:
        self.channel = channel
        self.session_factory = session_factory
        self.approve_emoji = approve_emoji
        self.reject_emoji = reject_emoji
        self.reviewer_ids = frozenset(reviewer_ids)
        self._tasks: set[asyncio.Task[DispatchReceipt]] = set()

    def build_summary(
        self,
        transaction: TransactionRead,
        identity: Identity,
        balance_before: int,
        product: Product,
    ) -> dict[str, Any]:
        """Render the review message embed for one transaction."""

        fields = [
            ("Transaction ID", transaction.transaction_id),
            ("User ID", identity.user_id),
            ("User email", transaction.contact_email),
            ("User points", str(balance_before)),
            ("Product", product.name),
            ("Product price", str(product.price)),
            ("Points paid by the user", str(transaction.points_spent)),
            ("Creation Date", as_utc(transaction.created_at).isoformat()),
            (
                "Status",
                f"{TransactionStatus.PENDING_APPROVAL.value} "
                f"(react {self.approve_emoji} to approve, {self.reject_emoji} to reject)",
            ),
        ]
        author: dict[str, Any] = {"name": identity.display_name}
        if identity.avatar_url:
            author["icon_url"] = identity.avatar_url

        return {
            "author": author,
            "description": f"A new payment is pending your approval {self.approve_emoji}",
            "color": PENDING_COLOR,
            "fields": [
                {"name": name, "value": value[:MAX_FIELD_VALUE_LENGTH], "inline": False}
                for name, value in fields
            ],
        }

    async def notify(
        self,
        transaction: TransactionRead,
        identity: Identity,
        balance_before: int,
        product: Product,
    ) -> DispatchReceipt:
        """Deliver the summary and attach the approval affordance.

        The message id is stored before any reaction is added, so a message
        whose reactions failed is still tracked and can be repaired later.
        """

        embed = self.build_summary(transaction, identity, balance_before, product)
        message_id = await self.channel.post_embed(embed)
        await self._remember(transaction.transaction_id, message_id)
        await self.add_affordance(message_id)
        logger.info("approval request for %s sent as message %s", transaction.transaction_id, message_id)
        return DispatchReceipt(transaction_id=transaction.transaction_id, message_id=message_id)

    async def add_affordance(self, message_id: str, emojis: Optional[Iterable[str]] = None) -> None:
        for emoji in emojis or (self.approve_emoji, self.reject_emoji):
            await self.channel.add_reaction(message_id, emoji)

    async def _remember(self, transaction_id: str, message_id: str) -> None:
        if self.session_factory is None:
            return
        async with self.session_factory() as session:
            await LedgerStore(session).attach_review_message(transaction_id, message_id)

    async def deliver(self, transaction: TransactionRead, balance_before: int, product: Product) -> DispatchReceipt:
        """Resolve the requester's profile and notify the review channel."""

        identity = await self._resolve_identity(transaction.user_id)
        return await self.notify(transaction, identity, balance_before, product)

    def schedule(
        self,
        transaction: TransactionRead,
        balance_before: int,
        product: Product,
    ) -> asyncio.Task[DispatchReceipt]:
        """Start delivery in the background and return the task tracking it."""

        task = asyncio.create_task(self.deliver(transaction, balance_before, product))
        self._tasks.add(task)
        task.add_done_callback(self._on_dispatch_done)
        return task

    def _on_dispatch_done(self, task: asyncio.Task[DispatchReceipt]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("approval dispatch cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("approval dispatch failed; transaction stays pending", exc_info=exc)

    async def drain(self) -> None:
        """Wait for in-flight dispatches to finish."""

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _resolve_identity(self, user_id: str) -> Identity:
        try:
            return await self.channel.fetch_identity(user_id)
        except DependencyError as exc:
            logger.warning("could not fetch profile for %s: %s", user_id, exc)
            return Identity(user_id=user_id, display_name=user_id)

    async def read_reactions(self, message_id: str) -> dict[str, list[dict[str, Any]]]:
        """Return the users behind the approve and reject reactions of a review message."""

        reactions: dict[str, list[dict[str, Any]]] = {}
        for emoji in (self.approve_emoji, self.reject_emoji):
            reactions[emoji] = await self.channel.list_reactors(message_id, emoji)
        return reactions

    def decide(self, reactions: dict[str, list[dict[str, Any]]]) -> Optional[ReviewDecision]:
        for emoji, approved in ((self.approve_emoji, True), (self.reject_emoji, False)):
            for reactor in reactions.get(emoji, []):
                if reactor.get("bot"):
                    continue
                reviewer_id = str(reactor.get("id", ""))
                if self.reviewer_ids and reviewer_id not in self.reviewer_ids:
                    continue
                return ReviewDecision(approved=approved, reviewer_id=reviewer_id)
        return None

    async def collect_decision(self, message_id: str) -> Optional[ReviewDecision]:
        """Read the reactions on a review message and return the reviewer's decision."""

        return self.decide(await self.read_reactions(message_id))

    async def restore_affordance(self, message_id: str, reactions: dict[str, list[dict[str, Any]]]) -> bool:
        """Re-add approve/reject reactions the bot never managed to place.

        Returns ``True`` when at least one reaction was added.
        """

        missing = [
            emoji
            for emoji in (self.approve_emoji, self.reject_emoji)
            if not any(reactor.get("bot") for reactor in reactions.get(emoji, []))
        ]
        if not missing:
            return False
        await self.add_affordance(message_id, missing)
        logger.info("restored %s on review message %s", " ".join(missing), message_id)
        return True
