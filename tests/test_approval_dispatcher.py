from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pointshop.models import TransactionStatus
from pointshop.schemas import Identity, TransactionRead
from pointshop.services.approval_dispatcher import ApprovalDispatcher

from .conftest import USER_ID

TRANSACTION = TransactionRead(
    transaction_id="6f1c2b8e-3d1a-4c55-9a8e-2f0b1d9c7e11",
    user_id=USER_ID,
    product_id="gift-card-5",
    points_spent=60,
    monetary_price=Decimal("5.00"),
    contact_email="nelly@example.com",
    status=TransactionStatus.PENDING_APPROVAL,
    created_at=datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc),
)
IDENTITY = Identity(user_id=USER_ID, display_name="Nelly", avatar_url="https://cdn.test/a.webp")


@pytest.mark.asyncio
async def test_summary_lists_transaction_details(review_channel, catalog) -> None:
    dispatcher = ApprovalDispatcher(review_channel)

    embed = dispatcher.build_summary(TRANSACTION, IDENTITY, 100, catalog.get("gift-card-5"))

    fields = {field["name"]: field["value"] for field in embed["fields"]}
    assert embed["author"] == {"name": "Nelly", "icon_url": "https://cdn.test/a.webp"}
    assert fields["Transaction ID"] == TRANSACTION.transaction_id
    assert fields["User ID"] == USER_ID
    assert fields["User email"] == "nelly@example.com"
    assert fields["User points"] == "100"
    assert fields["Product price"] == "5.00"
    assert fields["Points paid by the user"] == "60"
    assert fields["Creation Date"] == "2026-10-19T14:30:00+00:00"
    assert fields["Status"].startswith("pending-approval")


@pytest.mark.asyncio
async def test_notify_posts_message_and_reactions(review_channel, discord, catalog) -> None:
    dispatcher = ApprovalDispatcher(review_channel)

    receipt = await dispatcher.notify(TRANSACTION, IDENTITY, 100, catalog.get("gift-card-5"))

    assert receipt.message_id == "msg-1"
    assert len(discord.messages) == 1
    assert discord.reactions_added == [("msg-1", "✅"), ("msg-1", "❌")]
    assert all(request.headers["Authorization"] == "Bot bot-token" for request in discord.requests)


@pytest.mark.asyncio
async def test_collect_decision_ignores_bots_and_unlisted_reviewers(review_channel, discord) -> None:
    dispatcher = ApprovalDispatcher(review_channel, reviewer_ids=["1001"])
    discord.reactors[("msg-1", "✅")] = [{"id": "999", "bot": True}, {"id": "2002"}]

    assert await dispatcher.collect_decision("msg-1") is None

    discord.reactors[("msg-1", "❌")] = [{"id": "1001"}]
    decision = await dispatcher.collect_decision("msg-1")

    assert decision is not None
    assert decision.approved is False
    assert decision.reviewer_id == "1001"


@pytest.mark.asyncio
async def test_collect_decision_accepts_any_human_without_allow_list(review_channel, discord) -> None:
    dispatcher = ApprovalDispatcher(review_channel)
    discord.reactors[("msg-7", "✅")] = [{"id": "999", "bot": True}, {"id": "2002"}]

    decision = await dispatcher.collect_decision("msg-7")

    assert decision.approved is True
    assert decision.reviewer_id == "2002"
