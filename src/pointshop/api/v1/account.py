"""Authenticated account views: session refresh, history and catalog."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...schemas import BalanceRead, HistoryRead, Product, SessionSnapshot
from ...services.catalog_service import Catalog
from ...services.ledger_store import LedgerStore
from ...services.redemption_service import account_view
from ..deps import get_catalog, get_current_user_id, get_ledger_store

router = APIRouter(tags=["account"])


@router.get("/session/refresh", response_model=SessionSnapshot, summary="Refresh account data")
async def refresh_session(
    user_id: str = Depends(get_current_user_id),
    store: LedgerStore = Depends(get_ledger_store),
    catalog: Catalog = Depends(get_catalog),
) -> SessionSnapshot:
    """Return the caller's balance, history and the product catalog."""

    balance, history = await account_view(store, user_id)
    return SessionSnapshot(
        balance=BalanceRead(user_id=user_id, points=balance),
        history=history,
        catalog=catalog.as_list(),
    )


@router.get("/history", response_model=HistoryRead, summary="List redemptions")
async def read_history(
    user_id: str = Depends(get_current_user_id),
    store: LedgerStore = Depends(get_ledger_store),
) -> HistoryRead:
    _, history = await account_view(store, user_id)
    return HistoryRead(history=history)


@router.get("/catalog", response_model=list[Product], summary="List products")
async def read_catalog(catalog: Catalog = Depends(get_catalog)) -> list[Product]:
    return catalog.as_list()
