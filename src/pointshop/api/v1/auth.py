"""Login endpoint exchanging an authorization code for a session credential."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ...core.config import Settings
from ...core.errors import PointshopError
from ...schemas import BalanceRead, LoginResponse
from ...services.catalog_service import Catalog
from ...services.credential_service import IdentityProviderClient, issue_session
from ...services.ledger_store import LedgerStore
from ...services.redemption_service import account_view
from ..deps import get_catalog, get_identity_provider, get_ledger_store, get_settings_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get(
    "/login",
    response_model=LoginResponse,
    summary="Exchange an authorization code",
    responses={401: {"description": "Login failed"}, 502: {"description": "Login failed"}},
)
async def login(
    code: Optional[str] = Query(None, description="One-time authorization code from the identity provider"),
    provider: IdentityProviderClient = Depends(get_identity_provider),
    store: LedgerStore = Depends(get_ledger_store),
    catalog: Catalog = Depends(get_catalog),
    settings: Settings = Depends(get_settings_state),
):
    """Exchange ``code`` for an identity and return a session credential with the account view."""

    logger.info("login request received")
    try:
        identity = await provider.exchange_code(code or "")
        balance, history = await account_view(store, identity.user_id)
    except PointshopError as exc:
        logger.info("login failed: %s", exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": True})

    credential = issue_session(
        identity,
        signing_key=settings.session_signing_key,
        algorithm=settings.session_algorithm,
        ttl_seconds=settings.session_ttl_seconds,
    )
    logger.info("login request responded for %s", identity.user_id)
    return LoginResponse(
        session_credential=credential,
        identity=identity,
        balance=BalanceRead(user_id=identity.user_id, points=balance),
        history=history,
        catalog=catalog.as_list(),
    )
