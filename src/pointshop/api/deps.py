"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.database import get_db
from ..services.approval_dispatcher import ApprovalDispatcher
from ..services.catalog_service import Catalog
from ..services.credential_service import IdentityProviderClient, verify_session
from ..services.ledger_store import LedgerStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings_state(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_identity_provider(request: Request) -> IdentityProviderClient:
    return request.app.state.identity_provider


def get_dispatcher(request: Request) -> ApprovalDispatcher:
    return request.app.state.dispatcher


def get_ledger_store(db: AsyncSession = Depends(get_db)) -> LedgerStore:
    return LedgerStore(db)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings_state),
) -> str:
    """Verify the bearer session credential and return the caller's user id."""

    return verify_session(
        credentials.credentials if credentials else None,
        signing_key=settings.session_signing_key,
        algorithm=settings.session_algorithm,
    )
