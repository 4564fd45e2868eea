"""Endpoint for points redemptions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...core.config import Settings
from ...core.errors import PointshopError
from ...schemas import AccountSnapshot, BalanceRead, RedemptionCreate
from ...services import redemption_service
from ...services.approval_dispatcher import ApprovalDispatcher
from ...services.catalog_service import Catalog
from ...services.ledger_store import LedgerStore
from ..deps import get_catalog, get_current_user_id, get_dispatcher, get_ledger_store, get_settings_state

router = APIRouter(tags=["redemptions"])


@router.post(
    "/redeem",
    response_model=AccountSnapshot,
    status_code=status.HTTP_201_CREATED,
    summary="Redeem points for a product",
    responses={
        201: {
            "description": "Redemption recorded and sent for approval",
            "content": {
                "application/json": {
                    "example": {
                        "error": False,
                        "balance": {"user_id": "80351110224678912", "points": 40},
                        "history": [
                            {
                                "transaction_id": "6f1c2b8e-3d1a-4c55-9a8e-2f0b1d9c7e11",
                                "user_id": "80351110224678912",
                                "product_id": "gift-card-5",
                                "points_spent": 60,
                                "monetary_price": "5.00",
                                "contact_email": "nelly@example.com",
                                "status": "pending-approval",
                                "created_at": "2026-10-19T14:30:00+00:00",
                            }
                        ],
                    }
                }
            },
        },
        400: {"description": "Missing or malformed fields"},
        401: {"description": "Invalid session credential"},
        404: {"description": "Product not found"},
        409: {"description": "Not enough points"},
    },
)
async def redeem_points(
    payload: RedemptionCreate,
    user_id: str = Depends(get_current_user_id),
    store: LedgerStore = Depends(get_ledger_store),
    catalog: Catalog = Depends(get_catalog),
    dispatcher: ApprovalDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings_state),
) -> AccountSnapshot:
    """Redeem points for a catalog product.

    Example request body::

        {
            "product_id": "gift-card-5",
            "contact_email": "nelly@example.com"
        }
    """

    result = await redemption_service.redeem(
        store,
        catalog=catalog,
        user_id=user_id,
        product_id=payload.product_id,
        contact_email=payload.contact_email,
        dispatcher=dispatcher,
        timeout=settings.ledger_timeout_seconds,
    )
    if isinstance(result, PointshopError):
        raise result

    return AccountSnapshot(
        balance=BalanceRead(user_id=user_id, points=result.balance),
        history=result.history,
    )
