"""Pydantic schemas for redemption workflows."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.redemption import TransactionStatus
from .catalog import Product


class RedemptionCreate(BaseModel):
    """Incoming payload for redeeming a product.

    Fields are optional here so that missing values are reported through the
    same error payload as malformed ones.
    """

    product_id: Optional[str] = None
    contact_email: Optional[str] = None


class BalanceRead(BaseModel):
    user_id: str
    points: int


class TransactionRead(BaseModel):
    """Represents a redemption transaction."""

    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    user_id: str
    product_id: str
    points_spent: int
    monetary_price: Decimal
    contact_email: str
    status: TransactionStatus
    created_at: datetime


class AccountSnapshot(BaseModel):
    """Balance and history returned after any account read or redemption."""

    error: bool = False
    balance: BalanceRead
    history: List[TransactionRead]


class SessionSnapshot(AccountSnapshot):
    catalog: List[Product] = Field(default_factory=list)


class HistoryRead(BaseModel):
    error: bool = False
    history: List[TransactionRead]
