"""Pydantic schemas for the login exchange."""

from typing import List

from pydantic import BaseModel

from .catalog import Product
from .identity import Identity
from .redemption import BalanceRead, TransactionRead


class LoginResponse(BaseModel):
    """Response returned once an authorization code has been exchanged."""

    error: bool = False
    session_credential: str
    identity: Identity
    balance: BalanceRead
    history: List[TransactionRead]
    catalog: List[Product]
