"""Public schema exports."""

from .auth import LoginResponse
from .catalog import Product
from .identity import Identity
from .redemption import (
	AccountSnapshot,
	BalanceRead,
	HistoryRead,
	RedemptionCreate,
	SessionSnapshot,
	TransactionRead,
)

__all__ = [
	"AccountSnapshot",
	"BalanceRead",
	"HistoryRead",
	"Identity",
	"LoginResponse",
	"Product",
	"RedemptionCreate",
	"SessionSnapshot",
	"TransactionRead",
]
