"""Balance versus price eligibility checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.errors import IneligibilityReason
from ..schemas import Product


@dataclass(frozen=True)
class Eligibility:
    """Outcome of comparing a balance with a product price."""

    eligible: bool
    reason: Optional[IneligibilityReason] = None
    shortfall: int = 0


def evaluate(balance: int, product: Product) -> Eligibility:
    """Return whether ``balance`` covers the product's point price."""

    if balance >= product.points:
        return Eligibility(eligible=True)
    return Eligibility(
        eligible=False,
        reason=IneligibilityReason.INSUFFICIENT_POINTS,
        shortfall=product.points - balance,
    )
