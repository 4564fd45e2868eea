"""Pydantic schemas for catalog products."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Catalog entry purchasable with points."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    points: int = Field(..., gt=0, description="Price in points.")
    price: Decimal = Field(..., ge=0, description="Monetary value of the product.")
    description: str = ""
    image_url: Optional[str] = None
