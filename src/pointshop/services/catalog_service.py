"""Static product catalog loading."""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Iterator, Optional, Sequence

from ..schemas import Product

logger = logging.getLogger(__name__)


class Catalog:
    """Immutable, ordered collection of products keyed by identifier."""

    def __init__(self, products: Sequence[Product]) -> None:
        by_id: dict[str, Product] = {}
        for product in products:
            if product.id in by_id:
                raise ValueError(f"Duplicate product id in catalog: {product.id}")
            by_id[product.id] = product
        self._products = tuple(products)
        self._by_id = by_id

    def get(self, product_id: str) -> Optional[Product]:
        return self._by_id.get(product_id)

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def as_list(self) -> list[Product]:
        return list(self._products)


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load the catalog from a JSON array, defaulting to the packaged product list."""

    if path is None:
        raw = resources.files("pointshop.data").joinpath("products.json").read_text(encoding="utf-8")
    else:
        raw = Path(path).read_text(encoding="utf-8")

    entries = json.loads(raw)
    catalog = Catalog([Product.model_validate(entry) for entry in entries])
    logger.info("catalog loaded with %s products", len(catalog))
    return catalog
