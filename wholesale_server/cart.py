"""Shopping cart persisted to local storage."""

import json
import logging
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from .models import CartItem, Product, ProductVariant
from .storage import LocalStorage

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "wholesaleCart"


def _is_valid_entry(entry: Any) -> bool:
    """Check the fields an entry needs before it can be rebuilt into a CartItem."""
    if not isinstance(entry, dict):
        return False
    product = entry.get("product")
    variant = entry.get("variant")
    quantity = entry.get("quantity")
    return (
        isinstance(product, dict)
        and bool(product.get("id"))
        and isinstance(variant, dict)
        and bool(variant.get("id"))
        and isinstance(quantity, (int, float))
        and not isinstance(quantity, bool)
    )


class CartStore:
    """
    Client-side cart keyed by variant ID.

    Holds at most one item per variant. Every mutation rewrites the whole
    item list to storage under CART_STORAGE_KEY, and the list is rebuilt
    from storage on construction.
    """

    def __init__(self, storage: LocalStorage, key: str = CART_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key
        self._items: list[CartItem] = self._load()

    def _load(self) -> list[CartItem]:
        saved = self.storage.get_item(self.key)
        if not saved:
            return []

        try:
            parsed = json.loads(saved)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unreadable cart: {e}")
            return []
        if not isinstance(parsed, list):
            logger.warning("Discarding cart: stored value is not a list")
            return []

        items: list[CartItem] = []
        for entry in parsed:
            if not _is_valid_entry(entry):
                logger.warning("Dropping incomplete cart entry")
                continue
            try:
                items.append(CartItem.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Dropping invalid cart entry: {e.error_count()} error(s)")
        return items

    def _persist(self) -> None:
        payload = [item.model_dump(mode="json") for item in self._items]
        self.storage.set_item(self.key, json.dumps(payload))

    def _find(self, variant_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.variant.id == variant_id:
                return item
        return None

    @property
    def items(self) -> list[CartItem]:
        """Current items, in insertion order."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def add_to_cart(self, product: Product, variant: ProductVariant, quantity: int = 1) -> None:
        """
        Add a variant to the cart.

        Adding a variant that is already present increases its quantity.
        A non-positive quantity is clamped to zero and changes nothing.
        """
        quantity = max(int(quantity), 0)
        if quantity == 0:
            return

        existing = self._find(variant.id)
        if existing:
            existing.quantity += quantity
        else:
            self._items.append(
                CartItem(
                    product=product.model_copy(deep=True),
                    variant=variant.model_copy(deep=True),
                    quantity=quantity,
                )
            )
        self._persist()

    def update_quantity(self, variant_id: str, quantity: int) -> None:
        """Set the quantity of a variant; zero or less removes it."""
        if quantity <= 0:
            self.remove_from_cart(variant_id)
            return

        existing = self._find(variant_id)
        if existing is None:
            return
        existing.quantity = int(quantity)
        self._persist()

    def remove_from_cart(self, variant_id: str) -> None:
        remaining = [item for item in self._items if item.variant.id != variant_id]
        if len(remaining) != len(self._items):
            self._items = remaining
            self._persist()

    def clear_cart(self) -> None:
        self._items = []
        self._persist()

    def get_total_amount(self) -> Decimal:
        """Sum of wholesale price times quantity, using prices captured when added."""
        return sum((item.subtotal for item in self._items), Decimal("0"))

    def get_total_items(self) -> int:
        """Sum of quantities across all items."""
        return sum(item.quantity for item in self._items)
