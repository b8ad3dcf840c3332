"""Order submission and order history."""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .cart import CartStore
from .models import Order, OrderItem, SubmissionResult
from .supabase_client import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

ORDER_SUBMIT_ERROR = "Failed to submit order. Please try again."
ORDER_SUBMIT_SUCCESS = "Your wholesale order has been received and will be processed shortly."
ORDER_IN_PROGRESS = "An order submission is already in progress."
CART_EMPTY = "Your cart is empty."
NOT_SIGNED_IN = "You must be signed in to submit an order."

CENT = Decimal("0.01")


class OrderSubmitter:
    """
    Turns the cart into an order.

    Submission runs three calls in a fixed order: allocate an order number,
    create the order, create its line items. The first failure stops the
    sequence; earlier steps are not rolled back and the cart is left as is.
    """

    def __init__(
        self,
        client: SupabaseClient,
        cart: CartStore,
        confirmation_seconds: float = 3.0,
        on_dismiss: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.client = client
        self.cart = cart
        self.confirmation_seconds = confirmation_seconds
        self.on_dismiss = on_dismiss
        self.notes = ""
        self.submitting = False
        self.order_submitted = False
        self._dismiss_handle: Optional[asyncio.TimerHandle] = None

    async def submit(self, user_id: Optional[str]) -> SubmissionResult:
        """
        Submit the current cart as an order for ``user_id``.

        Service failures are logged and reported as a generic message;
        this method does not raise for them.
        """
        if self.submitting:
            logger.warning("Ignoring submit: a submission is already in flight")
            return SubmissionResult(success=False, message=ORDER_IN_PROGRESS)
        if not user_id:
            return SubmissionResult(success=False, message=NOT_SIGNED_IN)
        if self.cart.is_empty():
            return SubmissionResult(success=False, message=CART_EMPTY)

        self.submitting = True
        step = "generate_order_number"
        order: Optional[Order] = None
        try:
            order_number = await self.client.rpc("generate_order_number")
            logger.info(f"Allocated order number {order_number}")

            step = "create_order"
            rows = await self.client.insert(
                "orders",
                {
                    "user_id": user_id,
                    "order_number": order_number,
                    "total_amount": str(self.cart.get_total_amount()),
                    "notes": self.notes or None,
                },
            )
            if not rows:
                raise SupabaseError(f"No order row returned for {order_number}")
            order = Order(**rows[0])

            step = "create_order_items"
            line_items = [
                {
                    "order_id": order.id,
                    "product_id": item.product.id,
                    "product_name": f"{item.product.name} - {item.variant.name}",
                    "product_sku": item.variant.sku,
                    "quantity": item.quantity,
                    "unit_price": str(item.variant.wholesale_price),
                    "subtotal": str(item.subtotal.quantize(CENT)),
                }
                for item in self.cart.items
            ]
            item_rows = await self.client.insert("order_items", line_items)
            items = [OrderItem(**row) for row in item_rows]
        except (SupabaseError, ValidationError) as e:
            if order is not None:
                logger.error(
                    f"Order {order.order_number} ({order.id}) was created without items; "
                    f"it is left in place for cancellation from the back-office"
                )
            logger.error(f"Error submitting order at step {step}: {e}", exc_info=True)
            return SubmissionResult(success=False, message=ORDER_SUBMIT_ERROR)
        finally:
            self.submitting = False

        logger.info(f"Order {order.order_number} submitted with {len(items)} item(s)")
        try:
            self.cart.clear_cart()
        except OSError as e:
            logger.error(f"Order {order.order_number} was submitted but the cart could not be cleared: {e}")
        self.notes = ""
        self._show_confirmation()
        return SubmissionResult(success=True, message=ORDER_SUBMIT_SUCCESS, order=order, items=items)

    def _show_confirmation(self) -> None:
        self.order_submitted = True
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
        loop = asyncio.get_running_loop()
        self._dismiss_handle = loop.call_later(self.confirmation_seconds, self._dismiss)

    def _dismiss(self) -> None:
        self.order_submitted = False
        self._dismiss_handle = None
        if self.on_dismiss is not None:
            self.on_dismiss()


class OrderHistory:
    """A partner's past orders and their line items."""

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client
        self._items: dict[str, list[OrderItem]] = {}

    async def list_orders(self, user_id: str) -> list[Order]:
        """List the user's orders, newest first."""
        rows = await self.client.select(
            "orders", filters={"user_id": user_id}, order="created_at", descending=True
        )
        return [Order(**row) for row in rows]

    async def get_order_items(self, order_id: str) -> list[OrderItem]:
        """Line items of an order; cached after the first successful read."""
        if order_id not in self._items:
            rows = await self.client.select("order_items", filters={"order_id": order_id})
            self._items[order_id] = [OrderItem(**row) for row in rows]
        return self._items[order_id]

    def clear(self) -> None:
        """Forget cached line items, e.g. when the signed-in user changes."""
        self._items.clear()
