"""Back-office operations: approvals, customers, products and orders."""

import logging
from typing import Optional

from .accounts import AccountService
from .models import (
    ORDER_STATUSES,
    Order,
    OrderItem,
    Profile,
    ProductForm,
    ProductWithVariants,
    VariantForm,
)
from .catalog import CatalogService
from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class AdminService:
    """
    Admin back-office.

    Local caches (pending profiles, products) are only changed after the
    corresponding remote call has succeeded.
    """

    def __init__(self, client: SupabaseClient, accounts: AccountService) -> None:
        self.client = client
        self.accounts = accounts
        self.catalog = CatalogService(client)
        self.pending_profiles: list[Profile] = []
        self.products: list[ProductWithVariants] = []

    # Approvals

    async def list_pending_approvals(self) -> list[Profile]:
        self.accounts.require_admin()
        rows = await self.client.select(
            "profiles", filters={"status": "pending"}, order="created_at", descending=True
        )
        self.pending_profiles = [Profile(**row) for row in rows]
        return list(self.pending_profiles)

    async def set_approval(self, user_id: str, approved: bool) -> None:
        """Approve or reject a pending partner."""
        self.accounts.require_admin()
        status = "approved" if approved else "rejected"
        await self.client.update("profiles", {"status": status}, filters={"id": user_id})
        self.pending_profiles = [p for p in self.pending_profiles if p.id != user_id]
        logger.info(f"Profile {user_id} {status}")

    # Customers

    async def list_customers(self) -> list[Profile]:
        """Approved, non-admin partners, newest first."""
        self.accounts.require_admin()
        rows = await self.client.select(
            "profiles",
            filters={"status": "approved", "is_admin": False},
            order="created_at",
            descending=True,
        )
        return [Profile(**row) for row in rows]

    # Products

    async def list_products(self) -> list[ProductWithVariants]:
        """All products, available or not, with all their variants."""
        self.accounts.require_admin()
        self.products = await self.catalog.list_products(available_only=False)
        return list(self.products)

    async def save_product(
        self,
        form: ProductForm,
        variants: list[VariantForm],
        product_id: Optional[str] = None,
    ) -> str:
        """
        Create or update a product and replace its variants.

        Variants are stored with ``sort_order`` equal to their position.

        Returns:
            The product ID

        Raises:
            ValueError: If there are no variants or a variant lacks a name or SKU
        """
        self.accounts.require_admin()
        if not variants:
            raise ValueError("Products must have at least one variant")
        if any(not v.name or not v.sku for v in variants):
            raise ValueError("All variants must have a name and SKU")

        values = form.model_dump(mode="json")
        if product_id:
            await self.client.update("products", values, filters={"id": product_id})
            await self.client.delete("product_variants", filters={"product_id": product_id})
        else:
            rows = await self.client.insert("products", values)
            if not rows:
                raise ValueError("Product was not created")
            product_id = rows[0]["id"]

        await self.client.insert(
            "product_variants",
            [
                {"product_id": product_id, "sort_order": index, **variant.model_dump(mode="json")}
                for index, variant in enumerate(variants)
            ],
        )
        logger.info(f"Saved product {form.name} ({product_id}) with {len(variants)} variant(s)")
        return product_id

    async def toggle_availability(self, product_id: str) -> bool:
        """
        Flip a product's availability.

        Returns:
            The new availability
        """
        self.accounts.require_admin()
        rows = await self.client.select("products", filters={"id": product_id})
        if not rows:
            raise ValueError(f"Unknown product: {product_id}")

        available = not rows[0].get("is_available", True)
        await self.client.update("products", {"is_available": available}, filters={"id": product_id})
        for product in self.products:
            if product.id == product_id:
                product.is_available = available
        return available

    async def delete_product(self, product_id: str) -> None:
        self.accounts.require_admin()
        await self.client.delete("products", filters={"id": product_id})
        self.products = [p for p in self.products if p.id != product_id]
        logger.info(f"Deleted product {product_id}")

    # Orders

    async def list_orders(self, status: Optional[str] = None) -> list[Order]:
        """All orders, newest first, optionally restricted to one status."""
        self.accounts.require_admin()
        filters = {"status": status} if status else None
        rows = await self.client.select("orders", filters=filters, order="created_at", descending=True)
        return [Order(**row) for row in rows]

    async def update_order_status(self, order_id: str, status: str) -> Order:
        self.accounts.require_admin()
        if status not in ORDER_STATUSES:
            raise ValueError(f"Invalid order status: {status}")
        rows = await self.client.update("orders", {"status": status}, filters={"id": order_id})
        if not rows:
            raise ValueError(f"Unknown order: {order_id}")
        logger.info(f"Order {order_id} set to {status}")
        return Order(**rows[0])

    async def get_order_items(self, order_id: str) -> list[OrderItem]:
        self.accounts.require_admin()
        rows = await self.client.select("order_items", filters={"order_id": order_id})
        return [OrderItem(**row) for row in rows]
