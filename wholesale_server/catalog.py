"""Catalog reads and presentation helpers."""

import logging
from typing import Optional

from .models import PriceRange, Product, ProductVariant, ProductWithVariants
from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def get_price_range(variants: list[ProductVariant]) -> PriceRange:
    """
    Compute wholesale and retail price bounds across variants.

    Raises:
        ValueError: If no variants are given
    """
    if not variants:
        raise ValueError("Price range requires at least one variant")

    wholesale_prices = [v.wholesale_price for v in variants]
    rrp_prices = [v.rrp_price for v in variants]
    return PriceRange(
        min_wholesale=min(wholesale_prices),
        max_wholesale=max(wholesale_prices),
        min_rrp=min(rrp_prices),
        max_rrp=max(rrp_prices),
    )


def get_product_images(product: Product) -> list[str]:
    """
    Collect a product's image URLs in display order.

    The comma-joined ``image_url`` field comes first, then ``image_urls``.
    Duplicates are kept.
    """
    images: list[str] = []
    if product.image_url:
        if "," in product.image_url:
            images.extend(url.strip() for url in product.image_url.split(","))
        else:
            images.append(product.image_url)
    if product.image_urls:
        images.extend(product.image_urls)
    return images


class CatalogService:
    """Reads products and their variants from the data service."""

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    async def list_products(self, available_only: bool = True) -> list[ProductWithVariants]:
        """
        List products ordered by name, each with its variants ordered by sort position.

        Args:
            available_only: Only include available products and variants
        """
        filters = {"is_available": True} if available_only else None
        rows = await self.client.select("products", filters=filters, order="name")

        products = []
        for row in rows:
            variant_filters: dict[str, object] = {"product_id": row["id"]}
            if available_only:
                variant_filters["is_available"] = True
            variant_rows = await self.client.select(
                "product_variants", filters=variant_filters, order="sort_order"
            )
            products.append(ProductWithVariants(**row, variants=variant_rows))

        logger.info(f"Loaded {len(products)} product(s)")
        return products

    async def search(self, query: str) -> list[ProductWithVariants]:
        """Case-insensitive match on product name, product SKU or variant SKU."""
        needle = query.strip().lower()
        products = await self.list_products()
        if not needle:
            return products
        return [
            p
            for p in products
            if needle in p.name.lower()
            or needle in p.sku.lower()
            or any(needle in v.sku.lower() for v in p.variants)
        ]

    async def find_variant(self, variant_id: str) -> Optional[tuple[Product, ProductVariant]]:
        """Look up a variant and its product by variant ID."""
        variant_rows = await self.client.select("product_variants", filters={"id": variant_id})
        if not variant_rows:
            return None
        variant = ProductVariant(**variant_rows[0])

        product_rows = await self.client.select("products", filters={"id": variant.product_id})
        if not product_rows:
            logger.warning(f"Variant {variant_id} points at missing product {variant.product_id}")
            return None
        return Product(**product_rows[0]), variant
