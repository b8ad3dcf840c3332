"""MCP Server for the wholesale ordering portal."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, Tool, TextContent
from pydantic import AnyUrl

from .cart import CartStore
from .catalog import get_price_range, get_product_images
from .config import load_settings
from .models import (
    AuthCredentials,
    Order,
    OrderItem,
    Profile,
    ProductForm,
    ProductWithVariants,
    Registration,
    VariantForm,
)
from .portal import Portal

logger = logging.getLogger("wholesale-mcp-server")

# Initialize server
app = Server("wholesale-mcp-server")

# Global state
portal: Portal

NOT_AUTHENTICATED = (
    "Error: Not authenticated. Please configure WHOLESALE_EMAIL and WHOLESALE_PASSWORD, "
    "or use wholesale_login first."
)


def text_result(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def format_products(products: list[ProductWithVariants]) -> str:
    """Render catalog products with their variants and price ranges."""
    result_lines = [f"Found {len(products)} product(s):\n"]
    for i, product in enumerate(products, 1):
        result_lines.append(f"\n{i}. {product.name}")
        result_lines.append(f"   ID: {product.id}")
        if product.sku:
            result_lines.append(f"   SKU: {product.sku}")
        if product.category:
            result_lines.append(f"   Category: {product.category}")
        if product.variants:
            price_range = get_price_range(product.variants)
            if price_range.min_wholesale == price_range.max_wholesale:
                result_lines.append(f"   Wholesale: ${price_range.min_wholesale:.2f}")
            else:
                result_lines.append(
                    f"   Wholesale: ${price_range.min_wholesale:.2f} - ${price_range.max_wholesale:.2f}"
                )
            result_lines.append(
                f"   RRP: ${price_range.min_rrp:.2f} - ${price_range.max_rrp:.2f}"
            )
            result_lines.append("   Variants:")
            for variant in product.variants:
                result_lines.append(
                    f"     - {variant.name} (variant ID: {variant.id}, SKU: {variant.sku}) "
                    f"${variant.wholesale_price:.2f}"
                )
        else:
            result_lines.append("   No variants available")
        images = get_product_images(product)
        if images:
            result_lines.append(f"   Images: {len(images)} ({images[0]})")
    return "\n".join(result_lines)


def format_cart(cart: CartStore, notes: str = "") -> str:
    """Render the cart with line subtotals and totals."""
    if cart.is_empty():
        return "Your cart is empty"

    result_lines = [f"Shopping Cart ({cart.get_total_items()} items):\n"]
    for item in cart.items:
        result_lines.append(
            f"  - {item.product.name} · {item.variant.name} · ${item.variant.wholesale_price:.2f}"
            f" x {item.quantity} = ${item.subtotal:.2f}"
        )
        result_lines.append(f"    Variant ID: {item.variant.id}")
    result_lines.append(f"\nTotal: ${cart.get_total_amount():.2f}")
    if notes:
        result_lines.append(f"Notes: {notes}")
    return "\n".join(result_lines)


def format_orders(orders: list[Order]) -> str:
    if not orders:
        return "No orders found"

    result_lines = [f"Found {len(orders)} order(s):\n"]
    for order in orders:
        created = order.created_at.strftime("%Y-%m-%d %H:%M") if order.created_at else "-"
        result_lines.append(
            f"  - {order.order_number} [{order.status}] ${order.total_amount:.2f} ({created})"
        )
        result_lines.append(f"    Order ID: {order.id}")
        if order.notes:
            result_lines.append(f"    Notes: {order.notes}")
    return "\n".join(result_lines)


def format_order_items(items: list[OrderItem]) -> str:
    if not items:
        return "No items found for this order"

    result_lines = ["Order items:"]
    for item in items:
        result_lines.append(
            f"  - {item.product_name} (SKU: {item.product_sku}) "
            f"${item.unit_price:.2f} x {item.quantity} = ${item.subtotal:.2f}"
        )
    return "\n".join(result_lines)


def format_profiles(profiles: list[Profile], empty: str) -> str:
    if not profiles:
        return empty

    result_lines = [f"Found {len(profiles)} partner(s):\n"]
    for profile in profiles:
        result_lines.append(f"  - {profile.company_name} ({profile.contact_name})")
        result_lines.append(f"    ID: {profile.id}")
        result_lines.append(f"    Email: {profile.email}  Phone: {profile.phone}")
        result_lines.append(
            f"    Address: {profile.address}, {profile.city}, {profile.state} {profile.zip}, {profile.country}"
        )
        if profile.tax_id:
            result_lines.append(f"    Tax ID: {profile.tax_id}")
    return "\n".join(result_lines)


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = [
        Resource(
            uri=AnyUrl("wholesale://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current wholesale cart contents",
        )
    ]

    if portal.auth_manager.is_authenticated():
        resources.append(
            Resource(
                uri=AnyUrl("wholesale://orders"),
                name="Orders",
                mimeType="application/json",
                description="Partner's submitted orders",
            )
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "wholesale://cart":
        return json.dumps(
            {
                "items": [item.model_dump(mode="json") for item in portal.cart.items],
                "total_items": portal.cart.get_total_items(),
                "total_amount": str(portal.cart.get_total_amount()),
                "notes": portal.submitter.notes,
            },
            indent=2,
        )

    elif uri_str == "wholesale://orders":
        profile = await portal.ensure_authenticated()
        if profile is None:
            return "Error: Not authenticated. Please login first."

        orders = await portal.orders.list_orders(profile.id)
        return json.dumps([order.model_dump(mode="json") for order in orders], indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    empty: dict[str, Any] = {"type": "object", "properties": {}}
    variant_id = {"type": "string", "description": "Variant ID from the catalog"}
    return [
        Tool(
            name="wholesale_login",
            description="Sign in to the wholesale portal. Uses WHOLESALE_EMAIL/WHOLESALE_PASSWORD if not provided.",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string", "description": "Email address"},
                    "password": {"type": "string", "description": "Password"},
                },
            },
        ),
        Tool(name="wholesale_logout", description="Sign out and clear session", inputSchema=empty),
        Tool(
            name="wholesale_register",
            description="Apply for a wholesale partner account (requires admin approval)",
            inputSchema={
                "type": "object",
                "properties": {
                    field: {"type": "string"}
                    for field in Registration.model_fields
                },
                "required": [
                    name for name, field in Registration.model_fields.items() if field.is_required()
                ],
            },
        ),
        Tool(
            name="wholesale_browse_catalog",
            description="List available products with variants and wholesale prices, optionally filtered",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Name or SKU filter (optional)"},
                },
            },
        ),
        Tool(
            name="wholesale_add_to_cart",
            description="Add a product variant to the cart (adds to any quantity already in the cart)",
            inputSchema={
                "type": "object",
                "properties": {
                    "variant_id": variant_id,
                    "quantity": {"type": "integer", "description": "Quantity to add (default: 1)", "default": 1},
                },
                "required": ["variant_id"],
            },
        ),
        Tool(
            name="wholesale_update_cart_quantity",
            description="Set the quantity of a cart item (0 removes it)",
            inputSchema={
                "type": "object",
                "properties": {
                    "variant_id": variant_id,
                    "quantity": {"type": "integer", "description": "New quantity"},
                },
                "required": ["variant_id", "quantity"],
            },
        ),
        Tool(
            name="wholesale_remove_from_cart",
            description="Remove a variant from the cart",
            inputSchema={
                "type": "object",
                "properties": {"variant_id": variant_id},
                "required": ["variant_id"],
            },
        ),
        Tool(name="wholesale_get_cart", description="Get current cart contents and total", inputSchema=empty),
        Tool(name="wholesale_clear_cart", description="Remove everything from the cart", inputSchema=empty),
        Tool(
            name="wholesale_set_order_notes",
            description="Set notes to send with the next order",
            inputSchema={
                "type": "object",
                "properties": {"notes": {"type": "string", "description": "Order notes"}},
                "required": ["notes"],
            },
        ),
        Tool(name="wholesale_submit_order", description="Submit the cart as a wholesale order", inputSchema=empty),
        Tool(name="wholesale_get_orders", description="List your submitted orders", inputSchema=empty),
        Tool(
            name="wholesale_get_order_items",
            description="Get the line items of an order",
            inputSchema={
                "type": "object",
                "properties": {"order_id": {"type": "string", "description": "Order ID"}},
                "required": ["order_id"],
            },
        ),
        Tool(
            name="wholesale_admin_pending_approvals",
            description="Admin: list partner applications awaiting approval",
            inputSchema=empty,
        ),
        Tool(
            name="wholesale_admin_set_approval",
            description="Admin: approve or reject a partner application",
            inputSchema={
                "type": "object",
                "properties": {
                    "user_id": {"type": "string", "description": "Profile ID"},
                    "approved": {"type": "boolean", "description": "True to approve, false to reject"},
                },
                "required": ["user_id", "approved"],
            },
        ),
        Tool(name="wholesale_admin_customers", description="Admin: list approved partners", inputSchema=empty),
        Tool(name="wholesale_admin_products", description="Admin: list all products and variants", inputSchema=empty),
        Tool(
            name="wholesale_admin_save_product",
            description="Admin: create or update a product and replace its variants",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID to update (omit to create)"},
                    "product": {"type": "object", "description": "Product fields (name, description, sku, image_url, image_urls, is_available, category)"},
                    "variants": {
                        "type": "array",
                        "description": "Variants in display order (name, sku, wholesale_price, rrp_price, is_available)",
                        "items": {"type": "object"},
                    },
                },
                "required": ["product", "variants"],
            },
        ),
        Tool(
            name="wholesale_admin_toggle_product",
            description="Admin: toggle a product's availability",
            inputSchema={
                "type": "object",
                "properties": {"product_id": {"type": "string", "description": "Product ID"}},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="wholesale_admin_delete_product",
            description="Admin: delete a product",
            inputSchema={
                "type": "object",
                "properties": {"product_id": {"type": "string", "description": "Product ID"}},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="wholesale_admin_orders",
            description="Admin: list all orders, optionally by status",
            inputSchema={
                "type": "object",
                "properties": {
                    "status": {
                        "type": "string",
                        "enum": ["submitted", "processing", "completed", "cancelled"],
                    },
                },
            },
        ),
        Tool(
            name="wholesale_admin_update_order_status",
            description="Admin: change an order's status",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID"},
                    "status": {
                        "type": "string",
                        "enum": ["submitted", "processing", "completed", "cancelled"],
                    },
                },
                "required": ["order_id", "status"],
            },
        ),
    ]


async def _require_customer() -> Optional[Profile]:
    profile = await portal.ensure_authenticated()
    if profile is None:
        return None
    return portal.accounts.require_customer()


async def _require_admin() -> Optional[Profile]:
    profile = await portal.ensure_authenticated()
    if profile is None:
        return None
    return portal.accounts.require_admin()


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "wholesale_login":
            email = arguments.get("email")
            password = arguments.get("password")

            # Use provided credentials or fall back to environment
            if not email or not password:
                if portal.credentials:
                    email = email or portal.credentials.email
                    password = password or portal.credentials.password
                else:
                    return text_result(
                        "Error: No credentials provided and WHOLESALE_EMAIL/WHOLESALE_PASSWORD not configured."
                    )

            profile = await portal.accounts.sign_in(AuthCredentials(email=email, password=password))
            if profile is None:
                return text_result(f"Signed in as {email}, but no partner profile was found.")
            if profile.status == "pending":
                return text_result(
                    f"Signed in as {email}. Your account is pending approval; "
                    "you will be able to order once an administrator approves it."
                )
            if profile.status == "rejected" and not profile.is_admin:
                return text_result(f"Signed in as {email}. Your account application was not approved.")
            role = "administrator" if profile.is_admin else "partner"
            return text_result(f"✅ Signed in as {email} ({profile.company_name}, {role})")

        elif name == "wholesale_logout":
            await portal.accounts.sign_out()
            return text_result("✅ Successfully signed out")

        elif name == "wholesale_register":
            registration = Registration(**arguments)
            profile = await portal.accounts.register(registration)
            return text_result(
                f"✅ Application received for {profile.company_name}. "
                "An administrator will review it shortly."
            )

        elif name == "wholesale_browse_catalog":
            if await _require_customer() is None:
                return text_result(NOT_AUTHENTICATED)

            query = arguments.get("query")
            if query:
                products = await portal.catalog.search(query)
            else:
                products = await portal.catalog.list_products()

            if not products:
                return text_result(f"No products found for: {query}" if query else "No products available")
            return text_result(format_products(products))

        elif name == "wholesale_add_to_cart":
            if await _require_customer() is None:
                return text_result(NOT_AUTHENTICATED)

            variant_id = arguments["variant_id"]
            quantity = int(arguments.get("quantity", 1))

            found = await portal.catalog.find_variant(variant_id)
            if found is None:
                return text_result(f"❌ Unknown variant: {variant_id}")
            product, variant = found
            if not product.is_available or not variant.is_available:
                return text_result(f"❌ {product.name} - {variant.name} is not available")
            if quantity <= 0:
                return text_result(f"❌ Nothing added: quantity must be at least 1 (got {quantity})")

            portal.cart.add_to_cart(product, variant, quantity)
            return text_result(
                f"✅ Added {product.name} - {variant.name} (quantity: {quantity}) to cart\n"
                f"Cart total: ${portal.cart.get_total_amount():.2f}"
            )

        elif name == "wholesale_update_cart_quantity":
            variant_id = arguments["variant_id"]
            quantity = int(arguments["quantity"])
            portal.cart.update_quantity(variant_id, quantity)
            return text_result(format_cart(portal.cart, portal.submitter.notes))

        elif name == "wholesale_remove_from_cart":
            portal.cart.remove_from_cart(arguments["variant_id"])
            return text_result(format_cart(portal.cart, portal.submitter.notes))

        elif name == "wholesale_get_cart":
            return text_result(format_cart(portal.cart, portal.submitter.notes))

        elif name == "wholesale_clear_cart":
            portal.cart.clear_cart()
            return text_result("✅ Cart cleared")

        elif name == "wholesale_set_order_notes":
            portal.submitter.notes = arguments.get("notes", "")
            return text_result("✅ Order notes saved")

        elif name == "wholesale_submit_order":
            profile = await _require_customer()
            if profile is None:
                return text_result(NOT_AUTHENTICATED)

            result = await portal.submitter.submit(profile.id)
            if not result.success or result.order is None:
                return text_result(f"❌ {result.message}")

            return text_result(
                f"✅ Order {result.order.order_number} submitted "
                f"(total ${result.order.total_amount:.2f}).\n{result.message}"
            )

        elif name == "wholesale_get_orders":
            profile = await _require_customer()
            if profile is None:
                return text_result(NOT_AUTHENTICATED)

            orders = await portal.orders.list_orders(profile.id)
            return text_result(format_orders(orders))

        elif name == "wholesale_get_order_items":
            if await _require_customer() is None:
                return text_result(NOT_AUTHENTICATED)

            items = await portal.orders.get_order_items(arguments["order_id"])
            return text_result(format_order_items(items))

        elif name == "wholesale_admin_pending_approvals":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            profiles = await portal.admin.list_pending_approvals()
            return text_result(format_profiles(profiles, "No pending approvals"))

        elif name == "wholesale_admin_set_approval":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            approved = bool(arguments["approved"])
            await portal.admin.set_approval(arguments["user_id"], approved)
            return text_result(f"✅ Partner {'approved' if approved else 'rejected'}")

        elif name == "wholesale_admin_customers":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            customers = await portal.admin.list_customers()
            return text_result(format_profiles(customers, "No customers yet"))

        elif name == "wholesale_admin_products":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            products = await portal.admin.list_products()
            if not products:
                return text_result("No products yet")
            return text_result(format_products(products))

        elif name == "wholesale_admin_save_product":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            form = ProductForm(**arguments["product"])
            variants = [VariantForm(**v) for v in arguments["variants"]]
            product_id = await portal.admin.save_product(form, variants, arguments.get("product_id"))
            return text_result(f"✅ Saved product {form.name} (ID: {product_id})")

        elif name == "wholesale_admin_toggle_product":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            available = await portal.admin.toggle_availability(arguments["product_id"])
            return text_result(f"✅ Product is now {'available' if available else 'hidden'}")

        elif name == "wholesale_admin_delete_product":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            await portal.admin.delete_product(arguments["product_id"])
            return text_result("✅ Product deleted")

        elif name == "wholesale_admin_orders":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            orders = await portal.admin.list_orders(arguments.get("status"))
            return text_result(format_orders(orders))

        elif name == "wholesale_admin_update_order_status":
            if await _require_admin() is None:
                return text_result(NOT_AUTHENTICATED)

            order = await portal.admin.update_order_status(arguments["order_id"], arguments["status"])
            return text_result(f"✅ Order {order.order_number} is now {order.status}")

        else:
            return text_result(f"Unknown tool: {name}")

    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return text_result(f"Error: {str(e)}")


async def main() -> None:
    """Main entry point."""
    global portal

    settings = load_settings()
    logging.basicConfig(level=settings.log_level)
    portal = Portal(settings)

    if portal.credentials:
        logger.info(f"Credentials loaded from environment for: {settings.email}")
    else:
        logger.warning("No credentials found in environment variables (WHOLESALE_EMAIL, WHOLESALE_PASSWORD)")
        logger.warning("You can sign in manually via the wholesale_login tool")

    logger.info("Starting Wholesale MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await portal.close()


if __name__ == "__main__":
    asyncio.run(main())
