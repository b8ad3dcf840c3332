"""HTTP server for the wholesale ordering portal."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, ValidationError

from .catalog import get_price_range, get_product_images
from .config import load_settings
from .models import AuthCredentials, Profile, ProductForm, Registration, VariantForm
from .portal import Portal
from .supabase_client import SupabaseError

logger = logging.getLogger("wholesale-http-server")

# Global state
portal: Portal


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global portal

    # Startup
    settings = load_settings()
    logging.basicConfig(level=settings.log_level)
    logger.info("Starting Wholesale HTTP Server...")
    portal = Portal(settings)

    yield

    # Shutdown
    logger.info("Shutting down Wholesale HTTP Server...")
    await portal.close()


app = FastAPI(
    title="Wholesale MCP Server",
    description="HTTP API for the wholesale partner ordering portal",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    success: bool
    message: str
    status: Optional[str] = None
    is_admin: bool = False


class AddToCartRequest(BaseModel):
    variant_id: str
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    variant_id: str
    quantity: int


class RemoveFromCartRequest(BaseModel):
    variant_id: str


class NotesRequest(BaseModel):
    notes: str = ""


class ApprovalRequest(BaseModel):
    approved: bool


class SaveProductRequest(BaseModel):
    product: ProductForm
    variants: list[VariantForm] = Field(default_factory=list)


class OrderStatusRequest(BaseModel):
    status: str


def http_error(action: str, error: Exception) -> HTTPException:
    """Map a failure to an HTTP error, logging unexpected ones."""
    if isinstance(error, PermissionError):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, (ValueError, ValidationError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, SupabaseError):
        logger.error(f"{action} error: {error}")
        return HTTPException(status_code=502, detail=error.message)
    logger.error(f"{action} error: {error}", exc_info=True)
    return HTTPException(status_code=500, detail=str(error))


async def require_profile() -> Profile:
    try:
        profile = await portal.ensure_authenticated()
    except SupabaseError as e:
        raise http_error("Load profile", e)
    if profile is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return profile


async def require_customer() -> Profile:
    await require_profile()
    try:
        return portal.accounts.require_customer()
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))


async def require_admin() -> Profile:
    await require_profile()
    try:
        return portal.accounts.require_admin()
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))


def cart_payload() -> dict:
    return {
        "items": [
            {**item.model_dump(mode="json"), "subtotal": str(item.subtotal)}
            for item in portal.cart.items
        ],
        "total_items": portal.cart.get_total_items(),
        "total_amount": str(portal.cart.get_total_amount()),
        "notes": portal.submitter.notes,
        "order_submitted": portal.submitter.order_submitted,
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Wholesale MCP Server",
        "version": "0.1.0",
        "description": "HTTP API for the wholesale partner ordering portal",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {
                "login": "POST /auth/login",
                "logout": "POST /auth/logout",
                "register": "POST /auth/register",
                "status": "GET /auth/status",
            },
            "products": {"list": "GET /products"},
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/add",
                "update": "POST /cart/update",
                "remove": "POST /cart/remove",
                "clear": "POST /cart/clear",
                "notes": "PUT /cart/notes",
            },
            "orders": {"submit": "POST /orders/submit", "list": "GET /orders", "items": "GET /orders/{id}/items"},
            "admin": {
                "approvals": "GET /admin/approvals, POST /admin/approvals/{user_id}",
                "customers": "GET /admin/customers",
                "products": "GET/POST /admin/products, PUT/DELETE /admin/products/{id}, POST /admin/products/{id}/toggle",
                "orders": "GET /admin/orders, POST /admin/orders/{id}/status",
            },
        },
        "authenticated": portal.auth_manager.is_authenticated(),
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "authenticated": portal.auth_manager.is_authenticated(),
    }


# Authentication endpoints
@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """Sign in to the portal."""
    try:
        credentials = AuthCredentials(email=request.email, password=request.password)
        profile = await portal.accounts.sign_in(credentials)
    except SupabaseError as e:
        logger.warning(f"Login failed for {request.email}: {e}")
        return LoginResponse(success=False, message="Login failed. Check your credentials.")
    except Exception as e:
        raise http_error("Login", e)

    if profile is None:
        return LoginResponse(success=True, message=f"Signed in as {request.email}, but no profile was found")
    return LoginResponse(
        success=True,
        message=f"Successfully signed in as {request.email}",
        status=profile.status,
        is_admin=profile.is_admin,
    )


@app.post("/auth/logout")
async def logout():
    """Sign out of the portal."""
    try:
        await portal.accounts.sign_out()
        return {"success": True, "message": "Successfully signed out"}
    except Exception as e:
        raise http_error("Logout", e)


@app.post("/auth/register")
async def register(request: Registration):
    """Apply for a partner account."""
    try:
        profile = await portal.accounts.register(request)
        return {"success": True, "profile": profile.model_dump(mode="json")}
    except Exception as e:
        raise http_error("Register", e)


@app.get("/auth/status")
async def auth_status():
    """Get authentication status."""
    profile = portal.accounts.profile
    return {
        "authenticated": portal.auth_manager.is_authenticated(),
        "email": portal.auth_manager.session.user_email if portal.auth_manager.is_authenticated() else None,
        "status": profile.status if profile else None,
        "is_admin": profile.is_admin if profile else False,
    }


# Product endpoints
@app.get("/products")
async def list_products(query: Optional[str] = None):
    """List available products with variants, price ranges and images."""
    await require_customer()
    try:
        products = await portal.catalog.search(query) if query else await portal.catalog.list_products()
        return {
            "count": len(products),
            "products": [
                {
                    **product.model_dump(mode="json"),
                    "images": get_product_images(product),
                    "price_range": (
                        get_price_range(product.variants).model_dump(mode="json") if product.variants else None
                    ),
                }
                for product in products
            ],
        }
    except Exception as e:
        raise http_error("List products", e)


# Cart endpoints
@app.get("/cart")
async def get_cart():
    """Get current cart with totals."""
    return cart_payload()


@app.post("/cart/add")
async def add_to_cart(request: AddToCartRequest):
    """Add a variant to the cart."""
    await require_customer()
    try:
        found = await portal.catalog.find_variant(request.variant_id)
    except Exception as e:
        raise http_error("Add to cart", e)

    if found is None:
        raise HTTPException(status_code=404, detail=f"Unknown variant: {request.variant_id}")
    product, variant = found
    if not product.is_available or not variant.is_available:
        return {"success": False, "message": f"{product.name} - {variant.name} is not available"}
    if request.quantity <= 0:
        return {"success": False, "message": f"Nothing added: quantity must be at least 1 (got {request.quantity})"}

    portal.cart.add_to_cart(product, variant, request.quantity)
    return {"success": True, "cart": cart_payload()}


@app.post("/cart/update")
async def update_cart_quantity(request: UpdateQuantityRequest):
    """Set the quantity of a cart item; zero or less removes it."""
    portal.cart.update_quantity(request.variant_id, request.quantity)
    return {"success": True, "cart": cart_payload()}


@app.post("/cart/remove")
async def remove_from_cart(request: RemoveFromCartRequest):
    """Remove a variant from the cart."""
    portal.cart.remove_from_cart(request.variant_id)
    return {"success": True, "cart": cart_payload()}


@app.post("/cart/clear")
async def clear_cart():
    portal.cart.clear_cart()
    return {"success": True, "cart": cart_payload()}


@app.put("/cart/notes")
async def set_notes(request: NotesRequest):
    """Stage notes for the next order."""
    portal.submitter.notes = request.notes
    return {"success": True, "notes": portal.submitter.notes}


# Order endpoints
@app.post("/orders/submit")
async def submit_order():
    """Submit the cart as an order."""
    profile = await require_customer()
    result = await portal.submitter.submit(profile.id)
    return result.model_dump(mode="json")


@app.get("/orders")
async def get_orders():
    """List the signed-in partner's orders."""
    profile = await require_customer()
    try:
        orders = await portal.orders.list_orders(profile.id)
        return {"count": len(orders), "orders": [order.model_dump(mode="json") for order in orders]}
    except Exception as e:
        raise http_error("Get orders", e)


@app.get("/orders/{order_id}/items")
async def get_order_items(order_id: str):
    await require_customer()
    try:
        items = await portal.orders.get_order_items(order_id)
        return {"count": len(items), "items": [item.model_dump(mode="json") for item in items]}
    except Exception as e:
        raise http_error("Get order items", e)


# Admin endpoints
@app.get("/admin/approvals")
async def pending_approvals():
    await require_admin()
    try:
        profiles = await portal.admin.list_pending_approvals()
        return {"count": len(profiles), "profiles": [p.model_dump(mode="json") for p in profiles]}
    except Exception as e:
        raise http_error("Pending approvals", e)


@app.post("/admin/approvals/{user_id}")
async def set_approval(user_id: str, request: ApprovalRequest):
    await require_admin()
    try:
        await portal.admin.set_approval(user_id, request.approved)
        return {"success": True, "status": "approved" if request.approved else "rejected"}
    except Exception as e:
        raise http_error("Set approval", e)


@app.get("/admin/customers")
async def customers():
    await require_admin()
    try:
        profiles = await portal.admin.list_customers()
        return {"count": len(profiles), "customers": [p.model_dump(mode="json") for p in profiles]}
    except Exception as e:
        raise http_error("List customers", e)


@app.get("/admin/products")
async def admin_products():
    await require_admin()
    try:
        products = await portal.admin.list_products()
        return {"count": len(products), "products": [p.model_dump(mode="json") for p in products]}
    except Exception as e:
        raise http_error("List products", e)


@app.post("/admin/products")
async def create_product(request: SaveProductRequest):
    await require_admin()
    try:
        product_id = await portal.admin.save_product(request.product, request.variants)
        return {"success": True, "product_id": product_id}
    except Exception as e:
        raise http_error("Create product", e)


@app.put("/admin/products/{product_id}")
async def update_product(product_id: str, request: SaveProductRequest):
    await require_admin()
    try:
        await portal.admin.save_product(request.product, request.variants, product_id)
        return {"success": True, "product_id": product_id}
    except Exception as e:
        raise http_error("Update product", e)


@app.post("/admin/products/{product_id}/toggle")
async def toggle_product(product_id: str):
    await require_admin()
    try:
        available = await portal.admin.toggle_availability(product_id)
        return {"success": True, "is_available": available}
    except Exception as e:
        raise http_error("Toggle product", e)


@app.delete("/admin/products/{product_id}")
async def delete_product(product_id: str):
    await require_admin()
    try:
        await portal.admin.delete_product(product_id)
        return {"success": True}
    except Exception as e:
        raise http_error("Delete product", e)


@app.get("/admin/orders")
async def admin_orders(status: Optional[str] = None):
    await require_admin()
    try:
        orders = await portal.admin.list_orders(status)
        return {"count": len(orders), "orders": [o.model_dump(mode="json") for o in orders]}
    except Exception as e:
        raise http_error("List orders", e)


@app.post("/admin/orders/{order_id}/status")
async def update_order_status(order_id: str, request: OrderStatusRequest):
    await require_admin()
    try:
        order = await portal.admin.update_order_status(order_id, request.status)
        return {"success": True, "order": order.model_dump(mode="json")}
    except Exception as e:
        raise http_error("Update order status", e)


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the HTTP server."""
    import uvicorn

    if reload:
        uvicorn.run("wholesale_server.http_server:app", host=host, port=port, log_level="info", reload=True)
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
