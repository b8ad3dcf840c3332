"""Data models for the wholesale portal."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

ProfileStatus = Literal["pending", "approved", "rejected"]
OrderStatus = Literal["submitted", "processing", "completed", "cancelled"]
AccessLevel = Literal["admin", "customer", "pending", "rejected"]

ORDER_STATUSES: tuple[str, ...] = ("submitted", "processing", "completed", "cancelled")


class Profile(BaseModel):
    """Partner profile row."""

    id: str = Field(description="User ID (matches the auth user)")
    email: str
    company_name: str = ""
    contact_name: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""
    tax_id: Optional[str] = None
    status: ProfileStatus = "pending"
    is_admin: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Product(BaseModel):
    """Represents a catalog product."""

    id: str = Field(description="Product ID")
    name: str = Field(description="Product name")
    description: str = Field(default="", description="Product description")
    sku: str = Field(default="", description="Free-text product SKU")
    image_url: Optional[str] = Field(None, description="Image URL, possibly comma-joined")
    image_urls: Optional[list[str]] = Field(None, description="Additional image URLs")
    is_available: bool = Field(default=True, description="Product availability")
    category: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductVariant(BaseModel):
    """A purchasable configuration of a product (e.g. pack size)."""

    id: str = Field(description="Variant ID")
    product_id: str = Field(description="Owning product ID")
    name: str = Field(description="Variant name")
    sku: str = Field(description="Variant SKU")
    wholesale_price: Decimal = Field(ge=0, description="Unit cost charged to the partner")
    rrp_price: Decimal = Field(ge=0, description="Suggested retail price")
    is_available: bool = True
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductWithVariants(Product):
    """Product joined with its variants, ordered by sort position."""

    variants: list[ProductVariant] = Field(default_factory=list)


class PriceRange(BaseModel):
    """Wholesale and retail price bounds across a product's variants."""

    min_wholesale: Decimal
    max_wholesale: Decimal
    min_rrp: Decimal
    max_rrp: Decimal


class CartItem(BaseModel):
    """Snapshot of a product/variant pair and the quantity ordered."""

    product: Product
    variant: ProductVariant
    quantity: int = Field(ge=1, description="Quantity of the variant")

    @property
    def subtotal(self) -> Decimal:
        return self.variant.wholesale_price * self.quantity


class Order(BaseModel):
    """Represents a submitted order."""

    id: str = Field(description="Order ID")
    user_id: str
    order_number: str = Field(description="Server-allocated human-readable order number")
    status: OrderStatus = "submitted"
    total_amount: Decimal
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderItem(BaseModel):
    """Frozen line item of a submitted order."""

    id: Optional[str] = None
    order_id: str
    product_id: str
    product_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    created_at: Optional[datetime] = None


class SubmissionResult(BaseModel):
    """Outcome of an order submission, as shown to the partner."""

    success: bool
    message: str
    order: Optional[Order] = None
    items: list[OrderItem] = Field(default_factory=list)


class Registration(BaseModel):
    """Partner registration form."""

    email: str
    password: str = Field(min_length=6)
    confirm_password: str
    company_name: str
    contact_name: str
    phone: str
    address: str
    city: str
    state: str
    zip: str
    country: str
    tax_id: Optional[str] = None

    @model_validator(mode="after")
    def check_passwords_match(self) -> "Registration":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class VariantForm(BaseModel):
    """Variant fields editable from the back-office."""

    name: str = ""
    sku: str = ""
    wholesale_price: Decimal = Field(default=Decimal("0"), ge=0)
    rrp_price: Decimal = Field(default=Decimal("0"), ge=0)
    is_available: bool = True


class ProductForm(BaseModel):
    """Product fields editable from the back-office."""

    name: str
    description: str = ""
    sku: str = ""
    image_url: Optional[str] = None
    image_urls: Optional[list[str]] = None
    is_available: bool = True
    category: Optional[str] = None


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    email: str
    password: str


class SessionData(BaseModel):
    """Session data for the signed-in user."""

    access_token: Optional[str] = Field(None, description="Bearer token for the data service")
    refresh_token: Optional[str] = None
    user_id: Optional[str] = Field(None, description="User ID")
    user_email: Optional[str] = Field(None, description="User email")
    is_authenticated: bool = Field(default=False, description="Authentication status")
