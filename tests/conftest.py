"""Test fixtures for the wholesale server tests."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from wholesale_server.auth import AuthManager
from wholesale_server.cart import CartStore
from wholesale_server.config import Settings
from wholesale_server.models import Product, ProductVariant
from wholesale_server.portal import Portal
from wholesale_server.storage import LocalStorage


def make_product(product_id="prod-1", name="Widget", **overrides):
    """Build a catalog product."""
    data = {"id": product_id, "name": name, "description": "A widget", "sku": "WID"}
    data.update(overrides)
    return Product(**data)


def make_variant(variant_id="var-1", product_id="prod-1", name="Red", wholesale_price="10.00", **overrides):
    """Build a product variant with string prices converted to Decimal."""
    data = {
        "id": variant_id,
        "product_id": product_id,
        "name": name,
        "sku": f"SKU-{variant_id}",
        "wholesale_price": Decimal(wholesale_price),
        "rrp_price": Decimal(overrides.pop("rrp_price", "20.00")),
    }
    data.update(overrides)
    return ProductVariant(**data)


@pytest.fixture
def storage(tmp_path):
    """Local storage backed by a temporary file."""
    return LocalStorage(str(tmp_path / "storage.json"))


@pytest.fixture
def cart(storage):
    """Empty cart on temporary storage."""
    return CartStore(storage)


@pytest.fixture
def auth_manager(tmp_path):
    """Auth manager with a temporary session file."""
    return AuthManager(str(tmp_path / "session.json"))


@pytest.fixture
def data_client():
    """Data service client whose calls are AsyncMocks."""
    client = AsyncMock()
    client.select = AsyncMock(return_value=[])
    client.insert = AsyncMock(return_value=[])
    client.update = AsyncMock(return_value=[])
    client.delete = AsyncMock(return_value=None)
    client.rpc = AsyncMock()
    return client


class FakeSupabase:
    """
    In-memory stand-in for the Supabase REST and auth APIs.

    Used as an httpx.MockTransport handler. Supports equality filters,
    single-column ordering, and the generate_order_number RPC.
    """

    def __init__(self):
        self.tables = {
            "profiles": [],
            "products": [],
            "product_variants": [],
            "orders": [],
            "order_items": [],
        }
        self.users = {}
        self.failing_tables = set()
        self.requests = []
        self._next_id = 0
        self._order_count = 0

    def add_user(self, user_id, email, password="secret123", **profile):
        self.users[email] = (password, user_id)
        self.tables["profiles"].append({"id": user_id, "email": email, **profile})

    def add_product(self, product, variants):
        self.tables["products"].append(product)
        self.tables["product_variants"].extend(variants)

    def _new_id(self, table):
        self._next_id += 1
        return f"{table}-{self._next_id}"

    @staticmethod
    def _format(value):
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "null"
        return str(value)

    def _matches(self, row, params):
        for column, condition in params.items():
            if column in ("select", "order"):
                continue
            if condition != f"eq.{self._format(row.get(column))}":
                return False
        return True

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path
        params = dict(request.url.params)
        body = json.loads(request.content) if request.content else None

        if path == "/auth/v1/token":
            password, user_id = self.users.get(body["email"], (None, None))
            if password is None or password != body["password"]:
                return httpx.Response(400, json={"error_description": "Invalid login credentials"})
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{user_id}",
                    "refresh_token": "refresh",
                    "user": {"id": user_id, "email": body["email"]},
                },
            )
        if path == "/auth/v1/signup":
            user_id = self._new_id("user")
            self.users[body["email"]] = (body["password"], user_id)
            return httpx.Response(200, json={"id": user_id, "email": body["email"]})
        if path == "/auth/v1/logout":
            return httpx.Response(204)
        if path == "/rest/v1/rpc/generate_order_number":
            self._order_count += 1
            return httpx.Response(200, json=f"WO-{self._order_count:04d}")

        table = path.rsplit("/", 1)[-1]
        if table in self.failing_tables:
            return httpx.Response(500, json={"message": f"{table} is unavailable"})
        rows = self.tables[table]

        if request.method == "GET":
            matched = [row for row in rows if self._matches(row, params)]
            if "order" in params:
                column, direction = params["order"].split(".")
                matched.sort(key=lambda row: self._format(row.get(column)), reverse=direction == "desc")
            return httpx.Response(200, json=matched)
        if request.method == "POST":
            new_rows = body if isinstance(body, list) else [body]
            created = [{"id": self._new_id(table), **row} for row in new_rows]
            rows.extend(created)
            return httpx.Response(201, json=created)
        if request.method == "PATCH":
            updated = []
            for row in rows:
                if self._matches(row, params):
                    row.update(body)
                    updated.append(row)
            return httpx.Response(200, json=updated)
        if request.method == "DELETE":
            self.tables[table] = [row for row in rows if not self._matches(row, params)]
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def fake_supabase():
    """Fake data service seeded with a customer, an admin and a small catalog."""
    fake = FakeSupabase()
    fake.add_user("user-1", "buyer@example.com", company_name="Acme Retail", status="approved")
    fake.add_user("admin-1", "admin@example.com", company_name="Wholesale HQ", status="approved", is_admin=True)
    fake.add_user("user-2", "new@example.com", company_name="Newco", status="pending")
    fake.add_product(
        {"id": "prod-1", "name": "Widget", "sku": "WID", "image_url": "a.jpg, b.jpg", "is_available": True},
        [
            {
                "id": "var-1", "product_id": "prod-1", "name": "Small", "sku": "WID-S",
                "wholesale_price": "10.00", "rrp_price": "20.00", "is_available": True, "sort_order": 0,
            },
            {
                "id": "var-2", "product_id": "prod-1", "name": "Large", "sku": "WID-L",
                "wholesale_price": "12.50", "rrp_price": "25.00", "is_available": True, "sort_order": 1,
            },
        ],
    )
    fake.add_product(
        {"id": "prod-2", "name": "Gadget", "sku": "GAD", "is_available": False},
        [
            {
                "id": "var-3", "product_id": "prod-2", "name": "Standard", "sku": "GAD-1",
                "wholesale_price": "5.00", "rrp_price": "9.00", "is_available": True, "sort_order": 0,
            },
        ],
    )
    return fake


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at temporary session and storage files."""
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon-key",
        session_file=str(tmp_path / "session.json"),
        storage_file=str(tmp_path / "storage.json"),
        confirmation_seconds=0,
    )


@pytest.fixture
def portal(settings, fake_supabase):
    """Portal whose client talks to the fake data service."""
    return Portal(settings, transport=httpx.MockTransport(fake_supabase))


def sign_in_as(portal, user_id):
    """Store a session for ``user_id`` without going through the auth API."""
    portal.auth_manager.save_session(access_token=f"token-{user_id}", user_id=user_id)
