"""Wiring of the wholesale services for one signed-in user."""

import logging
from typing import Optional

import httpx

from .accounts import AccountService
from .admin import AdminService
from .auth import AuthManager
from .cart import CartStore
from .catalog import CatalogService
from .config import Settings
from .models import AuthCredentials, Profile
from .orders import OrderHistory, OrderSubmitter
from .storage import LocalStorage
from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class Portal:
    """Owns the client, the cart and the services built on them."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self.credentials: Optional[AuthCredentials] = settings.credentials
        self.auth_manager = AuthManager(settings.session_file)
        self.client = SupabaseClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            self.auth_manager,
            transport=transport,
        )
        self.storage = LocalStorage(settings.storage_file)
        self.cart = CartStore(self.storage)
        self.catalog = CatalogService(self.client)
        self.orders = OrderHistory(self.client)
        self.accounts = AccountService(self.client, self.auth_manager, on_session_change=self.orders.clear)
        self.admin = AdminService(self.client, self.accounts)
        self.submitter = OrderSubmitter(
            self.client, self.cart, confirmation_seconds=settings.confirmation_seconds
        )

    async def ensure_authenticated(self) -> Optional[Profile]:
        """Return the signed-in profile, auto-signing in with configured credentials if needed."""
        if self.auth_manager.is_authenticated():
            if self.accounts.profile is None:
                await self.accounts.load_profile()
            return self.accounts.profile

        if self.credentials:
            try:
                logger.info("Auto-signing in with configured credentials...")
                return await self.accounts.sign_in(self.credentials)
            except Exception as e:
                logger.error(f"Auto sign-in error: {e}")

        return None

    async def close(self) -> None:
        await self.client.close()
