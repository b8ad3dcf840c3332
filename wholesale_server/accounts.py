"""Partner registration, sign-in and access gating."""

import logging
from typing import Any, Callable, Optional

from .auth import AuthManager
from .models import AccessLevel, AuthCredentials, Profile, Registration
from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "email",
    "company_name",
    "contact_name",
    "phone",
    "address",
    "city",
    "state",
    "zip",
    "country",
    "tax_id",
)


def access_level(profile: Profile) -> AccessLevel:
    """Map a profile to what the signed-in user may do."""
    if profile.is_admin:
        return "admin"
    if profile.status == "approved":
        return "customer"
    return profile.status


def can_order(profile: Optional[Profile]) -> bool:
    return profile is not None and access_level(profile) in ("admin", "customer")


class AccountService:
    """Signs partners up and in, and tracks the signed-in profile."""

    def __init__(
        self,
        client: SupabaseClient,
        auth_manager: AuthManager,
        on_session_change: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.client = client
        self.auth_manager = auth_manager
        self.on_session_change = on_session_change
        self.profile: Optional[Profile] = None

    def _session_changed(self) -> None:
        if self.on_session_change is not None:
            self.on_session_change()

    async def register(self, registration: Registration) -> Profile:
        """
        Create an auth user and a pending profile for it.

        New partners cannot order until an admin approves the profile.
        """
        user_id = await self.client.sign_up(
            AuthCredentials(email=registration.email, password=registration.password)
        )
        row = registration.model_dump(include=set(PROFILE_FIELDS))
        row.update({"id": user_id, "status": "pending"})
        inserted = await self.client.insert("profiles", row)
        profile = Profile(**inserted[0]) if inserted else Profile(**row)
        logger.info(f"Registered {registration.company_name} ({registration.email}) as pending")
        return profile

    async def sign_in(self, credentials: AuthCredentials) -> Optional[Profile]:
        """Sign in and load the user's profile."""
        await self.client.sign_in(credentials)
        self._session_changed()
        return await self.load_profile()

    async def sign_out(self) -> None:
        await self.client.sign_out()
        self.profile = None
        self._session_changed()

    async def load_profile(self) -> Optional[Profile]:
        """Fetch the signed-in user's profile, if any."""
        user_id = self.auth_manager.user_id
        if not user_id:
            self.profile = None
            return None

        rows = await self.client.select("profiles", filters={"id": user_id})
        self.profile = Profile(**rows[0]) if rows else None
        if self.profile is None:
            logger.warning(f"No profile found for user {user_id}")
        return self.profile

    def require_admin(self) -> Profile:
        """
        Return the signed-in admin profile.

        Raises:
            PermissionError: If the signed-in user is not an admin
        """
        if self.profile is None or not self.profile.is_admin:
            raise PermissionError("Admin access required")
        return self.profile

    def require_customer(self) -> Profile:
        """
        Return the signed-in profile if it may use the cart.

        Raises:
            PermissionError: If nobody is signed in or the account is not approved
        """
        if self.profile is None:
            raise PermissionError("Not authenticated. Please sign in first.")
        level = access_level(self.profile)
        if level == "pending":
            raise PermissionError("Your account is pending approval.")
        if level == "rejected":
            raise PermissionError("Your account application was not approved.")
        return self.profile
