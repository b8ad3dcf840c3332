"""Supabase REST client for the wholesale data service."""

import logging
from typing import Any, Optional

import httpx
from .auth import AuthManager
from .models import AuthCredentials

logger = logging.getLogger(__name__)

Filters = Optional[dict[str, Any]]


class SupabaseError(Exception):
    """Raised when the data service rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class SupabaseClient:
    """Client for the Supabase REST (PostgREST) and auth APIs."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        auth_manager: AuthManager,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Supabase client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: Anon (public) API key
            auth_manager: Authentication manager holding the user session
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.auth_manager = auth_manager
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Accept": "application/json",
            },
        )

    def _headers(self, prefer: Optional[str] = None) -> dict[str, str]:
        token = self.auth_manager.get_access_token() or self.api_key
        headers = {"Authorization": f"Bearer {token}"}
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        try:
            response = await self.client.request(
                method, path, params=params, json=json, headers=self._headers(prefer)
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise SupabaseError(f"Request to data service failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {path}: undecodable response body: {e}")
            raise SupabaseError(
                "Data service returned an invalid response", status_code=response.status_code
            ) from e

    def _error_from_response(self, response: httpx.Response) -> SupabaseError:
        try:
            body = response.json()
        except ValueError:
            body = response.text

        message = None
        if isinstance(body, dict):
            message = (
                body.get("message")
                or body.get("error_description")
                or body.get("msg")
                or body.get("error")
            )
        if not message:
            message = f"Data service returned HTTP {response.status_code}"

        logger.warning(f"{response.request.method} {response.request.url.path}: {response.status_code} {message}")
        return SupabaseError(str(message), status_code=response.status_code, details=body)

    def _filter_params(self, filters: Filters) -> dict[str, str]:
        return {column: f"eq.{_format_value(value)}" for column, value in (filters or {}).items()}

    async def select(
        self,
        table: str,
        filters: Filters = None,
        order: Optional[str] = None,
        descending: bool = False,
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        """
        Read rows from a table.

        Args:
            table: Table name
            filters: Column equality filters
            order: Column to order by
            descending: Order descending instead of ascending
            columns: Column selection

        Returns:
            List of row dicts
        """
        params = {"select": columns, **self._filter_params(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        rows = await self._request("GET", f"/rest/v1/{table}", params=params)
        return rows or []

    async def insert(self, table: str, rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert one or more rows and return the inserted rows."""
        result = await self._request(
            "POST", f"/rest/v1/{table}", json=rows, prefer="return=representation"
        )
        return result or []

    async def update(self, table: str, values: dict[str, Any], filters: Filters) -> list[dict[str, Any]]:
        """Update rows matching the filters and return the updated rows."""
        if not filters:
            raise ValueError("Refusing to update without filters")
        result = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._filter_params(filters),
            json=values,
            prefer="return=representation",
        )
        return result or []

    async def delete(self, table: str, filters: Filters) -> None:
        """Delete rows matching the filters."""
        if not filters:
            raise ValueError("Refusing to delete without filters")
        await self._request("DELETE", f"/rest/v1/{table}", params=self._filter_params(filters))

    async def rpc(self, function: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Call a remote procedure and return its decoded result."""
        return await self._request("POST", f"/rest/v1/rpc/{function}", json=params or {})

    async def sign_in(self, credentials: AuthCredentials) -> str:
        """
        Sign in with email and password and store the session.

        Returns:
            The signed-in user's ID
        """
        logger.info(f"=== SIGN IN: email={credentials.email} ===")
        data = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": credentials.email, "password": credentials.password},
        ) or {}
        user = data.get("user") or {}
        if not data.get("access_token") or not user.get("id"):
            raise SupabaseError("Sign-in response did not contain a session", details=data)

        self.auth_manager.save_session(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            user_id=user["id"],
            user_email=user.get("email", credentials.email),
        )
        logger.info("Sign-in successful")
        return user["id"]

    async def sign_up(self, credentials: AuthCredentials) -> str:
        """
        Create an auth user.

        Returns:
            The new user's ID
        """
        data = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": credentials.email, "password": credentials.password},
        ) or {}
        user = data.get("user") or data
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            raise SupabaseError("Sign-up response did not contain a user", details=data)

        if data.get("access_token"):
            self.auth_manager.save_session(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                user_id=user_id,
                user_email=credentials.email,
            )
        return user_id

    async def sign_out(self) -> None:
        """Sign out and clear the local session."""
        if self.auth_manager.is_authenticated():
            try:
                await self._request("POST", "/auth/v1/logout")
            except SupabaseError as e:
                logger.warning(f"Remote sign-out failed: {e}")
        self.auth_manager.clear_session()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
