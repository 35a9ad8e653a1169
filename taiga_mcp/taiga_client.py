# taiga_client.py
import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from taiga_mcp.config import Settings
from taiga_mcp.exceptions import AuthenticationError, TaigaAPIError

# Ensure logger is named correctly for hierarchy
logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    """Extracts the human readable part of a Taiga error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        if body.get("_error_message"):
            return str(body["_error_message"])
        if body.get("detail"):
            return str(body["detail"])
        # Field validation errors: {"subject": ["This field is required."]}
        parts = []
        for field, errors in body.items():
            if isinstance(errors, list):
                errors = ", ".join(str(e) for e in errors)
            parts.append(f"{field}: {errors}")
        if parts:
            return "; ".join(parts)
    return str(body) or response.reason_phrase


class TaigaSession:
    """
    Owns the authenticated connection to one Taiga instance.

    Holds the bearer token and the identity of the account it belongs to,
    logs in lazily on first use and hands out an httpx client that carries
    the Authorization header. Logins are single flight: concurrent callers
    that find no token share one login request.
    """

    def __init__(
        self,
        api_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        token_lifetime: int = 0,
        timeout: float = 30,
        limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_url:
            raise ValueError("Taiga API URL cannot be empty.")
        self.api_url = api_url.rstrip("/")
        self.token_lifetime = token_lifetime
        self._username = username
        self._password = password

        self.auth_token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self.authenticated_at: Optional[float] = None

        self._lock = asyncio.Lock()
        self._http = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout,
            limits=limits or httpx.Limits(),
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        logger.info(f"TaigaSession initialized for {self.api_url}")

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "TaigaSession":
        return cls(
            api_url=settings.TAIGA_API_URL,
            username=settings.TAIGA_USERNAME,
            password=settings.TAIGA_PASSWORD,
            token_lifetime=settings.TAIGA_TOKEN_LIFETIME,
            timeout=settings.REQUEST_TIMEOUT,
            limits=httpx.Limits(
                max_connections=settings.MAX_CONNECTIONS,
                max_keepalive_connections=settings.MAX_KEEPALIVE_CONNECTIONS,
            ),
            **kwargs,
        )

    # --- Token lifecycle ---

    @property
    def token_expired(self) -> bool:
        """True when the lifetime policy says the cached token must be replaced."""
        if not self.token_lifetime or self.authenticated_at is None:
            return False
        return time.time() - self.authenticated_at >= self.token_lifetime

    @property
    def expires_at(self) -> Optional[float]:
        if not self.token_lifetime or self.authenticated_at is None:
            return None
        return self.authenticated_at + self.token_lifetime

    @property
    def is_authenticated(self) -> bool:
        """Checks if a token is cached and still valid under the lifetime policy."""
        return self.auth_token is not None and not self.token_expired

    def invalidate(self) -> None:
        """Forgets the cached token and identity; the next call logs in again."""
        if self.auth_token is not None:
            logger.info(f"Invalidating cached Taiga session for {self.api_url}")
        self.auth_token = None
        self.user = None
        self.authenticated_at = None
        self._http.headers.pop("Authorization", None)

    async def authenticate(self, username: Optional[str] = None,
                           password: Optional[str] = None) -> Dict[str, Any]:
        """
        Logs in unconditionally, replacing any cached token.

        Explicit credentials replace the configured ones for later refreshes,
        but only once Taiga accepts them; a failed login keeps the cached
        token and the previous credentials. Returns the authenticated user's
        record.
        """
        async with self._lock:
            await self._login(username or self._username, password or self._password)
            return self.user

    async def ensure_authenticated(self) -> None:
        """Logs in if no valid token is cached; otherwise does nothing."""
        if self.is_authenticated:
            return
        async with self._lock:
            # Another caller may have logged in while we waited for the lock
            if self.is_authenticated:
                return
            if self.token_expired:
                logger.info("Cached Taiga token exceeded its lifetime, logging in again.")
            await self._login(self._username, self._password)

    async def _login(self, username: Optional[str], password: Optional[str]) -> None:
        """Logs in with the given credentials; session state changes only on success."""
        if not username or not password:
            raise AuthenticationError(
                "Username and password are required. Provide them or set "
                "TAIGA_USERNAME and TAIGA_PASSWORD.")

        logger.info(f"Attempting login for user '{username}' on {self.api_url}")
        request = self._http.build_request(
            "POST", "/auth",
            json={"type": "normal", "username": username, "password": password},
        )
        # The cached token stays valid until this login succeeds; never send it to /auth
        request.headers.pop("Authorization", None)
        try:
            response = await self._http.send(request)
        except httpx.HTTPError as e:
            logger.error(f"Taiga login request failed for user '{username}': {e}")
            raise AuthenticationError(f"Could not reach Taiga at {self.api_url}: {e}") from e

        if response.is_error:
            detail = _error_detail(response)
            logger.error(
                f"Taiga login failed for user '{username}' (HTTP {response.status_code}): {detail}")
            raise AuthenticationError(f"Login rejected by Taiga: {detail}")

        data = response.json()
        token = data.get("auth_token")
        if not token:
            raise AuthenticationError("Taiga login response did not contain an auth token.")

        self._username, self._password = username, password
        self.auth_token = token
        self.user = {k: v for k, v in data.items() if k not in ("auth_token", "refresh")}
        self.authenticated_at = time.time()
        self._http.headers["Authorization"] = f"Bearer {token}"
        logger.info(f"Login successful for user '{username}'. Auth token acquired.")

    async def current_user(self) -> Dict[str, Any]:
        """The cached identity of the authenticated account."""
        await self.ensure_authenticated()
        return self.user

    async def client(self) -> httpx.AsyncClient:
        """Returns the HTTP client, authenticated and ready for API calls."""
        await self.ensure_authenticated()
        return self._http

    # --- Requests ---

    async def request(self, method: str, path: str, *,
                      params: Optional[Dict[str, Any]] = None,
                      json: Any = None) -> Any:
        """
        Performs one authenticated API call and returns the decoded JSON body.

        Returns None for empty responses. Raises TaigaAPIError for non-2xx
        responses and network failures, AuthenticationError for 401.
        """
        client = await self.client()
        sent_token = self.auth_token
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug(f"{method} {path} params={params}")
        try:
            response = await client.request(method, path, params=params or None, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Request {method} {path} failed: {e}")
            raise TaigaAPIError(f"Could not reach Taiga: {e}") from e

        if response.status_code == 401:
            logger.warning(f"Taiga rejected the cached token on {method} {path}.")
            # A concurrent login may already have replaced the rejected token
            if self.auth_token == sent_token:
                self.invalidate()
            raise AuthenticationError(
                "Taiga rejected the authentication token; the session was cleared "
                "and the next call will log in again.")
        if response.is_error:
            detail = _error_detail(response)
            raise TaigaAPIError(
                f"HTTP {response.status_code} from {method} {path}: {detail}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def patch_versioned(self, path: str, data: Dict[str, Any],
                              current: Optional[Dict[str, Any]] = None) -> Any:
        """
        PATCHes an entity Taiga guards with optimistic locking.

        User stories, tasks, issues, epics and wiki pages reject changes that
        do not carry the entity's current `version`. It is read from
        `current` when the caller already fetched the entity, otherwise with
        one GET of `path`.
        """
        if current is None:
            current = await self.get(path)
        version = current.get("version")
        if version is None:
            raise TaigaAPIError(f"Could not determine the current version of {path}")
        return await self.patch(path, json={**data, "version": version})

    async def aclose(self) -> None:
        await self._http.aclose()
