"""HaloPSA REST API client.

One client per connection. Owns the HTTP transport and the OAuth2
client-credentials token for that connection; resource services build on
top of ``get``/``post``/``delete``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from halosync.psa.cache import ResponseCache, cached
from halosync.psa.errors import (
    APIError,
    AuthenticationFailure,
    HaloError,
    NotFoundError,
    RateLimitError,
    TransientError,
)

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = 3600


class PSAClient:
    """Authenticated client for one HaloPSA instance.

    Example:
        >>> async with PSAClient(base_url, client_id, client_secret) as client:
        ...     agents = await client.get("/Agent", {"count": 10})
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        tenant: str | None = None,
        *,
        connection_id: str | None = None,
        cache: ResponseCache | None = None,
        timeout: float = 30.0,
        scope: str = "all",
        token_expiry_margin: int = 60,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize client.

        Args:
            base_url: HaloPSA instance URL, e.g. https://acme.halopsa.com
            client_id: Decrypted OAuth client id
            client_secret: Decrypted OAuth client secret
            tenant: Optional tenant for hosted multi-tenant instances
            connection_id: Cache partition key; defaults to the base URL
            cache: Shared response cache (None disables caching)
            timeout: HTTP timeout in seconds
            scope: OAuth scope requested with the token
            token_expiry_margin: Seconds before expiry at which a token is renewed
            http_client: Pre-built transport (tests inject a mock transport)
            clock: Wall-clock source for token expiry
        """
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/api"
        self.auth_url = f"{self.base_url}/auth/token"
        if tenant:
            self.auth_url = f"{self.auth_url}?tenant={tenant}"

        self.tenant = tenant
        self.scope = scope
        self.connection_id = connection_id or (
            f"{self.base_url}#{tenant}" if tenant else self.base_url
        )
        self.cache = cache
        self.token_expiry_margin = token_expiry_margin

        self._client_id = client_id
        self._client_secret = client_secret
        self._access_token: str | None = None
        self._token_expiry: float = 0.0
        self._clock = clock
        self._token_lock = asyncio.Lock()

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    @property
    def has_valid_token(self) -> bool:
        """True while a token exists and is outside the renewal margin."""
        if not self._access_token:
            return False
        return self._clock() < self._token_expiry - self.token_expiry_margin

    async def authenticate(self) -> str:
        """Obtain a fresh access token with the client-credentials grant.

        Returns:
            The access token

        Raises:
            AuthenticationFailure: PSA rejected the credentials (4xx)
            TransientError: Network failure or 5xx from the token endpoint
        """
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": self.scope,
        }

        try:
            response = await self._http.post(
                self.auth_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as exc:
            raise TransientError(f"HaloPSA token request failed: {exc}") from exc

        if response.status_code >= 500:
            raise TransientError(
                f"HaloPSA token endpoint unavailable: {response.status_code}",
                status_code=response.status_code,
                response=response.text,
            )
        if response.status_code >= 400:
            raise AuthenticationFailure(
                f"Authentication failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                response=response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationFailure(
                "Authentication failed: token response is not JSON",
                status_code=response.status_code,
                response=response.text,
            ) from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationFailure(
                "Authentication failed: no access_token in response",
                status_code=response.status_code,
                response=payload,
            )

        try:
            lifetime = int(payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        except (TypeError, ValueError, OverflowError):
            logger.warning(
                f"Unusable expires_in {payload.get('expires_in')!r} from HaloPSA, "
                f"assuming {DEFAULT_TOKEN_LIFETIME}s"
            )
            lifetime = DEFAULT_TOKEN_LIFETIME
        self._access_token = token
        self._token_expiry = self._clock() + lifetime
        logger.info(f"Authenticated with HaloPSA at {self.base_url}")
        return token

    async def ensure_token(self) -> str:
        """Return a valid token, acquiring one first if needed."""
        if self.has_valid_token:
            return self._access_token  # type: ignore[return-value]
        async with self._token_lock:
            # Another coroutine may have refreshed while we waited
            if not self.has_valid_token:
                await self.authenticate()
            return self._access_token  # type: ignore[return-value]

    def clear_token(self) -> None:
        """Forget the current token; the next request re-authenticates."""
        self._access_token = None
        self._token_expiry = 0.0

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send an authenticated request and return the parsed JSON body.

        Args:
            method: HTTP verb
            path: Path below /api, e.g. "/Tickets"
            params: Query parameters; None values are dropped
            json: JSON body

        Returns:
            Parsed JSON, or None for an empty body

        Raises:
            AuthenticationFailure: Token rejected
            RateLimitError: 429
            NotFoundError: 404
            TransientError: Network failure or 5xx
            APIError: Any other non-2xx status
        """
        token = await self.ensure_token()
        query = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            response = await self._http.request(
                method,
                f"{self.api_url}{path}",
                params=query,
                json=json,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.RequestError as exc:
            raise TransientError(f"HaloPSA request failed: {method} {path}: {exc}") from exc

        return self._handle_response(response, path)

    def _handle_response(self, response: httpx.Response, path: str) -> Any:
        status = response.status_code

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                int(retry_after) if retry_after and retry_after.isdigit() else None
            )

        if status == 404:
            resource, _, resource_id = path.strip("/").partition("/")
            raise NotFoundError(resource or "Resource", resource_id or "unknown")

        if status == 401:
            self.clear_token()
            raise AuthenticationFailure(
                "HaloPSA rejected the access token",
                status_code=status,
                response=self._safe_body(response),
            )

        if status >= 500:
            raise TransientError(
                f"HaloPSA API error: {status} {response.reason_phrase}",
                status_code=status,
                response=self._safe_body(response),
            )

        if status >= 400:
            raise APIError(
                f"HaloPSA API error: {status} {response.reason_phrase}",
                status_code=status,
                response=self._safe_body(response),
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise APIError(
                f"HaloPSA returned invalid JSON for {path}",
                status_code=status,
                response=response.text,
            ) from exc

    @staticmethod
    def _safe_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        cache_ttl: float | None = None,
    ) -> Any:
        """GET a resource, served from the cache when ``cache_ttl`` is given."""
        if self.cache is None or cache_ttl is None:
            return await self.request("GET", path, params=params)

        return await cached(
            self.cache,
            self.connection_id,
            path,
            lambda: self.request("GET", path, params=params),
            ttl=cache_ttl,
            params=params,
        )

    async def post(self, path: str, body: Any = None) -> Any:
        result = await self.request("POST", path, json=body)
        self._invalidate_cached(path)
        return result

    async def delete(self, path: str) -> Any:
        result = await self.request("DELETE", path)
        self._invalidate_cached(path)
        return result

    def _invalidate_cached(self, path: str) -> None:
        if self.cache is None:
            return
        root = path.strip("/").split("/", 1)[0]
        self.cache.invalidate_resource(self.connection_id, f"/{root}")

    async def test_connection(self) -> bool:
        """Authenticate and make one cheap read. Never raises for PSA errors."""
        try:
            await self.authenticate()
            await self.request("GET", "/Agent", params={"count": 1})
            return True
        except HaloError as exc:
            logger.warning(f"HaloPSA connection test failed for {self.base_url}: {exc}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> PSAClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
