"""HTTP client for the parent-companion REST API.

Implements the collaborator protocols (AccessApi, InviteApi, RosterApi) so
the services can be wired to a real backend. Every call checks the caller's
session first, then retries transient failures (connection errors,
timeouts, dropped connections, 5xx) with exponential backoff. Client
errors are not retried. Every failure surfaces as AccessApiError.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .core.config import Settings, settings as default_settings
from .exceptions import AccessApiError, ErrorCode, SessionError
from .schemas.access import AccessGrant, CoParent, CoParentInviteRequest, PendingInvite

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 1.0  # seconds; exponential: 1s, 2s, 4s

# Treat tokens this close to expiry as expired so a call cannot outlive them.
EXPIRY_SKEW = timedelta(seconds=30)

MISSING_TOKEN_MESSAGE = "Missing access token. Please sign in again."
EXPIRED_TOKEN_MESSAGE = "Your session expired. Please sign in again."


class SessionTokens(BaseModel):
    """The signed-in caller's credentials as held by the session manager."""
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None


TokenProvider = Callable[[], Awaitable[Optional[SessionTokens]]]

M = TypeVar("M", bound=BaseModel)


def is_token_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return expires_at - EXPIRY_SKEW <= now


def _unwrap(payload: Any) -> Any:
    """Accept both bare payloads and ``{"data": ...}`` envelopes."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class CoParentApiClient:
    """Async client wrapping the parent-companion endpoints.

    Args:
        token_provider: Coroutine returning the caller's current SessionTokens.
        config: Settings to read the base URL, timeout and retry count from.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        retry_base_delay: First backoff delay in seconds.

    Raises:
        ConfigurationError: In production, when the API URL is not HTTPS.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        config = config or default_settings
        config.validate_production_config()
        self.base_url = config.api_url
        self.timeout = config.api_timeout
        self.max_retries = config.api_max_retries
        self.retry_base_delay = retry_base_delay
        self._token_provider = token_provider
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _access_token(self) -> str:
        tokens = await self._token_provider()
        if tokens is None or not tokens.access_token:
            raise SessionError(MISSING_TOKEN_MESSAGE, ErrorCode.MISSING_ACCESS_TOKEN)
        if is_token_expired(tokens.expires_at):
            raise SessionError(EXPIRED_TOKEN_MESSAGE, ErrorCode.SESSION_EXPIRED)
        return tokens.access_token

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute an authenticated request and return its decoded body (or None)."""
        token = await self._access_token()
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {token}"}
        last_exc: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                resp = await client.request(method, path, headers=headers, **kwargs)
                if resp.status_code < 500:
                    if resp.is_error:
                        raise AccessApiError(_error_message(resp), status_code=resp.status_code)
                    if not resp.content:
                        return None
                    return _unwrap(_decode(resp))
                last_exc = AccessApiError(
                    f"Server error {resp.status_code}", status_code=resp.status_code,
                )
            except httpx.TransportError as exc:
                last_exc = exc

            if attempt < self.max_retries - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, path, attempt + 1, self.max_retries, delay, last_exc,
                )
                await asyncio.sleep(delay)

        if isinstance(last_exc, AccessApiError):
            raise last_exc
        raise AccessApiError(
            f"Request {method} {path} failed after {self.max_retries} attempts",
            original_error=last_exc,
        )

    # ----- access ------------------------------------------------------------

    async def fetch_access_for_caller(self, caller_id: str) -> list[AccessGrant]:
        """Maps to GET /v1/parent-companion/parent/{caller_id}."""
        body = await self._request("GET", f"/v1/parent-companion/parent/{caller_id}")
        return _parse_list(AccessGrant, body)

    async def fetch_access_for_companion(self, companion_id: str) -> list[AccessGrant]:
        """Maps to GET /v1/parent-companion/companion/{companion_id}."""
        body = await self._request("GET", f"/v1/parent-companion/companion/{companion_id}")
        return _parse_list(AccessGrant, body)

    # ----- invites -----------------------------------------------------------

    async def fetch_pending_invites(self) -> list[PendingInvite]:
        """Maps to GET /v1/parent-companion/invites/pending."""
        body = await self._request("GET", "/v1/parent-companion/invites/pending")
        return _parse_list(PendingInvite, body)

    async def accept_invite(self, token: str) -> Optional[AccessGrant]:
        """Maps to POST /v1/parent-companion/invites/{token}/accept."""
        body = await self._request("POST", f"/v1/parent-companion/invites/{token}/accept")
        return _parse(AccessGrant, body) if isinstance(body, dict) and body else None

    async def decline_invite(self, token: str) -> None:
        """Maps to POST /v1/parent-companion/invites/{token}/decline."""
        await self._request("POST", f"/v1/parent-companion/invites/{token}/decline")

    # ----- roster ------------------------------------------------------------

    async def list_co_parents(self, companion_id: str) -> list[CoParent]:
        """Maps to GET /v1/parent-companion/companion/{companion_id}."""
        body = await self._request("GET", f"/v1/parent-companion/companion/{companion_id}")
        return _parse_list(CoParent, body)

    async def send_invite(self, request: CoParentInviteRequest) -> Dict[str, Any]:
        """Maps to POST /v1/parent-companion/invite."""
        body = await self._request(
            "POST",
            "/v1/parent-companion/invite",
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        return body if isinstance(body, dict) else {}

    async def update_permissions(
        self,
        companion_id: str,
        co_parent_id: str,
        permissions: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Maps to PATCH /v1/parent-companion/companion/{companion_id}/co-parents/{co_parent_id}/permissions."""
        body = await self._request(
            "PATCH",
            f"/v1/parent-companion/companion/{companion_id}/co-parents/{co_parent_id}/permissions",
            json={"permissions": permissions},
        )
        return body if isinstance(body, dict) else {}

    async def remove_co_parent(self, companion_id: str, co_parent_id: str) -> None:
        """Maps to DELETE /v1/parent-companion/companion/{companion_id}/co-parents/{co_parent_id}."""
        await self._request(
            "DELETE", f"/v1/parent-companion/companion/{companion_id}/co-parents/{co_parent_id}",
        )

    async def promote_to_primary(self, companion_id: str, co_parent_id: str) -> None:
        """Maps to POST /v1/parent-companion/companion/{companion_id}/co-parents/{co_parent_id}/promote."""
        await self._request(
            "POST", f"/v1/parent-companion/companion/{companion_id}/co-parents/{co_parent_id}/promote",
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()


def _parse(model: Type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise AccessApiError(f"Unexpected {model.__name__} payload", original_error=exc) from exc


def _parse_list(model: Type[M], payload: Any) -> list[M]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise AccessApiError(f"Expected a list of {model.__name__}, got {type(payload).__name__}")
    return [_parse(model, item) for item in payload]


def _decode(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise AccessApiError(
            f"Invalid JSON in response to {resp.request.method} {resp.request.url.path}",
            status_code=resp.status_code,
            original_error=exc,
        ) from exc


def _error_message(resp: httpx.Response) -> str:
    """Prefer the API's own message for client errors."""
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if isinstance(message, str) and message:
            return message
    return f"Request failed with status {resp.status_code}"
