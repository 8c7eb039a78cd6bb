"""Shared request handling for platform REST clients.

Every client method returns an ApiResponse. Non-2xx responses, network
failures and malformed JSON all come back as ``success=False`` so one failed
platform call never propagates past the client.
"""
import logging
from typing import Any, Optional

import httpx

from ..retry import NO_RETRY, RetryPolicy, with_retry
from ..schemas import ApiResponse

logger = logging.getLogger("saas-mcp.clients")


class PlatformClient:
    """Bearer-authenticated REST client for one platform and one user session."""

    default_headers: dict[str, str] = {"Accept": "application/json"}

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        retry_policy: RetryPolicy = NO_RETRY,
    ):
        if not access_token:
            raise ValueError(f"{type(self).__name__} requires an access token")
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._http = http_client
        self._owns_http = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self._http

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> ApiResponse:
        """Send one request and normalise the outcome.

        ``operation`` names the action for error messages, e.g. "search Jira issues".
        """
        request_headers = {**self.default_headers, "Authorization": f"Bearer {self.access_token}"}
        if headers:
            request_headers.update(headers)
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await with_retry(
                lambda: self._client().request(
                    method, self._url(path), params=params or None, json=json_body, headers=request_headers
                ),
                self.retry_policy,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request to {operation} failed: {type(e).__name__}: {e}")
            return ApiResponse.fail(f"Error while trying to {operation}: {str(e) or type(e).__name__}")

        if not response.is_success:
            logger.warning(f"{operation} returned HTTP {response.status_code}")
            return ApiResponse.fail(f"Failed to {operation}: {response.status_code} {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {operation}: {e}")
            return ApiResponse.fail(f"Error while trying to {operation}: invalid JSON response ({e})")

        if data is None:
            return ApiResponse.fail(f"Error while trying to {operation}: empty response body")
        return ApiResponse.ok(data)
