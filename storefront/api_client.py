"""
Async JSON client for the booking backend.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from storefront.config import Config
from storefront.exceptions import ApiError, InvalidResponseError

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Each call is a single request: no caching and no retry. Cookies set by
    the backend are kept by the underlying client and sent on later calls.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else Config.API_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json", "Accept": "application/json"}
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        return await self._request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        return await self._request("POST", endpoint, json=payload, headers=headers)

    async def put(self, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("PUT", endpoint, json=payload)

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        url = self._url(endpoint)
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                f"{method} request failed for {endpoint}: {e}",
                extra={"method": method, "endpoint": endpoint, "error_type": type(e).__name__}
            )
            raise ApiError(f"Network error: {e}") from e

        return self._handle_response(response)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        """
        Decode a response body, or raise for a failed request.

        Failed requests carry the server's ``message`` (or ``error``) field
        when the body is JSON, otherwise the status line.

        Returns:
            Decoded JSON, or None for empty bodies
        """
        if response.is_error:
            message = f"Error: {response.status_code} {response.reason_phrase}"
            try:
                error_data = response.json()
            except ValueError:
                logger.warning(f"Non-JSON error response from {response.request.url}")
            else:
                if isinstance(error_data, dict):
                    message = str(error_data.get("message") or error_data.get("error") or message)
            raise ApiError(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Failed to parse JSON response from {response.request.url}: {e}")
            raise InvalidResponseError() from e


def unwrap_envelope(payload: Any, *keys: str) -> Any:
    """
    Strip the backend's ``{"data": {...}}`` envelope when present.

    Extra keys descend further, e.g. ``unwrap_envelope(body, "booking")``
    turns ``{"data": {"booking": {...}}}`` into the booking object. Bare
    payloads are returned unchanged.
    """
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
        for key in keys:
            if isinstance(payload, dict) and key in payload:
                payload = payload[key]
    return payload
