"""HTTP client the editor shell uses to reach the transform API."""

from __future__ import annotations

from typing import Any

import httpx

from src.application.schemas.transform import TransformAction
from src.shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_API_URL = "http://localhost:5005"

ENDPOINTS = {
    TransformAction.SHORTEN: "/api/make-shorter",
    TransformAction.LENGTHEN: "/api/make-longer",
}


class TransformFailed(Exception):
    """A transform call did not produce text; `message` is user-facing."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CopilotClient:
    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            api_url: base URL of the API server
            timeout: client-side bound on one call, in seconds
            http_client: pre-built client, e.g. one wired to an ASGI app
        """
        self.api_url = api_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def transform(self, action: TransformAction | str, text: str) -> str:
        """Send `text` for rewriting and return the generated result.

        Raises:
            TransformFailed: unknown action, transport error, error status,
                or a body without a string `result`
        """
        try:
            endpoint = ENDPOINTS[TransformAction(action)]
        except ValueError as exc:
            raise TransformFailed(f"Unsupported action: {action}") from exc

        try:
            response = await self._client.post(f"{self.api_url}{endpoint}", json={"text": text})
        except httpx.HTTPError as exc:
            log.error("transform_request_error", extra={"endpoint": endpoint, "error": str(exc)})
            raise TransformFailed(str(exc) or exc.__class__.__name__) from exc

        data = _json_or_none(response)
        if response.is_error:
            message = None
            if isinstance(data, dict) and isinstance(data.get("message"), str):
                message = data["message"]
            raise TransformFailed(
                message or f"API request failed with status: {response.status_code}",
                status_code=response.status_code,
            )

        if not isinstance(data, dict) or not isinstance(data.get("result"), str):
            log.error("unexpected_api_response", extra={"endpoint": endpoint})
            raise TransformFailed("Unexpected API response structure", response.status_code)
        return data["result"]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CopilotClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
