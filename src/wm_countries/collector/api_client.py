from __future__ import annotations

import asyncio
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import httpx

from wm_countries.utils.config import WMSettings
from wm_countries.utils.logging import get_logger


logger = get_logger(component="wm_client")

AVAILABLE_PACKAGES_ENDPOINT = "/v1/esim-packages/available"
STUB_PATH = Path(__file__).resolve().parent / "stub.json"


class WMClientError(Exception):
    pass


class MissingCredentialError(WMClientError):
    def __init__(self) -> None:
        super().__init__("config: bearer token is missing")


class WMTransportError(WMClientError):
    pass


class WMTimeoutError(WMTransportError):
    pass


class UpstreamStatusError(WMClientError):
    def __init__(self, status_code: int, body_text: str) -> None:
        super().__init__(f"upstream error {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


class MalformedResponseError(WMClientError):
    def __init__(self) -> None:
        super().__init__("invalid json from upstream")


@lru_cache(maxsize=1)
def _stub_text() -> str:
    return STUB_PATH.read_text(encoding="utf-8")


def load_stub_document() -> Any:
    """Canned upstream document; a fresh object per call so callers may not share state."""
    return json.loads(_stub_text())


class WMClient:
    """
    World Mobile partner API client
    - GET-only, one request per call, no retries
    - Bearer auth + Accept: application/json
    - stub mode answers from the canned document without network I/O
    """

    def __init__(
        self,
        settings: WMSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.base_url.rstrip("/")
        # httpx limits each phase separately; `_deadline` bounds the whole exchange.
        self._deadline = settings.http_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._deadline),
            follow_redirects=True,
            transport=transport,
        )

    @property
    def settings(self) -> WMSettings:
        return self._settings

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_available_packages(self, params: Mapping[str, str] | None = None) -> Any:
        if self._settings.use_stub:
            return load_stub_document()

        token = self._settings.bearer_token
        if not token:
            raise MissingCredentialError()

        query = dict(params or {})
        logger.debug("upstream_request", endpoint=AVAILABLE_PACKAGES_ENDPOINT, params=query)

        try:
            resp = await asyncio.wait_for(
                self._client.get(
                    AVAILABLE_PACKAGES_ENDPOINT,
                    params=query,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                ),
                timeout=self._deadline,
            )
        except asyncio.TimeoutError as e:
            logger.warning("upstream_deadline_exceeded", endpoint=AVAILABLE_PACKAGES_ENDPOINT, deadline_seconds=self._deadline)
            raise WMTimeoutError(f"timeout: no complete response within {self._deadline}s") from e
        except httpx.TimeoutException as e:
            logger.warning("upstream_timeout", endpoint=AVAILABLE_PACKAGES_ENDPOINT, err=str(e))
            raise WMTimeoutError(f"timeout: {e}") from e
        except httpx.RequestError as e:
            logger.warning("upstream_request_failed", endpoint=AVAILABLE_PACKAGES_ENDPOINT, err=str(e))
            raise WMTransportError(str(e) or type(e).__name__) from e

        if not resp.is_success:
            logger.warning("upstream_status_error", status_code=resp.status_code)
            raise UpstreamStatusError(resp.status_code, resp.text)

        try:
            return resp.json()
        except ValueError as e:
            logger.warning("upstream_malformed_json", status_code=resp.status_code)
            raise MalformedResponseError() from e
