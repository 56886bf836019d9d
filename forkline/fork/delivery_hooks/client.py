"""HTTP client for delivery hook endpoints.

Typical usage:
    client = DeliveryHookClient(hook_config)
    response = await client.send(HookRequest(user_id="alice", ...))
    await client.aclose()

Tests inject an ``httpx.MockTransport`` (or a prepared ``httpx.AsyncClient``)
so no real network traffic happens.
"""

from __future__ import annotations

from typing import List, Optional

import httpx
from pydantic import ValidationError

from forkline.core.errors import ForklineError
from forkline.core.logging_config import get_logger

from .config import DeliveryHookConfig
from .wire import HookRequest, HookResponse

logger = get_logger(__name__)


class DeliveryHookError(ForklineError):
    """The hook endpoint could not be reached or answered with garbage."""

    def __init__(self, hook_id: str, detail: str) -> None:
        self.hook_id = hook_id
        self.detail = detail
        super().__init__(f"Delivery hook '{hook_id}' failed: {detail}")


class DeliveryHookClient:
    """Send delivery hook requests to one configured endpoint.

    - Uses ``httpx.AsyncClient`` configured from the hook: timeout, TLS
      verification and request headers (including Basic auth).
    - Rejects responses larger than ``max_response_size`` and non-2xx statuses.
    """

    def __init__(
        self,
        config: DeliveryHookConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(
            timeout=config.timeout,
            verify=not config.allow_invalid_certs,
            transport=transport,
        )

    @property
    def config(self) -> DeliveryHookConfig:
        return self._config

    async def send(self, request: HookRequest) -> HookResponse:
        """POST the request and parse the hook's answer.

        The body is streamed and reading stops as soon as it grows past
        ``max_response_size``.

        Raises:
            DeliveryHookError: On transport errors, non-2xx statuses, oversized
                bodies, or a body that is not a valid hook response.
        """
        cfg = self._config
        try:
            async with self._http.stream(
                "POST", cfg.url, json=request.to_payload(), headers=cfg.request_headers()
            ) as r:
                if not r.is_success:
                    raise DeliveryHookError(cfg.id, f"HTTP {r.status_code} from {cfg.url}")
                body = await self._read_limited(r)
        except httpx.HTTPError as exc:
            raise DeliveryHookError(cfg.id, f"{type(exc).__name__}: {exc}") from exc

        try:
            response = HookResponse.model_validate_json(body)
        except ValidationError as exc:
            raise DeliveryHookError(cfg.id, f"invalid response: {exc.error_count()} validation error(s)") from exc
        logger.debug(f"Delivery hook {cfg.id} answered {response.action}")
        return response

    async def _read_limited(self, r: httpx.Response) -> bytes:
        limit = self._config.max_response_size
        declared = r.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            raise DeliveryHookError(self._config.id, f"response of {declared} bytes exceeds limit of {limit}")
        chunks: List[bytes] = []
        total = 0
        async for chunk in r.aiter_bytes():
            total += len(chunk)
            if total > limit:
                raise DeliveryHookError(self._config.id, f"response exceeds limit of {limit} bytes")
            chunks.append(chunk)
        return b"".join(chunks)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


async def send_delivery_hook_request(
    config: DeliveryHookConfig,
    request: HookRequest,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HookResponse:
    """One-shot request with a client that is closed afterwards."""
    client = DeliveryHookClient(config, transport=transport)
    try:
        return await client.send(request)
    finally:
        await client.aclose()
