"""Unit tests for the delivery hook wire format and HTTP client."""

import json
import logging

import httpx
import pytest

from forkline.fork.delivery_hooks import (
    AddHeader,
    DeliveryHookClient,
    DeliveryHookConfig,
    DeliveryHookError,
    FileInto,
    HookRequest,
    HookResponse,
    send_delivery_hook_request,
)
from forkline.fork.delivery_hooks import client as client_module
from forkline.fork.delivery_hooks.wire import Address, WireEnvelope, WireMessage

HOOK_URL = "http://mock-hooks/inspect"


def hook_request(server_headers=None) -> HookRequest:
    return HookRequest(
        user_id="alice",
        envelope=WireEnvelope(sender=Address(address="bob@example.org"), recipient=Address(address="alice@example.org")),
        message=WireMessage(
            headers=[("Subject", "Hi")],
            server_headers=server_headers or [],
            contents="Subject: Hi\r\n\r\nbody",
            size=21,
        ),
    )


class TestWire:
    def test_request_payload_uses_wire_names(self):
        payload = hook_request().to_payload()
        assert payload == {
            "user_id": "alice",
            "envelope": {"from": {"address": "bob@example.org"}, "to": {"address": "alice@example.org"}},
            "message": {"headers": [["Subject", "Hi"]], "contents": "Subject: Hi\r\n\r\nbody", "size": 21},
        }

    def test_numeric_user_id_sent_when_known(self):
        request = hook_request()
        assert "user_id_num" not in request.to_payload()
        request.user_id_num = 7
        payload = request.to_payload()
        assert payload["user_id"] == "alice"
        assert payload["user_id_num"] == 7

    def test_server_headers_sent_when_present(self):
        payload = hook_request([("Received", "from mx")]).to_payload()
        assert payload["message"]["serverHeaders"] == [["Received", "from mx"]]

    def test_response_modifications_are_tagged(self):
        response = HookResponse.model_validate(
            {
                "action": "accept",
                "modifications": [
                    {"type": "fileInto", "folder": "Receipts", "create": True},
                    {"type": "addHeader", "name": "X-Routed", "value": "yes"},
                ],
                "flags": ["$label"],
            }
        )
        first, second = response.modifications
        assert isinstance(first, FileInto) and first.folder == "Receipts" and first.create
        assert isinstance(second, AddHeader) and second.name == "X-Routed"
        assert response.skip_inbox is False

    def test_unknown_modification_rejected(self):
        with pytest.raises(ValueError):
            HookResponse.model_validate({"action": "accept", "modifications": [{"type": "discard"}]})


class TestDeliveryHookClient:
    @pytest.mark.asyncio
    async def test_posts_json_with_configured_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"action": "accept", "flags": ["$seen"]})

        config = DeliveryHookConfig(
            id="router", url=HOOK_URL, headers=["X-Tenant: acme"], auth_username="u", auth_secret="p"
        )
        client = DeliveryHookClient(config, transport=httpx.MockTransport(handler))
        try:
            response = await client.send(hook_request())
        finally:
            await client.aclose()

        assert response.action == "accept"
        assert response.flags == ["$seen"]
        assert seen["method"] == "POST"
        assert seen["url"] == HOOK_URL
        assert seen["headers"]["content-type"] == "application/json"
        assert seen["headers"]["x-tenant"] == "acme"
        assert seen["headers"]["authorization"].startswith("Basic ")
        assert seen["body"]["user_id"] == "alice"

    @pytest.mark.asyncio
    async def test_non_2xx_is_an_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="down"))
        with pytest.raises(DeliveryHookError, match="HTTP 500"):
            await send_delivery_hook_request(DeliveryHookConfig(id="h", url=HOOK_URL), hook_request(), transport=transport)

    @pytest.mark.asyncio
    async def test_oversized_response_is_an_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"action": "accept"}))
        config = DeliveryHookConfig(id="h", url=HOOK_URL, max_response_size=5)
        with pytest.raises(DeliveryHookError, match="exceeds limit"):
            await send_delivery_hook_request(config, hook_request(), transport=transport)

    @pytest.mark.asyncio
    async def test_streamed_body_stops_reading_at_limit(self):
        produced = []

        async def endless_body():
            for _ in range(100):
                produced.append(1024)
                yield b"x" * 1024

        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=endless_body()))
        config = DeliveryHookConfig(id="h", url=HOOK_URL, max_response_size=1024)
        with pytest.raises(DeliveryHookError, match="exceeds limit of 1024 bytes"):
            await send_delivery_hook_request(config, hook_request(), transport=transport)
        assert sum(produced) <= 2048

    @pytest.mark.asyncio
    async def test_streamed_body_within_limit(self):
        async def chunked_body():
            yield b'{"action": '
            yield b'"accept"}'

        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=chunked_body()))
        config = DeliveryHookConfig(id="h", url=HOOK_URL, max_response_size=64)
        response = await send_delivery_hook_request(config, hook_request(), transport=transport)
        assert response.action == "accept"

    @pytest.mark.asyncio
    async def test_invalid_body_is_an_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"action": "maybe"}))
        with pytest.raises(DeliveryHookError, match="invalid response"):
            await send_delivery_hook_request(DeliveryHookConfig(id="h", url=HOOK_URL), hook_request(), transport=transport)

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(DeliveryHookError) as exc_info:
            await send_delivery_hook_request(
                DeliveryHookConfig(id="h", url=HOOK_URL), hook_request(), transport=httpx.MockTransport(handler)
            )
        assert exc_info.value.hook_id == "h"
        assert "ConnectError" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_answer_logged_on_module_logger(self, caplog):
        caplog.set_level(logging.DEBUG, logger=client_module.__name__)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"action": "accept"}))
        await send_delivery_hook_request(DeliveryHookConfig(id="h", url=HOOK_URL), hook_request(), transport=transport)
        assert client_module.logger.name == "forkline.fork.delivery_hooks.client"
        assert [r.getMessage() for r in caplog.records if r.name == client_module.logger.name] == [
            "Delivery hook h answered accept"
        ]

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"action": "reject"}))
        async with httpx.AsyncClient(transport=transport) as http:
            client = DeliveryHookClient(DeliveryHookConfig(id="h", url=HOOK_URL), client=http)
            assert (await client.send(hook_request())).action == "reject"
            await client.aclose()
            assert not http.is_closed
