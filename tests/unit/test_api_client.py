from __future__ import annotations

import asyncio

import httpx
import pytest

from wm_countries.collector.api_client import (
    MalformedResponseError,
    MissingCredentialError,
    UpstreamStatusError,
    WMClient,
    WMTimeoutError,
    WMTransportError,
    load_stub_document,
)


@pytest.mark.asyncio
async def test_request_shape(upstream) -> None:
    client, fake = upstream([{"data": []}])
    payload = await client.fetch_available_packages({"country_code": "US", "scope": "global"})
    await client.aclose()

    assert payload == {"data": []}
    assert len(fake.requests) == 1
    req = fake.requests[0]
    assert req.method == "GET"
    assert str(req.url) == "https://wm.test/v1/esim-packages/available?country_code=US&scope=global"
    assert req.headers["Authorization"] == "Bearer test-token"
    assert req.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_missing_token_fails_before_any_request(upstream) -> None:
    client, fake = upstream([{"data": []}], bearer_token=None)
    with pytest.raises(MissingCredentialError):
        await client.fetch_available_packages({})
    await client.aclose()

    assert fake.requests == []


@pytest.mark.asyncio
async def test_non_2xx_keeps_status_and_body(upstream) -> None:
    client, _ = upstream([httpx.Response(403, text='{"error":"forbidden"}')])
    with pytest.raises(UpstreamStatusError) as ei:
        await client.fetch_available_packages({})
    await client.aclose()

    assert ei.value.status_code == 403
    assert ei.value.body_text == '{"error":"forbidden"}'


@pytest.mark.asyncio
async def test_any_2xx_is_success(upstream) -> None:
    client, _ = upstream([httpx.Response(203, json=[{"code": "US"}])])
    payload = await client.fetch_available_packages({})
    await client.aclose()

    assert payload == [{"code": "US"}]


@pytest.mark.asyncio
async def test_unparseable_body_is_malformed(upstream) -> None:
    client, _ = upstream([httpx.Response(200, text="<html>oops</html>")])
    with pytest.raises(MalformedResponseError):
        await client.fetch_available_packages({})
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_errors_are_wrapped(upstream) -> None:
    client, _ = upstream([httpx.ConnectError("connection refused"), httpx.ReadTimeout("slow")])
    with pytest.raises(WMTransportError) as ei:
        await client.fetch_available_packages({})
    assert not isinstance(ei.value, WMTimeoutError)

    with pytest.raises(WMTimeoutError):
        await client.fetch_available_packages({})
    await client.aclose()


@pytest.mark.asyncio
async def test_stub_mode_does_no_io_and_needs_no_token(upstream) -> None:
    client, fake = upstream([], use_stub=True, bearer_token=None)
    first = await client.fetch_available_packages({"country_code": "US"})
    first["data"].clear()
    second = await client.fetch_available_packages({})
    await client.aclose()

    assert fake.requests == []
    assert second == load_stub_document()
    assert len(second["data"]) == 5


@pytest.mark.asyncio
async def test_whole_request_is_bounded_by_http_timeout(upstream) -> None:
    async def trickle(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(2)
        return httpx.Response(200, json={"data": []})

    base, _ = upstream([], http_timeout_ms=50)
    await base.aclose()
    client = WMClient(base.settings, transport=httpx.MockTransport(trickle))
    with pytest.raises(WMTimeoutError):
        await client.fetch_available_packages({})
    await client.aclose()


@pytest.mark.asyncio
async def test_redirects_are_followed(upstream) -> None:
    client, fake = upstream(
        [
            httpx.Response(302, headers={"Location": "https://wm.test/v2/esim-packages/available"}),
            {"data": [{"country_code": "US"}]},
        ]
    )
    payload = await client.fetch_available_packages({})
    await client.aclose()

    assert payload == {"data": [{"country_code": "US"}]}
    assert [r.url.path for r in fake.requests] == ["/v1/esim-packages/available", "/v2/esim-packages/available"]
