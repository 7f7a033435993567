from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from wm_countries.collector.api_client import WMClient
from wm_countries.utils.config import WMSettings


UpstreamReply = httpx.Response | Exception | dict | list


def make_settings(**overrides: Any) -> WMSettings:
    base: dict[str, Any] = {
        "base_url": "https://wm.test/",
        "bearer_token": "test-token",
        "use_stub": False,
        "fail_open": False,
    }
    base.update(overrides)
    return WMSettings(**base)


class FakeUpstream:
    """Scripted upstream: replies are consumed in order, every request is recorded."""

    def __init__(self, replies: list[UpstreamReply]) -> None:
        self._replies = list(replies)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._replies:
            raise AssertionError(f"unexpected upstream call #{len(self.requests)}: {request.url}")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    @property
    def params(self) -> list[dict[str, str]]:
        return [dict(r.url.params) for r in self.requests]


@pytest.fixture
def upstream() -> Callable[..., tuple[WMClient, FakeUpstream]]:
    def _make(replies: list[UpstreamReply], **settings_overrides: Any) -> tuple[WMClient, FakeUpstream]:
        fake = FakeUpstream(replies)
        client = WMClient(make_settings(**settings_overrides), transport=httpx.MockTransport(fake.handler))
        return client, fake

    return _make
