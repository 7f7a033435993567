from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import parse_qs, urlsplit

from wm_countries.collector.api_client import WMClient
from wm_countries.utils.logging import get_logger


logger = get_logger(component="pagination")

TOKEN_KEYS: tuple[str, ...] = ("next", "nextToken", "next_token", "nextPageToken")
META_TOKEN_KEY = "next_token"
TOKEN_PARAM = "next"
PAGE_PARAM = "page"
PAGE_SIZE_PARAM = "page_size"


@dataclass(frozen=True)
class NextPageNumber:
    page: int


@dataclass(frozen=True)
class ContinuationToken:
    token: str


ContinuationSignal = NextPageNumber | ContinuationToken | None


def _as_page_int(value: Any) -> int | None:
    # JSON bools are ints in Python; they are never page counters.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        s = value.strip()
        # str.isdigit() also accepts superscripts like "²" that int() rejects.
        if not (s.isascii() and s.isdecimal()):
            return None
        try:
            return int(s)
        except ValueError:
            return None
    return None


def _meta(page: Any) -> dict[str, Any]:
    if isinstance(page, dict):
        m = page.get("meta")
        if isinstance(m, dict):
            return m
    return {}


def next_token(page: Any) -> str | None:
    if not isinstance(page, dict):
        return None
    for k in TOKEN_KEYS:
        v = page.get(k)
        if isinstance(v, str) and v:
            return v
    v = _meta(page).get(META_TOKEN_KEY)
    if isinstance(v, str) and v:
        return v
    return None


def _page_from_url(url: str) -> int | None:
    try:
        values = parse_qs(urlsplit(url).query).get(PAGE_PARAM) or []
    except ValueError:
        return None
    for v in values:
        n = _as_page_int(v)
        if n is not None:
            return n
    return None


def next_page_number(page: Any, current_page: int) -> int | None:
    if not isinstance(page, dict):
        return None

    meta = _meta(page)
    if meta:
        total_pages = _as_page_int(meta.get("total_pages")) or 0
        page_no = _as_page_int(meta.get("page"))
        if page_no is None:
            page_no = current_page
        if total_pages > 0 and page_no < total_pages:
            return page_no + 1

    explicit = _as_page_int(page.get("next_page"))
    if explicit is not None:
        return explicit

    links = page.get("links")
    if isinstance(links, dict):
        next_url = links.get("next")
        if isinstance(next_url, str) and next_url:
            return _page_from_url(next_url)
    return None


def continuation_signal(page: Any, current_page: int) -> ContinuationSignal:
    """Token first, page counters second; a token always wins a tie."""
    tok = next_token(page)
    if tok is not None:
        return ContinuationToken(tok)
    np = next_page_number(page, current_page)
    if np is not None:
        return NextPageNumber(np)
    return None


async def fetch_all_pages(
    client: WMClient,
    params: Mapping[str, str],
    *,
    fetch_all: bool,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> list[Any]:
    """
    Sequential traversal of upstream pages.

    - fetch_all=False (or stub mode): exactly one call with the caller's params
    - otherwise: loop until no continuation signal or `max_pages` calls
    - any client error propagates; pages collected so far are dropped
    """
    settings = client.settings
    if settings.use_stub or not fetch_all:
        return [await client.fetch_available_packages(dict(params))]

    cap = settings.max_pages if max_pages is None else int(max_pages)
    current_page = 1
    req_params = dict(params)
    req_params[PAGE_PARAM] = str(current_page)
    req_params[PAGE_SIZE_PARAM] = str(page_size if page_size is not None else settings.default_page_size)

    pages: list[Any] = []
    for _ in range(cap):
        payload = await client.fetch_available_packages(dict(req_params))
        pages.append(payload)

        signal = continuation_signal(payload, current_page)
        if isinstance(signal, ContinuationToken):
            req_params[TOKEN_PARAM] = signal.token
            continue
        if isinstance(signal, NextPageNumber):
            current_page = signal.page
            req_params[PAGE_PARAM] = str(current_page)
            continue
        break
    else:
        logger.info("pagination_page_cap_reached", max_pages=cap, pages=len(pages))

    return pages
