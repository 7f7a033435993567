from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from wm_countries.collector.aggregator import resolve_countries
from wm_countries.collector.api_client import (
    MalformedResponseError,
    MissingCredentialError,
    UpstreamStatusError,
    WMClient,
    WMTransportError,
)
from wm_countries.read_api.middleware import RequestTimeoutMiddleware
from wm_countries.read_api.schemas import CountryListResponse, HealthResponse
from wm_countries.utils.config import WMSettings, load_settings
from wm_countries.utils.logging import get_logger


logger = get_logger(component="read_api")


def get_client(request: Request) -> WMClient:
    return request.app.state.client


def create_app(settings: WMSettings | None = None, client: WMClient | None = None) -> FastAPI:
    """
    App factory. Settings are read once here; the WMClient is opened in the lifespan
    (unless one is passed in) and shared read-only by all requests.
    """
    if settings is None:
        settings = client.settings if client is not None else load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = client is None
        app.state.client = client if client is not None else WMClient(settings)
        logger.info(
            "read_api_started",
            base_url=settings.base_url,
            use_stub=settings.use_stub,
            fail_open=settings.fail_open,
            max_pages=settings.max_pages,
        )
        try:
            yield
        finally:
            if owned:
                await app.state.client.aclose()

    app = FastAPI(
        title="wm-countries",
        version="v1",
        description="Normalized country list proxy for the World Mobile partner API",
        lifespan=lifespan,
    )
    # Added first so CORS (added last) stays outermost and decorates 408s too.
    app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    @app.get("/health", tags=["meta"], response_model=HealthResponse)
    async def health(client: WMClient = Depends(get_client)) -> HealthResponse:
        s = client.settings
        return HealthResponse(
            base_url=s.base_url,
            use_stub=s.use_stub,
            fail_open=s.fail_open,
            source="stub" if s.use_stub else "worldmobile",
        )

    @app.get(
        "/countries",
        tags=["worldmobile"],
        response_model=CountryListResponse,
        responses={
            200: {"description": "List of countries"},
            500: {"description": "Missing upstream credential"},
            502: {"description": "Upstream unreachable or returned invalid JSON"},
        },
    )
    async def get_countries(
        country_code: str | None = None,
        scope: str | None = None,
        esim_id: str | None = None,
        fetch_all: bool = Query(False, description="walk every upstream page"),
        page_size: int | None = Query(None, ge=1, description="preferred upstream page size"),
        client: WMClient = Depends(get_client),
    ) -> CountryListResponse:
        params: dict[str, str] = {}
        if country_code is not None:
            params["country_code"] = country_code
        if scope is not None:
            params["scope"] = scope
        if esim_id is not None:
            params["esim_id"] = esim_id

        result = await resolve_countries(client, params, fetch_all=fetch_all, page_size=page_size)
        return CountryListResponse(countries=result.countries, count=result.count, source=result.source.value)

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MissingCredentialError)
    async def _missing_credential(_request: Request, _exc: MissingCredentialError) -> PlainTextResponse:
        logger.error("missing_bearer_token")
        return PlainTextResponse("WM_BEARER_TOKEN is not set", status_code=500)

    @app.exception_handler(WMTransportError)
    async def _transport(_request: Request, exc: WMTransportError) -> PlainTextResponse:
        return PlainTextResponse(f"request error: {exc}", status_code=502)

    @app.exception_handler(UpstreamStatusError)
    async def _upstream_status(_request: Request, exc: UpstreamStatusError) -> PlainTextResponse:
        return PlainTextResponse(exc.body_text, status_code=exc.status_code)

    @app.exception_handler(MalformedResponseError)
    async def _malformed(_request: Request, _exc: MalformedResponseError) -> PlainTextResponse:
        return PlainTextResponse("invalid JSON from upstream", status_code=502)

