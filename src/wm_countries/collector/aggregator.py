from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from wm_countries.collector.api_client import MissingCredentialError, WMClient, WMClientError, load_stub_document
from wm_countries.collector.pagination import fetch_all_pages
from wm_countries.transforms.countries import Country, extract_countries, merge_countries
from wm_countries.utils.logging import get_logger


logger = get_logger(component="countries_aggregator")


class CountrySource(str, Enum):
    PRIMARY = "worldmobile"
    STUB_CONFIGURED = "stub"
    DEGRADED_FALLBACK = "fail_open_stub"


@dataclass(frozen=True)
class AggregatedResult:
    countries: list[Country]
    count: int
    source: CountrySource


def _aggregate(pages: Iterable[Any], source: CountrySource) -> AggregatedResult:
    candidates = []
    for page in pages:
        candidates.extend(extract_countries(page))
    countries = merge_countries(candidates)
    return AggregatedResult(countries=countries, count=len(countries), source=source)


async def resolve_countries(
    client: WMClient,
    params: Mapping[str, str],
    *,
    fetch_all: bool,
    page_size: int | None = None,
) -> AggregatedResult:
    """
    Top-level decision:
    - stub mode: canned document, no network
    - real mode: all pages -> normalize -> merge
    - failure + fail_open: canned document, tagged as degraded
      (a missing credential is a config defect and is never substituted)
    """
    settings = client.settings
    if settings.use_stub:
        return _aggregate([load_stub_document()], CountrySource.STUB_CONFIGURED)

    try:
        pages = await fetch_all_pages(client, params, fetch_all=fetch_all, page_size=page_size)
    except MissingCredentialError:
        raise
    except WMClientError as e:
        if not settings.fail_open:
            raise
        logger.warning("upstream_failed_serving_stub", err=str(e), error_type=type(e).__name__)
        return _aggregate([load_stub_document()], CountrySource.DEGRADED_FALLBACK)

    result = _aggregate(pages, CountrySource.PRIMARY)
    logger.info("countries_resolved", pages=len(pages), count=result.count, fetch_all=fetch_all)
    return result
