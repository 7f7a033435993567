from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel


class Country(BaseModel):
    code: str
    name: str | None = None


Candidate = tuple[str, str | None]

# Upstream schema is not fixed: aliases are tried in order, first string value wins.
CONTAINER_KEYS: tuple[str, ...] = ("data", "packages", "items", "results")
CODE_KEYS: tuple[str, ...] = ("country_code", "countryCode", "countryCodeISO", "isoCountry", "country", "code")
NAME_KEYS: tuple[str, ...] = ("country_name", "countryName", "name", "countryLabel", "country")

NESTED_LIST_KEYS: tuple[str, ...] = ("countries", "supportedCountries", "availableCountries")
NESTED_CODE_KEYS: tuple[str, ...] = ("code", "country_code", "countryCode", "country")
NESTED_NAME_KEYS: tuple[str, ...] = ("name", "country_name", "countryName")


def _first_str(obj: dict[str, Any], keys: Iterable[str]) -> str | None:
    for k in keys:
        v = obj.get(k)
        if isinstance(v, str):
            return v
    return None


def _push(out: list[Candidate], code: str | None, name: str | None) -> None:
    if code is None:
        return
    c = code.strip()
    if not c:
        return
    out.append((c, name.strip() if name is not None else None))


def _extract_entry(entry: Any, out: list[Candidate]) -> None:
    if not isinstance(entry, dict):
        return

    _push(out, _first_str(entry, CODE_KEYS), _first_str(entry, NAME_KEYS))

    for list_key in NESTED_LIST_KEYS:
        nested = entry.get(list_key)
        if not isinstance(nested, list):
            continue
        for sub in nested:
            if isinstance(sub, dict):
                _push(out, _first_str(sub, NESTED_CODE_KEYS), _first_str(sub, NESTED_NAME_KEYS))


def extract_countries(page: Any) -> list[Candidate]:
    """
    RAW page -> (code, name) candidates, best-effort.

    - list page: every element is an entry
    - dict page: elements of known containers, then the page itself
    - anything else: nothing
    """
    out: list[Candidate] = []
    if isinstance(page, list):
        for item in page:
            _extract_entry(item, out)
    elif isinstance(page, dict):
        for key in CONTAINER_KEYS:
            items = page.get(key)
            if isinstance(items, list):
                for item in items:
                    _extract_entry(item, out)
        _extract_entry(page, out)
    return out


def merge_countries(candidates: Iterable[Candidate]) -> list[Country]:
    """
    Dedup by exact code; the first non-null name wins in input order.
    Sorted by plain string order, so "US" and "us" stay separate rows.
    """
    merged: dict[str, str | None] = {}
    for code, name in candidates:
        if code not in merged or merged[code] is None:
            merged[code] = name
    return [Country(code=code, name=merged[code]) for code in sorted(merged)]
