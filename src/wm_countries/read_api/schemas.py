"""
Pydantic schemas for the read API (also drive the generated OpenAPI docs).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from wm_countries.transforms.countries import Country


CountrySourceLiteral = Literal["worldmobile", "stub", "fail_open_stub"]


class CountryListResponse(BaseModel):
    countries: list[Country]
    count: int
    source: CountrySourceLiteral = Field(description="worldmobile | stub | fail_open_stub")


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    base_url: str
    use_stub: bool
    fail_open: bool
    source: Literal["worldmobile", "stub"]
