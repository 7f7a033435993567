from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import os
import yaml
from dotenv import load_dotenv


DEFAULT_BASE_URL = "https://partnerapi.worldmobilelabs.com"


@dataclass(frozen=True)
class WMSettings:
    base_url: str = DEFAULT_BASE_URL
    bearer_token: str | None = None
    use_stub: bool = False
    http_timeout_ms: int = 15_000
    max_pages: int = 20
    default_page_size: int = 100
    # When the upstream fails, serve the stub instead so the UI is never empty.
    fail_open: bool = True
    request_timeout_seconds: float = 20.0


def _project_root() -> Path:
    # .../src/wm_countries/utils/config.py -> project root is 4 parents up.
    return Path(__file__).resolve().parents[3]


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip()
    return s == "1" or s.lower() == "true"


def _as_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _as_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        return default


def _load_yaml_section(path: str | None) -> dict[str, Any]:
    """
    Optional YAML defaults.

    Precedence:
    - explicit `path`
    - env `WM_CONFIG`
    - project default `config/worldmobile.yaml` (skipped when missing)
    """
    explicit = path or os.getenv("WM_CONFIG")
    cfg_path = Path(explicit) if explicit else _project_root() / "config" / "worldmobile.yaml"
    if not cfg_path.exists():
        if explicit:
            raise ValueError(f"Config file not found: {cfg_path}")
        return {}
    cfg = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    section = cfg.get("worldmobile") or {}
    if not isinstance(section, dict):
        raise ValueError(f"worldmobile section must be a mapping in {cfg_path}")
    return section


def load_settings(path: str | None = None) -> WMSettings:
    """
    Build settings once at startup: .env -> YAML defaults -> environment overrides.
    Unparseable numbers fall back to defaults.
    """
    load_dotenv()
    yml = _load_yaml_section(path)
    defaults = WMSettings()

    def pick(env_key: str, yaml_key: str) -> Any:
        raw = os.getenv(env_key)
        return raw if raw is not None else yml.get(yaml_key)

    base_url = pick("WM_BASE_URL", "base_url")
    token = pick("WM_BEARER_TOKEN", "bearer_token")

    return WMSettings(
        base_url=str(base_url) if base_url else defaults.base_url,
        bearer_token=str(token) if token else None,
        use_stub=_as_bool(pick("WM_USE_STUB", "use_stub"), defaults.use_stub),
        http_timeout_ms=_as_int(pick("WM_HTTP_TIMEOUT_MS", "http_timeout_ms"), defaults.http_timeout_ms),
        max_pages=_as_int(pick("WM_MAX_PAGES", "max_pages"), defaults.max_pages),
        default_page_size=_as_int(pick("WM_DEFAULT_PAGE_SIZE", "default_page_size"), defaults.default_page_size),
        fail_open=_as_bool(pick("WM_FAIL_OPEN", "fail_open"), defaults.fail_open),
        request_timeout_seconds=_as_float(
            pick("WM_REQUEST_TIMEOUT_SECONDS", "request_timeout_seconds"), defaults.request_timeout_seconds
        ),
    )
