from __future__ import annotations

import os
import sys
from pathlib import Path

import uvicorn

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    # Allow `python scripts/serve.py` from a checkout without `pip install -e .`.
    sys.path.insert(0, str(SRC_DIR))

from wm_countries.utils.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger(component="serve")


def main() -> int:
    setup_logging()
    host = os.getenv("WM_HOST", "0.0.0.0")
    try:
        port = int(os.getenv("WM_PORT", "8000"))
    except ValueError:
        raise SystemExit("WM_PORT must be an int")

    logger.info("listening", url=f"http://{host}:{port}")
    uvicorn.run("wm_countries.read_api.app:create_app", factory=True, host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
