import logging
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from core.logger import setup_logging

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """Start uvicorn; unset arguments fall back to WEEKSTREAK_* env vars."""
    level_name = os.getenv("WEEKSTREAK_LOG_LEVEL", "INFO").upper()
    setup_logging(log_level=getattr(logging, level_name, logging.INFO))

    if reload is None:
        reload = os.getenv("WEEKSTREAK_RELOAD", "0").lower() in {"1", "true", "yes"}
    host = host or os.getenv("WEEKSTREAK_HOST", "0.0.0.0")
    port = port or int(os.getenv("WEEKSTREAK_PORT", "8010"))

    uvicorn.run(
        "web.backend.app:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["web", "core"] if reload else None,
    )


def main():
    run_server()


if __name__ == "__main__":
    main()
