"""
Centralized filesystem paths for runtime data.
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"


def get_data_dir() -> Path:
    """
    Return runtime data directory.

    Priority:
    1. WEEKSTREAK_DATA_DIR env var
    2. <project_root>/data
    """
    raw = os.getenv("WEEKSTREAK_DATA_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return PROJECT_ROOT / "data"


DATA_DIR = get_data_dir()
