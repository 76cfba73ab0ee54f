"""
Configuration Manager for WeekStreak.

Central place for the system constants that drive task gating, submission
validation and the outer integrations. Every value can be overridden from
config/runtime.yaml.

Usage:
    from core.config_manager import config
    limit = config.DAYS_PER_WEEK
"""
from dataclasses import dataclass
from typing import Optional

import yaml

from core.logger import get_logger
from core.paths import CONFIG_DIR

logger = get_logger("config")

RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """
    Runtime constants.

    The submission bounds mirror what the completion form advertises to
    users, so change them together with the client copy.
    """

    # === Week structure ===

    # Tasks per weekly goal; a week completes when all of them are complete.
    DAYS_PER_WEEK: int = 7

    # When True a later day may be created while the previous day is still
    # open (it is then created locked). When False the previous day must be
    # complete before the next one can be created.
    ALLOW_PLANNING_AHEAD: bool = False

    # === Completion submission bounds ===

    CODE_MIN_LENGTH: int = 10
    CODE_MAX_LENGTH: int = 10_000
    NOTES_MIN_LENGTH: int = 20
    NOTES_MAX_LENGTH: int = 5_000

    # === Example posts ===

    # Style references kept per (user, goal type, platform).
    MAX_EXAMPLE_POSTS_PER_PLATFORM: int = 2

    # === HTTP ===

    # Header carrying the authenticated user id set by the identity gateway.
    USER_ID_HEADER: str = "X-User-Id"

    # Comma separated list, "*" allows any origin.
    ALLOWED_ORIGINS: str = "*"

    # === Payments ===

    PAYMENT_ENVIRONMENT: str = "test_mode"
    SITE_BASE_URL: str = "http://localhost:3000"

    # Product key -> {id_env, name, price (cents), currency, type}
    PRODUCTS: Optional[dict] = None

    def __post_init__(self):
        if self.PRODUCTS is None:
            self.PRODUCTS = {
                "premium_monthly": {
                    "id_env": "DODO_PRODUCT_ID_MONTHLY",
                    "name": "Premium Monthly",
                    "price": 1000,
                    "currency": "USD",
                    "type": "subscription",
                },
                "premium_annual": {
                    "id_env": "DODO_PRODUCT_ID_ANNUAL",
                    "name": "Premium Annual",
                    "price": 10000,
                    "currency": "USD",
                    "type": "subscription",
                },
                "ebook_guide": {
                    "id_env": "DODO_PRODUCT_ID_EBOOK",
                    "name": "Ultimate Resume Guide",
                    "price": 1900,
                    "currency": "USD",
                    "type": "one_time",
                },
            }


def _load_runtime_config() -> dict:
    """Load runtime overrides if the file exists."""
    if not RUNTIME_CONFIG_PATH.exists():
        return {}

    try:
        with open(RUNTIME_CONFIG_PATH, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable runtime config %s: %s", RUNTIME_CONFIG_PATH, e)
        return {}


def get_config() -> SystemConfig:
    """
    Build the system configuration.

    Priority: runtime.yaml > defaults
    """
    base = SystemConfig()
    overrides = _load_runtime_config()

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    return base


# Global instance
config = get_config()
