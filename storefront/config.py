"""
Storefront configuration.

All values come from the environment; defaults suit local development.
Components receive a CartSettings instance so tests can pass explicit values.
"""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Remote commerce platform (Storefront API)
STOREFRONT_API_URL = os.environ.get("STOREFRONT_API_URL", "")
STOREFRONT_ACCESS_TOKEN = os.environ.get("STOREFRONT_ACCESS_TOKEN", "")
STOREFRONT_API_VERSION = os.environ.get("STOREFRONT_API_VERSION", "2024-10")
STOREFRONT_TIMEOUT = _env_float("STOREFRONT_TIMEOUT", 10.0)

# Locale the storefront is served under
DEFAULT_COUNTRY_CODE = os.environ.get("DEFAULT_COUNTRY_CODE", "US")
DEFAULT_LANGUAGE_CODE = os.environ.get("DEFAULT_LANGUAGE_CODE", "EN")

# Cart mutation behaviour
CART_AUTO_RECOVER = _env_bool("CART_AUTO_RECOVER", True)
CART_RECOVER_ON_USER_ERROR = _env_bool("CART_RECOVER_ON_USER_ERROR", False)
CART_POLL_INITIAL_DELAY = _env_float("CART_POLL_INITIAL_DELAY", 0.1)  # seconds
CART_POLL_INTERVAL = _env_float("CART_POLL_INTERVAL", 0.05)  # seconds
CART_MUTATION_TIMEOUT = _env_float("CART_MUTATION_TIMEOUT", 15.0)  # seconds


@dataclass(frozen=True)
class CartSettings:
    """Settings consumed by the cart mutation layer."""
    country_code: str = "US"
    language_code: str = "EN"
    auto_recover: bool = True
    recover_on_user_error: bool = False
    poll_initial_delay: float = 0.1
    poll_interval: float = 0.05
    mutation_timeout: float = 15.0

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.poll_initial_delay < 0:
            raise ValueError("poll_initial_delay must be non-negative")
        if self.mutation_timeout <= 0:
            raise ValueError("mutation_timeout must be positive")

    @classmethod
    def from_env(cls) -> "CartSettings":
        """Build settings from the module-level environment values."""
        return cls(
            country_code=DEFAULT_COUNTRY_CODE,
            language_code=DEFAULT_LANGUAGE_CODE,
            auto_recover=CART_AUTO_RECOVER,
            recover_on_user_error=CART_RECOVER_ON_USER_ERROR,
            poll_initial_delay=CART_POLL_INITIAL_DELAY,
            poll_interval=CART_POLL_INTERVAL,
            mutation_timeout=CART_MUTATION_TIMEOUT,
        )


def storefront_graphql_url() -> str:
    """Full GraphQL endpoint of the Storefront API."""
    if not STOREFRONT_API_URL:
        raise ValueError("STOREFRONT_API_URL must be set")
    base = STOREFRONT_API_URL.rstrip("/")
    return f"{base}/api/{STOREFRONT_API_VERSION}/graphql.json"
