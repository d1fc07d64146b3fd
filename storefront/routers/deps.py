"""
Shared Dependencies for Routers

Lazy-loaded singletons: the Storefront HTTP client and the per-session
cart authority registry.
"""

from typing import Optional

import httpx
from fastapi import Header, HTTPException

from storefront.config import STOREFRONT_TIMEOUT, CartSettings
from storefront.db import get_redis
from storefront.errors import ERROR_MISSING_SESSION
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.cart import (
    CartAuthorityRegistry,
    CartContextValidator,
    CartSessionStore,
    MutationOrchestrator,
    SharedCartAuthority,
    StorefrontCartGateway,
)

logger = get_logger(__name__)


# ==================== LAZY SINGLETONS ====================

_http_client: Optional[httpx.AsyncClient] = None
_registry: Optional[CartAuthorityRegistry] = None


def get_http_client() -> httpx.AsyncClient:
    """Get or create the shared Storefront HTTP client"""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=STOREFRONT_TIMEOUT)
    return _http_client


async def build_session_authority(session_id: str) -> SharedCartAuthority:
    """Wire gateway, validator and orchestrator for one shopper session."""
    settings = CartSettings.from_env()
    store = CartSessionStore(get_redis(), session_id)

    cart_id = await store.get_cart_id()
    gateway = StorefrontCartGateway(
        get_http_client(),
        settings.country_code,
        settings.language_code,
        cart_id=cart_id,
    )
    if cart_id:
        try:
            await gateway.fetch()
        except Exception as e:
            # The first mutation will classify against an unknown state instead
            logger.warning(
                f"Failed to restore cart {sanitize_id_for_logging(cart_id)} "
                f"for session {sanitize_id_for_logging(session_id)}: {e}"
            )

    validator = CartContextValidator(store, settings.country_code, settings.language_code)
    orchestrator = MutationOrchestrator(gateway, validator, settings)
    return SharedCartAuthority(orchestrator, store=store)


def get_authority_registry() -> CartAuthorityRegistry:
    """Get or create the CartAuthorityRegistry singleton (lazy loaded)"""
    global _registry
    if _registry is None:
        _registry = CartAuthorityRegistry(build_session_authority)
    return _registry


async def get_session_authority(
    x_cart_session: Optional[str] = Header(default=None),
    x_cart_country: Optional[str] = Header(default=None),
    x_cart_language: Optional[str] = Header(default=None),
) -> SharedCartAuthority:
    """Resolve the shopper's cart authority from request headers."""
    session_id = (x_cart_session or "").strip()
    if not session_id:
        raise HTTPException(status_code=400, detail=ERROR_MISSING_SESSION)

    authority = await get_authority_registry().get(session_id)

    if x_cart_country or x_cart_language:
        country, language = authority.locale
        authority.set_locale(
            (x_cart_country or country).upper(),
            (x_cart_language or language).upper(),
        )
    return authority


# ==================== SHUTDOWN HELPERS ====================

async def shutdown_services():
    """Cleanly close singleton services (http clients, etc.)."""
    global _http_client, _registry
    if _registry is not None:
        try:
            await _registry.aclose()
        except Exception as e:
            logger.warning(f"Failed to close cart registry: {e}")
        _registry = None
    if _http_client is not None:
        try:
            await _http_client.aclose()
        except Exception as e:
            logger.warning(f"Failed to close HTTP client: {e}")
        _http_client = None
