"""
Session context validation.

A remote cart only honours mutations issued under the locale (country,
language) it was created with. The creation locale is persisted per session
and compared before every mutation.
"""
import json
from typing import Optional

from storefront.db import RedisKeys, TTL
from storefront.logging import get_logger, sanitize_id_for_logging
from .classifier import create_context_mismatch_error
from .models import CartContext, MutationError

logger = get_logger(__name__)


class CartSessionStore:
    """
    Per-session cart record in Redis: creation context and cart id.

    Storage failures never propagate; reads degrade to "nothing stored"
    and writes are skipped with a warning.
    """

    def __init__(self, redis, session_id: str, ttl: int = TTL.CART_CONTEXT):
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        self.redis = redis
        self.session_id = session_id
        self.ttl = ttl

    @property
    def context_key(self) -> str:
        return RedisKeys.cart_context_key(self.session_id)

    @property
    def cart_id_key(self) -> str:
        return RedisKeys.cart_id_key(self.session_id)

    async def get_context(self) -> Optional[CartContext]:
        """Read the stored creation context, if any."""
        try:
            data = await self.redis.get(self.context_key)
        except Exception as e:
            logger.warning(
                f"Failed to read cart context for session {sanitize_id_for_logging(self.session_id)}: {e}"
            )
            return None

        if not data:
            return None

        try:
            return CartContext.from_dict(json.loads(data))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            # Corrupted data - clear it and return None
            logger.warning(
                f"Corrupted cart context for session {sanitize_id_for_logging(self.session_id)}: {e}"
            )
            await self.clear_context()
            return None

    async def set_context(self, context: CartContext) -> None:
        try:
            await self.redis.set(self.context_key, json.dumps(context.to_dict()), ex=self.ttl)
        except Exception as e:
            logger.warning(f"Failed to store cart context: {e}")

    async def clear_context(self) -> None:
        try:
            await self.redis.delete(self.context_key)
        except Exception as e:
            logger.warning(f"Failed to clear cart context: {e}")

    async def get_cart_id(self) -> Optional[str]:
        try:
            cart_id = await self.redis.get(self.cart_id_key)
        except Exception as e:
            logger.warning(f"Failed to read cart id: {e}")
            return None
        return cart_id or None

    async def set_cart_id(self, cart_id: str) -> None:
        try:
            await self.redis.set(self.cart_id_key, cart_id, ex=self.ttl)
        except Exception as e:
            logger.warning(f"Failed to store cart id: {e}")

    async def clear_cart_id(self) -> None:
        try:
            await self.redis.delete(self.cart_id_key)
        except Exception as e:
            logger.warning(f"Failed to clear cart id: {e}")


class CartContextValidator:
    """Compares the active locale with the one the cart was created under."""

    def __init__(self, store: CartSessionStore, country_code: str, language_code: str):
        self.store = store
        self.country_code = country_code
        self.language_code = language_code

    async def is_context_match(self) -> bool:
        """
        True if no context is stored yet (first-ever cart) or the stored
        context equals the active one.
        """
        stored = await self.store.get_context()
        if stored is None:
            return True
        return stored.matches(self.country_code, self.language_code)

    async def mismatch_error(self) -> Optional[MutationError]:
        """CONTEXT_MISMATCH error describing both contexts, or None."""
        stored = await self.store.get_context()
        if stored is None or stored.matches(self.country_code, self.language_code):
            return None
        return create_context_mismatch_error(stored, self.country_code, self.language_code)

    async def has_stored_context(self) -> bool:
        return await self.store.get_context() is not None

    async def record_creation(self) -> CartContext:
        """Persist the active locale as the creation context of a new cart."""
        context = CartContext.now(self.country_code, self.language_code)
        await self.store.set_context(context)
        return context

    async def clear(self) -> None:
        await self.store.clear_context()
