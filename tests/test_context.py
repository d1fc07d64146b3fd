"""
Tests for session context storage and validation
"""

import json
from unittest.mock import AsyncMock

import pytest

from storefront.cart import CartContext, CartContextValidator, CartSessionStore, MutationErrorCode
from storefront.db import TTL


class TestCartSessionStore:
    """Tests for CartSessionStore."""

    def test_empty_session_rejected(self, fake_redis):
        """Test that a session id is required."""
        with pytest.raises(ValueError):
            CartSessionStore(fake_redis, "")

    def test_keys(self, session_store):
        assert session_store.context_key == "cart:context:session-123"
        assert session_store.cart_id_key == "cart:id:session-123"

    @pytest.mark.asyncio
    async def test_context_round_trip_with_ttl(self, session_store, fake_redis, us_context):
        """Test storing a context writes JSON with the cart TTL."""
        await session_store.set_context(us_context)

        stored = json.loads(fake_redis.data["cart:context:session-123"])
        assert stored["countryCode"] == "US"
        assert fake_redis.expirations["cart:context:session-123"] == TTL.CART_CONTEXT
        assert await session_store.get_context() == us_context

    @pytest.mark.asyncio
    async def test_missing_context(self, session_store):
        assert await session_store.get_context() is None

    @pytest.mark.asyncio
    async def test_corrupted_context_cleared(self, session_store, fake_redis):
        """Test unparseable data is discarded and treated as absent."""
        fake_redis.data["cart:context:session-123"] = "{not json"

        assert await session_store.get_context() is None
        assert "cart:context:session-123" not in fake_redis.data

    @pytest.mark.asyncio
    async def test_context_missing_keys_cleared(self, session_store, fake_redis):
        fake_redis.data["cart:context:session-123"] = json.dumps({"countryCode": "US"})

        assert await session_store.get_context() is None
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_storage_failure_degrades(self):
        """Test Redis errors are logged and never propagate."""
        redis = AsyncMock()
        redis.get.side_effect = ConnectionError("redis down")
        redis.set.side_effect = ConnectionError("redis down")
        redis.delete.side_effect = ConnectionError("redis down")
        store = CartSessionStore(redis, "session-123")

        assert await store.get_context() is None
        assert await store.get_cart_id() is None
        await store.set_context(CartContext("US", "EN"))
        await store.set_cart_id("cart-1")
        await store.clear_context()
        await store.clear_cart_id()

    @pytest.mark.asyncio
    async def test_cart_id(self, session_store, fake_redis):
        """Test storing and clearing the session's cart id."""
        await session_store.set_cart_id("gid://shopify/Cart/1")

        assert await session_store.get_cart_id() == "gid://shopify/Cart/1"
        assert fake_redis.expirations["cart:id:session-123"] == TTL.CART_ID

        await session_store.clear_cart_id()
        assert await session_store.get_cart_id() is None


class TestCartContextValidator:
    """Tests for CartContextValidator."""

    @pytest.mark.asyncio
    async def test_no_stored_context_matches(self, validator):
        """Test the first-ever cart is considered a match."""
        assert await validator.is_context_match() is True
        assert await validator.mismatch_error() is None
        assert await validator.has_stored_context() is False

    @pytest.mark.asyncio
    async def test_same_context_matches(self, validator, session_store, us_context):
        await session_store.set_context(us_context)

        assert await validator.is_context_match() is True
        assert await validator.mismatch_error() is None

    @pytest.mark.asyncio
    async def test_different_context_mismatch(self, session_store, us_context):
        """Test a locale switch produces a CONTEXT_MISMATCH error."""
        await session_store.set_context(us_context)
        validator = CartContextValidator(session_store, "CA", "FR")

        assert await validator.is_context_match() is False
        error = await validator.mismatch_error()
        assert error.code == MutationErrorCode.CONTEXT_MISMATCH
        assert "US/EN" in error.message
        assert "CA/FR" in error.message

    @pytest.mark.asyncio
    async def test_record_creation(self, validator, session_store):
        """Test recording stores the active locale."""
        validator.country_code = "CA"
        validator.language_code = "FR"

        context = await validator.record_creation()

        assert context.matches("CA", "FR")
        assert await session_store.get_context() == context
        assert await validator.has_stored_context() is True

    @pytest.mark.asyncio
    async def test_clear(self, validator, session_store, us_context):
        await session_store.set_context(us_context)

        await validator.clear()

        assert await session_store.get_context() is None
