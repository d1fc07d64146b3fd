"""Pytest configuration and fixtures"""
import asyncio
import os
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Set test environment variables
os.environ.setdefault("STOREFRONT_API_URL", "https://test-shop.example.com")
os.environ.setdefault("STOREFRONT_ACCESS_TOKEN", "test_token")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test-redis.example.com")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_redis_token")

from storefront.cart import (  # noqa: E402
    Cart,
    CartContext,
    CartContextValidator,
    CartLine,
    CartLineAddInput,
    CartLineUpdateInput,
    CartSessionStore,
    CartStatus,
    MutationOrchestrator,
    MutationState,
    SharedCartAuthority,
)
from storefront.cart.gateway import CartGateway  # noqa: E402
from storefront.config import CartSettings  # noqa: E402


class FakeRedis:
    """Dict-backed stand-in for the async Upstash client (get/set/delete)."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})
        self.expirations: Dict[str, int] = {}

    async def get(self, key: str):
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self.data[key] = value
        if ex is not None:
            self.expirations[key] = ex
        return True

    async def delete(self, *keys: str):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class FakeCartGateway(CartGateway):
    """
    In-memory remote cart service.

    Knobs:
    - ignore_mutations: next N line mutations are silently ignored
    - user_errors_queue: each entry is returned as userErrors for one mutation
    - fail_create: cart_create produces no cart
    - raise_on_mutation: exception raised by the next line mutation
    - settle_delay: operations report UPDATING and settle later (fire-and-forget)
    - never_settle: status stays UPDATING forever
    """

    def __init__(self, cart: Optional[Cart] = None):
        self._cart = cart
        self._status = CartStatus.IDLE if cart else CartStatus.UNINITIALIZED
        self._user_errors: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.country_code = "US"
        self.language_code = "EN"
        self._clock = 0
        self._ids = 0
        self.ignore_mutations = 0
        self.user_errors_queue: List[List[Dict[str, Any]]] = []
        self.fail_create = False
        self.raise_on_mutation: Optional[Exception] = None
        self.settle_delay = 0.0
        self.never_settle = False
        self.closed = False

    # ---- observation -------------------------------------------------

    @property
    def status(self) -> CartStatus:
        return self._status

    @property
    def cart(self) -> Optional[Cart]:
        return self._cart

    @property
    def user_errors(self) -> List[Dict[str, Any]]:
        return list(self._user_errors)

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    # ---- helpers -----------------------------------------------------

    def _tick(self) -> str:
        self._clock += 1
        return f"2025-01-01T00:00:{self._clock:02d}Z"

    def _next_id(self, kind: str) -> str:
        self._ids += 1
        return f"gid://shopify/{kind}/{self._ids}"

    def _replace(self, lines: List[CartLine], cart_id: Optional[str] = None) -> None:
        base_id = cart_id or self._cart.id
        self._cart = Cart(
            id=base_id,
            lines=[line for line in lines if line.quantity > 0],
            checkout_url=f"https://test-shop.example.com/checkout/{base_id.rsplit('/', 1)[-1]}",
            updated_at=self._tick(),
        )

    async def _apply(self, change) -> None:
        if self.never_settle:
            self._status = CartStatus.UPDATING
            return

        if self.settle_delay > 0:
            self._status = CartStatus.UPDATING

            async def settle():
                await asyncio.sleep(self.settle_delay)
                change()
                self._status = CartStatus.IDLE

            asyncio.get_running_loop().create_task(settle())
            return

        change()
        self._status = CartStatus.IDLE

    def _begin_line_mutation(self) -> bool:
        """Returns False when the mutation must be ignored."""
        self._user_errors = []
        if self.raise_on_mutation is not None:
            error, self.raise_on_mutation = self.raise_on_mutation, None
            raise error
        if self.user_errors_queue:
            self._user_errors = self.user_errors_queue.pop(0)
            return False
        if self.ignore_mutations > 0:
            self.ignore_mutations -= 1
            return False
        return True

    # ---- operations --------------------------------------------------

    async def cart_create(self) -> None:
        self.calls.append(("cart_create",))
        self._user_errors = []
        self._cart = None

        def change():
            if not self.fail_create:
                self._replace([], cart_id=self._next_id("Cart"))

        await self._apply(change)

    async def lines_add(self, lines: Sequence[CartLineAddInput]) -> None:
        self.calls.append(("lines_add", list(lines)))
        if not self._begin_line_mutation():
            return

        def change():
            current = list(self._cart.lines) if self._cart else []
            new_lines = [
                CartLine(id=self._next_id("CartLine"), merchandise_id=line.merchandise_id, quantity=line.quantity)
                for line in lines
            ]
            if self._cart is None:
                self._replace(new_lines, cart_id=self._next_id("Cart"))
            else:
                self._replace(current + new_lines)

        await self._apply(change)

    async def lines_update(self, lines: Sequence[CartLineUpdateInput]) -> None:
        self.calls.append(("lines_update", list(lines)))
        if not self._begin_line_mutation() or self._cart is None:
            return

        updates = {line.id: line.quantity for line in lines}
        if not any(line.id in updates for line in self._cart.lines):
            return

        def change():
            self._replace([
                CartLine(id=line.id, merchandise_id=line.merchandise_id, quantity=updates.get(line.id, line.quantity))
                for line in self._cart.lines
            ])

        await self._apply(change)

    async def lines_remove(self, line_ids: Sequence[str]) -> None:
        self.calls.append(("lines_remove", list(line_ids)))
        if not self._begin_line_mutation() or self._cart is None:
            return

        if not any(line.id in line_ids for line in self._cart.lines):
            return

        def change():
            self._replace([line for line in self._cart.lines if line.id not in line_ids])

        await self._apply(change)

    async def fetch(self) -> Optional[Cart]:
        self.calls.append(("fetch",))
        return self._cart

    async def aclose(self) -> None:
        self.closed = True


def make_cart(lines=None, cart_id="gid://shopify/Cart/existing", updated_at="2024-12-31T23:59:59Z") -> Cart:
    """Cart with (merchandise_id, quantity) lines."""
    cart_lines = [
        CartLine(id=f"gid://shopify/CartLine/existing-{index}", merchandise_id=merchandise_id, quantity=quantity)
        for index, (merchandise_id, quantity) in enumerate(lines or [])
    ]
    return Cart(id=cart_id, lines=cart_lines, updated_at=updated_at, checkout_url="https://test-shop.example.com/checkout/existing")


@pytest.fixture
def settings():
    """Fast polling, short timeout."""
    return CartSettings(
        country_code="US",
        language_code="EN",
        auto_recover=True,
        poll_initial_delay=0,
        poll_interval=0.001,
        mutation_timeout=1.0,
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return CartSessionStore(fake_redis, "session-123")


@pytest.fixture
def validator(session_store):
    return CartContextValidator(session_store, "US", "EN")


@pytest.fixture
def gateway():
    """Empty, uninitialized remote cart."""
    return FakeCartGateway()


@pytest.fixture
def orchestrator(gateway, validator, settings):
    return MutationOrchestrator(gateway, validator, settings, state=MutationState())


@pytest.fixture
def authority(orchestrator, session_store):
    return SharedCartAuthority(orchestrator, store=session_store)


@pytest.fixture
def us_context():
    return CartContext(country_code="US", language_code="EN", created_at="2025-01-01T00:00:00+00:00")


@pytest.fixture
def make_gateway():
    """Factory: FakeCartGateway, optionally holding a cart with (merchandise_id, quantity) lines."""
    def _make(lines=None):
        return FakeCartGateway(make_cart(lines) if lines is not None else None)
    return _make


@pytest.fixture
def build_authority(session_store, settings):
    """Factory: SharedCartAuthority over the given gateway, sharing the session store."""
    def _build(gateway, cart_settings=None, **orchestrator_kwargs):
        cart_settings = cart_settings or settings
        validator = CartContextValidator(session_store, cart_settings.country_code, cart_settings.language_code)
        orchestrator = MutationOrchestrator(gateway, validator, cart_settings, **orchestrator_kwargs)
        return SharedCartAuthority(orchestrator, store=session_store)
    return _build
