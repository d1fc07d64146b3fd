"""
Shared Cart Authority

The single object through which consumers read cart state and request
mutations. One authority exists per shopper session; the registry hands out
that instance so every consumer observes the same logical cart.

Line ids are always read from the latest authoritative cart and never cached
here: a recovery replaces the cart and invalidates every line id issued
under the old one.
"""
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from storefront.errors import (
    CartAuthorityNotConfiguredError,
    ERROR_INVALID_LINE_ID,
    ERROR_INVALID_MERCHANDISE,
    ERROR_NO_ITEMS,
)
from storefront.logging import get_logger, log_cart_mutation, sanitize_id_for_logging
from .classifier import create_unknown_error
from .models import (
    Cart,
    CartCost,
    CartLine,
    CartLineAddInput,
    CartLineUpdateInput,
    CartStatus,
    MutationError,
    MutationResult,
)
from .context import CartSessionStore
from .orchestrator import MutationOrchestrator

logger = get_logger(__name__)

Listener = Callable[[Dict[str, Any]], None]
VariantLike = Union[str, Mapping[str, Any]]


def _merchandise_id_of(variant: VariantLike) -> str:
    """Accept a plain id or a variant-like mapping ({"node": {"id": ...}})."""
    if isinstance(variant, str):
        return variant
    if isinstance(variant, Mapping):
        node = variant.get("node") or {}
        return node.get("id") or variant.get("id") or ""
    return ""


class SharedCartAuthority:
    """Cart state observers and the caller-facing cart operations."""

    def __init__(
        self,
        orchestrator: Optional[MutationOrchestrator],
        store: Optional[CartSessionStore] = None,
    ):
        if orchestrator is None:
            raise CartAuthorityNotConfiguredError(
                "SharedCartAuthority requires a MutationOrchestrator; build it through CartAuthorityRegistry"
            )
        self._orchestrator = orchestrator
        self._store = store
        self._persisted_cart_id = self.cart_id
        self._listeners: List[Listener] = []

    @property
    def orchestrator(self) -> MutationOrchestrator:
        return self._orchestrator

    # ==================== OBSERVERS ====================

    @property
    def cart(self) -> Optional[Cart]:
        gateway = self._orchestrator.gateway
        if gateway.status == CartStatus.UNINITIALIZED:
            return None
        return gateway.cart

    @property
    def lines(self) -> List[CartLine]:
        cart = self.cart
        return list(cart.lines) if cart else []

    @property
    def status(self) -> CartStatus:
        return self._orchestrator.gateway.status

    @property
    def cart_id(self) -> Optional[str]:
        cart = self.cart
        return cart.id if cart else None

    @property
    def checkout_url(self) -> Optional[str]:
        cart = self.cart
        return cart.checkout_url if cart else None

    @property
    def cost(self) -> Optional[CartCost]:
        cart = self.cart
        return cart.cost if cart else None

    @property
    def total_quantity(self) -> int:
        cart = self.cart
        return cart.total_quantity if cart else 0

    @property
    def is_recovering(self) -> bool:
        return self._orchestrator.state.is_recovering

    @property
    def is_loading(self) -> bool:
        return (
            self.status in (CartStatus.UPDATING, CartStatus.CREATING)
            or self.is_recovering
            or self._orchestrator.is_busy
        )

    @property
    def last_errors(self) -> List[MutationError]:
        return list(self._orchestrator.state.last_errors)

    @property
    def cart_counts(self) -> Dict[str, int]:
        """Quantity per merchandise id, derived from the current lines."""
        counts: Dict[str, int] = {}
        for line in self.lines:
            if line.merchandise_id:
                counts[line.merchandise_id] = counts.get(line.merchandise_id, 0) + line.quantity
        return counts

    @property
    def locale(self) -> Tuple[str, str]:
        validator = self._orchestrator.validator
        return validator.country_code, validator.language_code

    def set_locale(self, country_code: str, language_code: str) -> None:
        """
        Switch the active locale. The cart keeps its creation context, so
        the next mutation detects the mismatch and recreates the cart.
        """
        if (country_code, language_code) == self.locale:
            return
        self._orchestrator.validator.country_code = country_code
        self._orchestrator.validator.language_code = language_code
        self._orchestrator.gateway.set_locale(country_code, language_code)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of everything consumers observe."""
        cart = self.cart
        return {
            "cart": cart.to_dict() if cart else None,
            "cartId": self.cart_id,
            "status": self.status.value,
            "checkoutUrl": self.checkout_url,
            "cost": cart.cost.to_dict() if cart else None,
            "totalQuantity": self.total_quantity,
            "isRecovering": self.is_recovering,
            "isLoading": self.is_loading,
            "lastErrors": [error.to_dict() for error in self.last_errors],
            "cartCounts": self.cart_counts,
        }

    # ==================== SUBSCRIPTIONS ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with `snapshot()` after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        if not self._listeners:
            return
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Cart listener raised: {e}", exc_info=True)

    async def _persist_cart_id(self) -> None:
        """Keep the session's stored cart id in step with the remote cart."""
        cart_id = self.cart_id
        if self._store is None or cart_id == self._persisted_cart_id:
            return
        if cart_id:
            await self._store.set_cart_id(cart_id)
        else:
            await self._store.clear_cart_id()
        self._persisted_cart_id = cart_id

    async def _run(self, operation: Awaitable[MutationResult]) -> MutationResult:
        result = await operation
        await self._persist_cart_id()
        self._publish()
        return result

    def _reject(self, message: str) -> MutationResult:
        """Local validation failure; the gateway is never called."""
        return MutationResult.failed([create_unknown_error(message)])

    def _find_existing_line(self, merchandise_id: str) -> Optional[CartLine]:
        cart = self.cart
        return cart.find_line(merchandise_id) if cart else None

    # ==================== LOW-LEVEL MUTATIONS ====================

    async def add_lines(self, lines: Iterable[CartLineAddInput]) -> MutationResult:
        return await self._run(self._orchestrator.add_lines(list(lines)))

    async def update_lines(self, lines: Iterable[CartLineUpdateInput]) -> MutationResult:
        return await self._run(self._orchestrator.update_lines(list(lines)))

    async def remove_lines(self, line_ids: Iterable[str]) -> MutationResult:
        return await self._run(self._orchestrator.remove_lines(list(line_ids)))

    # ==================== CART OPERATIONS ====================

    async def add_to_cart(self, merchandise: VariantLike, quantity: int) -> MutationResult:
        """
        Add merchandise; an existing line for the same merchandise gets its
        quantity raised instead of a duplicate line being created.
        """
        merchandise_id = _merchandise_id_of(merchandise)
        if not merchandise_id or quantity <= 0:
            return self._reject(ERROR_INVALID_MERCHANDISE)

        log_cart_mutation(
            logger, "addToCart", self.cart_id, {"merchandiseId": merchandise_id, "quantity": quantity}
        )

        existing = self._find_existing_line(merchandise_id)
        if existing is not None:
            return await self.update_lines([
                CartLineUpdateInput(id=existing.id, quantity=existing.quantity + quantity)
            ])

        return await self.add_lines([CartLineAddInput(merchandise_id=merchandise_id, quantity=quantity)])

    async def update_quantity(self, line_id: str, new_quantity: int) -> MutationResult:
        """Set a line's quantity; zero or less removes the line."""
        if not line_id:
            return self._reject(ERROR_INVALID_LINE_ID)

        log_cart_mutation(logger, "updateQuantity", self.cart_id, {"lineId": line_id, "quantity": new_quantity})

        if new_quantity <= 0:
            return await self.remove_lines([line_id])
        return await self.update_lines([CartLineUpdateInput(id=line_id, quantity=new_quantity)])

    async def remove_from_cart(self, line_id: str) -> MutationResult:
        if not line_id:
            return self._reject(ERROR_INVALID_LINE_ID)

        log_cart_mutation(logger, "removeFromCart", self.cart_id, {"lineId": line_id})
        return await self.remove_lines([line_id])

    async def add_multiple_to_cart(self, items: Iterable[Mapping[str, Any]]) -> MutationResult:
        """
        Batch add. Items already in the cart become one update batch, the
        rest one add batch. Updates run first; a failed update batch stops
        the operation before any add is attempted.
        """
        items = list(items)
        if not items:
            return self._reject(ERROR_NO_ITEMS)

        log_cart_mutation(logger, "addMultipleToCart", self.cart_id, {"itemCount": len(items)})

        new_lines: List[CartLineAddInput] = []
        update_lines: List[CartLineUpdateInput] = []
        for item in items:
            merchandise_id = item.get("merchandise_id") or item.get("merchandiseId") or ""
            quantity = int(item.get("quantity") or 0)
            if not merchandise_id or quantity <= 0:
                return self._reject(ERROR_INVALID_MERCHANDISE)

            existing = self._find_existing_line(merchandise_id)
            if existing is not None:
                update_lines.append(CartLineUpdateInput(id=existing.id, quantity=existing.quantity + quantity))
            else:
                new_lines.append(CartLineAddInput(merchandise_id=merchandise_id, quantity=quantity))

        if update_lines:
            update_result = await self.update_lines(update_lines)
            if not update_result.success:
                return update_result

        if new_lines:
            return await self.add_lines(new_lines)

        # All items were updates
        return MutationResult.ok(self.cart)

    async def force_new_cart(self) -> MutationResult:
        """User-triggered recreation; skips failure detection and replays nothing."""
        log_cart_mutation(logger, "forceNewCart", self.cart_id, {}, "warn")
        return await self._run(self._orchestrator.force_new_cart())

    def clear_errors(self) -> None:
        """Reset the visible error list; cart data is untouched."""
        self._orchestrator.state.last_errors = []
        self._publish()


AuthorityFactory = Callable[[str], Awaitable[SharedCartAuthority]]


class CartAuthorityRegistry:
    """
    One SharedCartAuthority per shopper session.

    The factory builds the authority for a session id (typically restoring
    the persisted cart id); the registry guarantees every consumer of that
    session sees the same instance.
    """

    def __init__(self, factory: Optional[AuthorityFactory]):
        if factory is None:
            raise CartAuthorityNotConfiguredError("CartAuthorityRegistry requires an authority factory")
        self._factory = factory
        self._authorities: Dict[str, SharedCartAuthority] = {}

    def __len__(self) -> int:
        return len(self._authorities)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._authorities

    async def get(self, session_id: str) -> SharedCartAuthority:
        if not session_id:
            raise ValueError("session_id must be a non-empty string")

        authority = self._authorities.get(session_id)
        if authority is None:
            authority = await self._factory(session_id)
            # Another request for the same session may have finished first
            authority = self._authorities.setdefault(session_id, authority)
            logger.debug(f"Created cart authority for session {sanitize_id_for_logging(session_id)}")
        return authority

    async def discard(self, session_id: str) -> None:
        authority = self._authorities.pop(session_id, None)
        if authority is not None:
            await authority.orchestrator.gateway.aclose()

    async def aclose(self) -> None:
        for session_id in list(self._authorities):
            await self.discard(session_id)
