"""
Recovery Controller

Replaces a broken cart with a fresh one and replays the mutation that
failed. Bounded to one recreate-and-replay per orchestrated call; recovery
never recurses.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

from storefront.config import CartSettings
from storefront.errors import ERROR_CART_CREATE_FAILED, ERROR_MUTATION_TIMEOUT
from storefront.logging import get_logger, log_cart_mutation
from .classifier import (
    classify_mutation,
    create_recovery_failed_error,
    create_unknown_error,
)
from .context import CartContextValidator
from .gateway import CartGateway
from .models import (
    CartSnapshot,
    MutationError,
    MutationErrorCode,
    MutationResult,
    MutationState,
    MutationType,
)

logger = get_logger(__name__)

MutationFn = Callable[[], Awaitable[None]]
RecoveryCallback = Callable[[str], None]
RecoveryFailedCallback = Callable[[List[MutationError]], None]


async def wait_until_settled(gateway: CartGateway, settings: CartSettings) -> None:
    """
    Wait until the gateway reports no outstanding remote operation.

    The first check happens after `poll_initial_delay` so a status change
    that is about to happen is not missed; then the status is polled every
    `poll_interval`. Raises asyncio.TimeoutError after `mutation_timeout`.
    """
    async def _poll() -> None:
        await asyncio.sleep(settings.poll_initial_delay)
        while not gateway.status.is_settled:
            await asyncio.sleep(settings.poll_interval)

    await asyncio.wait_for(_poll(), timeout=settings.mutation_timeout)


class RecoveryController:
    """Creates a replacement cart and replays a failed mutation against it."""

    def __init__(
        self,
        gateway: CartGateway,
        validator: CartContextValidator,
        state: MutationState,
        settings: CartSettings,
        on_recovery: Optional[RecoveryCallback] = None,
        on_recovery_failed: Optional[RecoveryFailedCallback] = None,
    ):
        self.gateway = gateway
        self.validator = validator
        self.state = state
        self.settings = settings
        self.on_recovery = on_recovery
        self.on_recovery_failed = on_recovery_failed

    async def create_fresh_cart(self) -> Optional[str]:
        """
        Clear the stored context, create a new cart and record its context.

        Returns the new cart id, or None when creation failed or produced
        no identifiable cart.
        """
        await self.validator.clear()
        log_cart_mutation(
            logger,
            "createFreshCart",
            None,
            {"country": self.validator.country_code, "language": self.validator.language_code},
        )

        try:
            await self.gateway.cart_create()
            await wait_until_settled(self.gateway, self.settings)
        except Exception as e:
            log_cart_mutation(logger, "createFreshCart", None, {"error": e}, "error")
            logger.debug("cartCreate failure", exc_info=True)
            return None

        new_cart = self.gateway.cart
        if new_cart is None or not new_cart.id:
            log_cart_mutation(logger, "createFreshCart", None, {"success": False}, "error")
            return None

        await self.validator.record_creation()
        log_cart_mutation(logger, "createFreshCart", new_cart.id, {"success": True})
        return new_cart.id

    async def recover(
        self,
        mutation: MutationFn,
        mutation_type: MutationType,
        expected_delta: Optional[int],
        original_errors: Sequence[MutationError],
    ) -> MutationResult:
        """Recreate the cart, replay `mutation` once and classify the replay."""
        self.state.is_recovering = True
        try:
            log_cart_mutation(
                logger,
                "performRecovery",
                self.gateway.cart.id if self.gateway.cart else None,
                {"originalErrors": [e.code.value for e in original_errors]},
                "warn",
            )

            new_cart_id = await self.create_fresh_cart()
            if not new_cart_id:
                return self._fail([create_recovery_failed_error(original_errors)])

            before = CartSnapshot.of(self.gateway.cart)
            try:
                await mutation()
                await wait_until_settled(self.gateway, self.settings)
            except asyncio.TimeoutError:
                replay_errors = [create_unknown_error(ERROR_MUTATION_TIMEOUT)]
                return self._fail([create_recovery_failed_error(replay_errors), *replay_errors])
            except Exception as e:
                logger.error(f"Cart mutation replay raised: {e}", exc_info=True)
                replay_errors = [create_unknown_error(str(e) or type(e).__name__)]
                return self._fail([create_recovery_failed_error(replay_errors), *replay_errors])

            recovered_cart = self.gateway.cart
            replay_errors = classify_mutation(
                self.gateway.user_errors,
                before,
                CartSnapshot.of(recovered_cart),
                mutation_type,
                expected_delta,
                recovered_cart.id if recovered_cart else new_cart_id,
            )
            if replay_errors:
                return self._fail([create_recovery_failed_error(replay_errors), *replay_errors])

            if recovered_cart is None:
                return self._fail([create_recovery_failed_error(original_errors)])

            log_cart_mutation(logger, "performRecovery", new_cart_id, {"success": True})
            self._notify_recovered(new_cart_id)
            return MutationResult.ok(recovered_cart, was_recovered=True, new_cart_id=new_cart_id)
        finally:
            self.state.is_recovering = False

    async def force_new_cart(self) -> MutationResult:
        """Explicit recreation with no replay."""
        self.state.is_recovering = True
        try:
            new_cart_id = await self.create_fresh_cart()
            new_cart = self.gateway.cart
            if new_cart_id and new_cart is not None:
                self._notify_recovered(new_cart_id)
                return MutationResult.ok(new_cart, was_recovered=True, new_cart_id=new_cart_id)

            return self._fail([
                MutationError(code=MutationErrorCode.RECOVERY_FAILED, message=ERROR_CART_CREATE_FAILED)
            ])
        finally:
            self.state.is_recovering = False

    def _fail(self, errors: List[MutationError]) -> MutationResult:
        log_cart_mutation(
            logger,
            "performRecovery",
            self.gateway.cart.id if self.gateway.cart else None,
            {"errors": [e.message for e in errors]},
            "error",
        )
        if self.on_recovery_failed is not None:
            try:
                self.on_recovery_failed(errors)
            except Exception as e:
                logger.error(f"on_recovery_failed callback raised: {e}", exc_info=True)
        return MutationResult.failed(errors)

    def _notify_recovered(self, new_cart_id: str) -> None:
        if self.on_recovery is None:
            return
        try:
            self.on_recovery(new_cart_id)
        except Exception as e:
            logger.error(f"on_recovery callback raised: {e}", exc_info=True)
