"""
Mutation Orchestrator - the single entry point for cart mutations.

Protocol for every call:
1. Single-flight guard (a concurrent call fails fast, nothing is queued)
2. Context check (locale mismatch goes straight to recovery)
3. Snapshot `updatedAt` / `totalQuantity`
4. Invoke the mutation and wait until the gateway is settled
5. Classify the outcome
6. Recover once on failure when auto-recovery is enabled
7. Return the authoritative result

Nothing raises past `execute`; every path returns a MutationResult.
"""
import asyncio
from typing import Optional, Sequence

from storefront.config import CartSettings
from storefront.errors import (
    ERROR_MUTATION_IN_PROGRESS,
    ERROR_MUTATION_TIMEOUT,
    ERROR_NO_CART_AFTER_MUTATION,
)
from storefront.logging import get_logger, log_cart_mutation
from .classifier import (
    classify_mutation,
    create_unknown_error,
    expected_quantity_delta,
    is_user_error_only,
)
from .context import CartContextValidator
from .gateway import CartGateway
from .models import (
    CartLineAddInput,
    CartLineUpdateInput,
    CartSnapshot,
    MutationResult,
    MutationState,
    MutationType,
)
from .recovery import MutationFn, RecoveryController, wait_until_settled

logger = get_logger(__name__)


class MutationOrchestrator:
    """Runs cart mutations one at a time and interprets their outcome."""

    def __init__(
        self,
        gateway: CartGateway,
        validator: CartContextValidator,
        settings: CartSettings,
        state: Optional[MutationState] = None,
        recovery: Optional[RecoveryController] = None,
    ):
        self.gateway = gateway
        self.validator = validator
        self.settings = settings
        self.state = state or MutationState()
        self.recovery = recovery or RecoveryController(
            gateway=gateway,
            validator=validator,
            state=self.state,
            settings=settings,
        )
        self._in_flight = False

    @property
    def is_busy(self) -> bool:
        """True while an orchestrated operation is outstanding."""
        return self._in_flight

    async def wait_for_mutation_complete(self) -> None:
        await wait_until_settled(self.gateway, self.settings)

    async def execute(
        self,
        mutation: MutationFn,
        mutation_type: MutationType,
        expected_delta: Optional[int] = None,
    ) -> MutationResult:
        """Run `mutation` under the full orchestration protocol."""
        if self._in_flight:
            return MutationResult.failed([create_unknown_error(ERROR_MUTATION_IN_PROGRESS)])

        self._in_flight = True
        self.state.last_errors = []
        try:
            result = await self._execute_guarded(mutation, mutation_type, expected_delta)
        finally:
            self._in_flight = False

        self.state.last_errors = list(result.errors)
        return result

    async def force_new_cart(self) -> MutationResult:
        """Explicit recreation under the single-flight guard; no replay."""
        if self._in_flight:
            return MutationResult.failed([create_unknown_error(ERROR_MUTATION_IN_PROGRESS)])

        self._in_flight = True
        self.state.last_errors = []
        try:
            result = await self.recovery.force_new_cart()
        except Exception as e:
            logger.error(f"Forced cart recreation raised: {e}", exc_info=True)
            result = MutationResult.failed([create_unknown_error(str(e) or type(e).__name__)])
        finally:
            self._in_flight = False

        self.state.last_errors = list(result.errors)
        return result

    async def _execute_guarded(
        self,
        mutation: MutationFn,
        mutation_type: MutationType,
        expected_delta: Optional[int],
    ) -> MutationResult:
        cart_id = self.gateway.cart.id if self.gateway.cart else None
        try:
            mismatch = await self.validator.mismatch_error()
            if mismatch is not None:
                log_cart_mutation(logger, "executeSafeMutation", cart_id, {"mismatch": mismatch.message}, "warn")
                if self.settings.auto_recover:
                    return await self.recovery.recover(mutation, mutation_type, expected_delta, [mismatch])
                return MutationResult.failed([mismatch])

            before = CartSnapshot.of(self.gateway.cart)

            await mutation()
            await self.wait_for_mutation_complete()

            current_cart = self.gateway.cart
            errors = classify_mutation(
                self.gateway.user_errors,
                before,
                CartSnapshot.of(current_cart),
                mutation_type,
                expected_delta,
                current_cart.id if current_cart else cart_id,
            )

            if errors:
                log_cart_mutation(
                    logger,
                    "executeSafeMutation",
                    cart_id,
                    {"mutationType": mutation_type.value, "errors": [e.code.value for e in errors]},
                    "warn",
                )
                if self._should_recover(errors):
                    return await self.recovery.recover(mutation, mutation_type, expected_delta, errors)
                return MutationResult.failed(errors)

            if current_cart is None:
                return MutationResult.failed([create_unknown_error(ERROR_NO_CART_AFTER_MUTATION)])

            if current_cart.id != cart_id and not await self.validator.has_stored_context():
                # Remote service created the cart on first mutation
                await self.validator.record_creation()

            log_cart_mutation(logger, "executeSafeMutation", current_cart.id, {"mutationType": mutation_type.value})
            return MutationResult.ok(current_cart)

        except asyncio.TimeoutError:
            log_cart_mutation(logger, "executeSafeMutation", cart_id, {"error": "timeout"}, "error")
            return MutationResult.failed([create_unknown_error(ERROR_MUTATION_TIMEOUT)])
        except Exception as e:
            logger.error(f"Cart mutation raised: {e}", exc_info=True)
            return MutationResult.failed([create_unknown_error(str(e) or type(e).__name__)])

    def _should_recover(self, errors) -> bool:
        if not self.settings.auto_recover:
            return False
        if is_user_error_only(errors) and not self.settings.recover_on_user_error:
            # Recreating the cart cannot fix an input the remote service rejected
            return False
        return True

    async def add_lines(self, lines: Sequence[CartLineAddInput]) -> MutationResult:
        lines = list(lines)

        async def mutation() -> None:
            await self.gateway.lines_add(lines)

        return await self.execute(
            mutation,
            MutationType.ADD,
            expected_quantity_delta(MutationType.ADD, lines),
        )

    async def update_lines(self, lines: Sequence[CartLineUpdateInput]) -> MutationResult:
        lines = list(lines)

        async def mutation() -> None:
            await self.gateway.lines_update(lines)

        return await self.execute(mutation, MutationType.UPDATE)

    async def remove_lines(self, line_ids: Sequence[str]) -> MutationResult:
        line_ids = list(line_ids)

        async def mutation() -> None:
            await self.gateway.lines_remove(line_ids)

        return await self.execute(
            mutation,
            MutationType.REMOVE,
            expected_quantity_delta(MutationType.REMOVE, line_ids),
        )
