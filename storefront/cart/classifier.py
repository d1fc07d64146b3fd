"""
Mutation outcome classification.

The remote cart API answers HTTP 200 even when a mutation failed. The only
failure signals are:
1. `userErrors` in the response (explicit errors)
2. An unchanged `updatedAt` / `totalQuantity` pair (silent no-ops)

Everything in this module is pure: no I/O, no shared state.
"""
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .models import (
    CartContext,
    CartSnapshot,
    MutationError,
    MutationErrorCode,
    MutationType,
)


def extract_user_errors(
    user_errors: Optional[Iterable[Mapping[str, Any]]],
) -> List[MutationError]:
    """Turn remote `userErrors` items into USER_ERROR values, verbatim."""
    if not user_errors:
        return []

    errors = []
    for item in user_errors:
        field_path = item.get("field")
        if isinstance(field_path, (list, tuple)):
            field_path = ".".join(str(part) for part in field_path)
        errors.append(MutationError(
            code=MutationErrorCode.USER_ERROR,
            message=item.get("message") or "Cart mutation rejected",
            field=field_path or None,
            original_error=dict(item),
        ))
    return errors


def expected_quantity_delta(
    mutation_type: MutationType,
    lines: Sequence[Any],
) -> Optional[int]:
    """
    Quantity change a mutation should produce.

    add: +sum of requested quantities; remove: -number of removed lines;
    update: no fixed expectation (None).
    """
    if mutation_type == MutationType.ADD:
        return sum(line.quantity for line in lines)
    if mutation_type == MutationType.REMOVE:
        return -len(lines)
    return None


def detect_no_op_mutation(
    before: Optional[CartSnapshot],
    after: Optional[CartSnapshot],
    mutation_type: MutationType,
    expected_delta: Optional[int] = None,
) -> bool:
    """
    Decide whether a mutation was silently ignored.

    A changed `updated_at` always means the mutation landed. With an
    unchanged timestamp, add/remove are cross-checked against the expected
    quantity delta; updates (and calls without an expectation) rely on the
    timestamp alone, so an update that legitimately leaves the timestamp
    untouched is indistinguishable from a no-op.
    """
    if before is None or after is None:
        # Can't compare - don't flag as no-op
        return False

    if before.updated_at != after.updated_at:
        return False

    if mutation_type == MutationType.UPDATE or expected_delta is None:
        return True

    actual_delta = after.total_quantity - before.total_quantity
    return actual_delta != expected_delta


def create_stale_cart_error(cart_id: Optional[str]) -> MutationError:
    return MutationError(
        code=MutationErrorCode.STALE_CART,
        message=f"Cart {cart_id or 'unknown'} is stale or expired. A new cart will be created.",
    )


def create_no_op_error() -> MutationError:
    return MutationError(
        code=MutationErrorCode.NO_OP_MUTATION,
        message="Mutation was silently ignored by the cart service. This typically means the cart is stale.",
    )


def create_context_mismatch_error(
    expected: CartContext,
    country_code: str,
    language_code: str,
) -> MutationError:
    return MutationError(
        code=MutationErrorCode.CONTEXT_MISMATCH,
        message=(
            f"Cart was created for {expected.country_code}/{expected.language_code} "
            f"but current context is {country_code}/{language_code}. Cart will be recreated."
        ),
    )


def create_recovery_failed_error(original_errors: Sequence[MutationError]) -> MutationError:
    details = "; ".join(error.message for error in original_errors)
    return MutationError(
        code=MutationErrorCode.RECOVERY_FAILED,
        message=f"Failed to recover cart after {len(original_errors)} error(s): {details}",
    )


def create_unknown_error(message: str) -> MutationError:
    return MutationError(code=MutationErrorCode.UNKNOWN_ERROR, message=message)


def classify_mutation(
    user_errors: Optional[Iterable[Mapping[str, Any]]],
    before: Optional[CartSnapshot],
    after: Optional[CartSnapshot],
    mutation_type: MutationType,
    expected_delta: Optional[int],
    cart_id: Optional[str],
) -> List[MutationError]:
    """
    Classify a finished mutation.

    Returns an empty list when the mutation took effect. Explicit errors win
    over the snapshot heuristic; a detected no-op yields a STALE_CART
    diagnostic followed by NO_OP_MUTATION.
    """
    explicit = extract_user_errors(user_errors)
    if explicit:
        return explicit

    if detect_no_op_mutation(before, after, mutation_type, expected_delta):
        return [create_stale_cart_error(cart_id), create_no_op_error()]

    return []


def is_user_error_only(errors: Sequence[MutationError]) -> bool:
    """True when every error is an explicit rejection of the input."""
    return bool(errors) and all(e.code == MutationErrorCode.USER_ERROR for e in errors)
