"""
Tests for mutation outcome classification
"""

from storefront.cart import (
    CartContext,
    CartLineAddInput,
    CartSnapshot,
    MutationError,
    MutationErrorCode,
    MutationType,
)
from storefront.cart.classifier import (
    classify_mutation,
    create_context_mismatch_error,
    create_recovery_failed_error,
    create_stale_cart_error,
    detect_no_op_mutation,
    expected_quantity_delta,
    extract_user_errors,
    is_user_error_only,
)


BEFORE = CartSnapshot(updated_at="2025-01-01T00:00:00Z", total_quantity=2)


class TestExtractUserErrors:
    """Tests for extract_user_errors."""

    def test_empty(self):
        assert extract_user_errors(None) == []
        assert extract_user_errors([]) == []

    def test_field_path_joined(self):
        """Test field list joined with dots and message kept verbatim."""
        errors = extract_user_errors([
            {"field": ["lines", "0", "quantity"], "message": "Quantity exceeds stock", "code": "INVALID"},
        ])

        assert len(errors) == 1
        assert errors[0].code == MutationErrorCode.USER_ERROR
        assert errors[0].field == "lines.0.quantity"
        assert errors[0].message == "Quantity exceeds stock"
        assert errors[0].original_error["code"] == "INVALID"

    def test_missing_field(self):
        """Test an error without a field path."""
        errors = extract_user_errors([{"field": None, "message": "Cart not found"}])

        assert errors[0].field is None


class TestExpectedQuantityDelta:
    """Tests for expected_quantity_delta."""

    def test_add(self):
        lines = [CartLineAddInput("v1", 2), CartLineAddInput("v2", 3)]

        assert expected_quantity_delta(MutationType.ADD, lines) == 5

    def test_remove(self):
        assert expected_quantity_delta(MutationType.REMOVE, ["l1", "l2"]) == -2

    def test_update(self):
        assert expected_quantity_delta(MutationType.UPDATE, ["anything"]) is None


class TestDetectNoOp:
    """Tests for detect_no_op_mutation."""

    def test_missing_snapshot_is_not_no_op(self):
        """Test that a missing snapshot never flags a no-op."""
        assert detect_no_op_mutation(None, BEFORE, MutationType.ADD, 1) is False
        assert detect_no_op_mutation(BEFORE, None, MutationType.ADD, 1) is False

    def test_changed_timestamp_is_not_no_op(self):
        """Test a changed timestamp means the mutation landed."""
        after = CartSnapshot(updated_at="2025-01-01T00:00:01Z", total_quantity=2)

        assert detect_no_op_mutation(BEFORE, after, MutationType.ADD, 1) is False

    def test_add_unchanged(self):
        """Test an ignored add."""
        assert detect_no_op_mutation(BEFORE, BEFORE, MutationType.ADD, 1) is True

    def test_add_with_matching_delta_and_same_timestamp(self):
        """Test quantity moved by the expected delta under a stable timestamp."""
        after = CartSnapshot(updated_at=BEFORE.updated_at, total_quantity=3)

        assert detect_no_op_mutation(BEFORE, after, MutationType.ADD, 1) is False

    def test_remove_unchanged(self):
        assert detect_no_op_mutation(BEFORE, BEFORE, MutationType.REMOVE, -1) is True

    def test_update_relies_on_timestamp_only(self):
        """Test that an update with a stable timestamp is a no-op even if quantity moved."""
        after = CartSnapshot(updated_at=BEFORE.updated_at, total_quantity=5)

        assert detect_no_op_mutation(BEFORE, after, MutationType.UPDATE) is True

    def test_no_expectation_relies_on_timestamp_only(self):
        after = CartSnapshot(updated_at=BEFORE.updated_at, total_quantity=3)

        assert detect_no_op_mutation(BEFORE, after, MutationType.ADD, None) is True


class TestClassifyMutation:
    """Tests for classify_mutation."""

    def test_success(self):
        after = CartSnapshot(updated_at="2025-01-01T00:00:01Z", total_quantity=3)

        assert classify_mutation([], BEFORE, after, MutationType.ADD, 1, "cart-1") == []

    def test_user_errors_win(self):
        """Test explicit errors take precedence over the snapshot heuristic."""
        errors = classify_mutation(
            [{"field": ["lines"], "message": "Invalid merchandise"}],
            BEFORE,
            BEFORE,
            MutationType.ADD,
            1,
            "cart-1",
        )

        assert [e.code for e in errors] == [MutationErrorCode.USER_ERROR]

    def test_no_op_yields_stale_then_no_op(self):
        """Test the diagnostic pair for an ignored mutation."""
        errors = classify_mutation([], BEFORE, BEFORE, MutationType.ADD, 1, "cart-1")

        assert [e.code for e in errors] == [
            MutationErrorCode.STALE_CART,
            MutationErrorCode.NO_OP_MUTATION,
        ]
        assert "cart-1" in errors[0].message


class TestErrorConstructors:
    """Tests for the error constructors."""

    def test_stale_cart_unknown_id(self):
        assert "unknown" in create_stale_cart_error(None).message

    def test_context_mismatch_names_both_contexts(self):
        error = create_context_mismatch_error(CartContext("US", "EN"), "CA", "FR")

        assert error.code == MutationErrorCode.CONTEXT_MISMATCH
        assert "US/EN" in error.message
        assert "CA/FR" in error.message

    def test_recovery_failed_summarizes_errors(self):
        error = create_recovery_failed_error([
            MutationError(MutationErrorCode.STALE_CART, "stale"),
            MutationError(MutationErrorCode.NO_OP_MUTATION, "ignored"),
        ])

        assert error.code == MutationErrorCode.RECOVERY_FAILED
        assert error.message == "Failed to recover cart after 2 error(s): stale; ignored"


class TestIsUserErrorOnly:
    """Tests for is_user_error_only."""

    def test_empty_is_false(self):
        assert is_user_error_only([]) is False

    def test_only_user_errors(self):
        assert is_user_error_only([MutationError(MutationErrorCode.USER_ERROR, "bad")]) is True

    def test_mixed(self):
        assert is_user_error_only([
            MutationError(MutationErrorCode.USER_ERROR, "bad"),
            MutationError(MutationErrorCode.STALE_CART, "stale"),
        ]) is False
