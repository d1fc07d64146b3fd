"""Cart models: remote cart state, session context and mutation outcomes."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from storefront.money import to_decimal, to_float


class MutationErrorCode(str, Enum):
    """Closed set of cart mutation error kinds."""
    USER_ERROR = "USER_ERROR"  # Remote service returned explicit userErrors
    STALE_CART = "STALE_CART"  # Cart id is invalid or expired
    NO_OP_MUTATION = "NO_OP_MUTATION"  # Mutation was silently ignored
    CONTEXT_MISMATCH = "CONTEXT_MISMATCH"  # Cart created under another locale
    RECOVERY_FAILED = "RECOVERY_FAILED"  # Recreate-and-replay did not succeed
    UNKNOWN_ERROR = "UNKNOWN_ERROR"  # Transport failure or unexpected exception


class MutationType(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


class CartStatus(str, Enum):
    """Status of the gateway's view of the remote cart."""
    UNINITIALIZED = "uninitialized"
    CREATING = "creating"
    FETCHING = "fetching"
    UPDATING = "updating"
    IDLE = "idle"

    @property
    def is_settled(self) -> bool:
        """True when no remote operation is outstanding."""
        return self in (CartStatus.IDLE, CartStatus.UNINITIALIZED)


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency_code: str = "USD"

    def to_dict(self) -> dict:
        return {"amount": to_float(self.amount), "currencyCode": self.currency_code}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["Money"]:
        if not data:
            return None
        return cls(
            amount=to_decimal(data.get("amount")),
            currency_code=data.get("currencyCode") or "USD",
        )


@dataclass(frozen=True)
class CartCost:
    """Monetary breakdown of a cart as reported by the remote service."""
    subtotal: Optional[Money] = None
    total: Optional[Money] = None
    total_tax: Optional[Money] = None
    total_duty: Optional[Money] = None

    def to_dict(self) -> dict:
        return {
            "subtotalAmount": self.subtotal.to_dict() if self.subtotal else None,
            "totalAmount": self.total.to_dict() if self.total else None,
            "totalTaxAmount": self.total_tax.to_dict() if self.total_tax else None,
            "totalDutyAmount": self.total_duty.to_dict() if self.total_duty else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "CartCost":
        data = data or {}
        return cls(
            subtotal=Money.from_dict(data.get("subtotalAmount")),
            total=Money.from_dict(data.get("totalAmount")),
            total_tax=Money.from_dict(data.get("totalTaxAmount")),
            total_duty=Money.from_dict(data.get("totalDutyAmount")),
        )


@dataclass(frozen=True)
class CartLine:
    """
    Single line of a remote cart.

    The line id is issued by the remote service and is only valid for the
    cart it was issued under.
    """
    id: str
    merchandise_id: str
    quantity: int
    cost: Optional[CartCost] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchandise": {"id": self.merchandise_id},
            "quantity": self.quantity,
            "cost": self.cost.to_dict() if self.cost else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        merchandise = data.get("merchandise") or {}
        cost = data.get("cost")
        return cls(
            id=data["id"],
            merchandise_id=merchandise.get("id", ""),
            quantity=int(data.get("quantity") or 0),
            cost=CartCost.from_dict(cost) if cost else None,
        )


@dataclass(frozen=True)
class Cart:
    """Cached copy of the authoritative remote cart."""
    id: str
    lines: List[CartLine] = field(default_factory=list)
    cost: CartCost = field(default_factory=CartCost)
    checkout_url: Optional[str] = None
    updated_at: str = ""
    created_at: str = ""
    reported_total_quantity: Optional[int] = None

    @property
    def total_quantity(self) -> int:
        """Quantity reported by the remote service, or the sum of lines."""
        if self.reported_total_quantity is not None:
            return self.reported_total_quantity
        return sum(line.quantity for line in self.lines)

    def find_line(self, merchandise_id: str) -> Optional[CartLine]:
        """First line holding the given merchandise, if any."""
        return next(
            (line for line in self.lines if line.merchandise_id == merchandise_id),
            None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lines": [line.to_dict() for line in self.lines],
            "cost": self.cost.to_dict(),
            "checkoutUrl": self.checkout_url,
            "updatedAt": self.updated_at,
            "createdAt": self.created_at,
            "totalQuantity": self.total_quantity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """
        Create from a Storefront cart payload.

        Lines may arrive as a plain list or as a connection ({"nodes": [...]}
        or {"edges": [{"node": ...}]}). Zero-quantity lines are dropped since
        a zero line is equivalent to absence.
        """
        raw_lines = data.get("lines") or []
        if isinstance(raw_lines, dict):
            if "nodes" in raw_lines:
                raw_lines = raw_lines["nodes"] or []
            else:
                raw_lines = [edge["node"] for edge in raw_lines.get("edges") or []]

        lines = [CartLine.from_dict(line) for line in raw_lines]
        total_quantity = data.get("totalQuantity")
        return cls(
            id=data["id"],
            lines=[line for line in lines if line.quantity > 0],
            cost=CartCost.from_dict(data.get("cost")),
            checkout_url=data.get("checkoutUrl"),
            updated_at=data.get("updatedAt") or "",
            created_at=data.get("createdAt") or "",
            reported_total_quantity=int(total_quantity) if total_quantity is not None else None,
        )


@dataclass(frozen=True)
class CartSnapshot:
    """The two fields used to decide whether a mutation took effect."""
    updated_at: str
    total_quantity: int

    @classmethod
    def of(cls, cart: Optional[Cart]) -> Optional["CartSnapshot"]:
        if cart is None:
            return None
        return cls(updated_at=cart.updated_at, total_quantity=cart.total_quantity)


@dataclass(frozen=True)
class CartContext:
    """Locale a cart was created under."""
    country_code: str
    language_code: str
    created_at: str = ""

    @classmethod
    def now(cls, country_code: str, language_code: str) -> "CartContext":
        return cls(
            country_code=country_code,
            language_code=language_code,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def matches(self, country_code: str, language_code: str) -> bool:
        return self.country_code == country_code and self.language_code == language_code

    def to_dict(self) -> dict:
        return {
            "countryCode": self.country_code,
            "languageCode": self.language_code,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartContext":
        return cls(
            country_code=data["countryCode"],
            language_code=data["languageCode"],
            created_at=data.get("createdAt", ""),
        )


@dataclass(frozen=True)
class MutationError:
    """Structured error from a cart mutation. Returned as data, never raised."""
    code: MutationErrorCode
    message: str
    field: Optional[str] = None
    original_error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        data = {"code": self.code.value, "message": self.message}
        if self.field:
            data["field"] = self.field
        return data


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of an orchestrated cart operation.

    Always carries either success or a non-empty error list, never both.
    `cart` is the authoritative state to replace (not merge) local state with.
    """
    success: bool
    cart: Optional[Cart] = None
    errors: List[MutationError] = field(default_factory=list)
    was_recovered: bool = False
    new_cart_id: Optional[str] = None

    def __post_init__(self):
        if self.success and self.errors:
            raise ValueError("A successful result cannot carry errors")
        if not self.success and not self.errors:
            raise ValueError("A failed result must carry at least one error")

    @classmethod
    def ok(
        cls,
        cart: Optional[Cart],
        was_recovered: bool = False,
        new_cart_id: Optional[str] = None,
    ) -> "MutationResult":
        return cls(success=True, cart=cart, was_recovered=was_recovered, new_cart_id=new_cart_id)

    @classmethod
    def failed(cls, errors: List[MutationError], cart: Optional[Cart] = None) -> "MutationResult":
        return cls(success=False, cart=cart, errors=list(errors))

    @property
    def error_codes(self) -> List[MutationErrorCode]:
        return [error.code for error in self.errors]

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "cart": self.cart.to_dict() if self.cart else None,
            "errors": [error.to_dict() for error in self.errors],
            "wasRecovered": self.was_recovered,
            "newCartId": self.new_cart_id,
        }


@dataclass(frozen=True)
class CartLineAddInput:
    merchandise_id: str
    quantity: int
    attributes: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"merchandiseId": self.merchandise_id, "quantity": self.quantity}
        if self.attributes:
            data["attributes"] = self.attributes
        return data


@dataclass(frozen=True)
class CartLineUpdateInput:
    id: str
    quantity: int
    attributes: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"id": self.id, "quantity": self.quantity}
        if self.attributes:
            data["attributes"] = self.attributes
        return data


@dataclass
class MutationState:
    """
    Observable flags of the mutation layer.

    Owned by the orchestrator; the recovery controller toggles
    `is_recovering` and the authority exposes both to consumers.
    """
    is_recovering: bool = False
    last_errors: List[MutationError] = field(default_factory=list)
