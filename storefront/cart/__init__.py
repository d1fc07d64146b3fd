"""Cart package: models, outcome classification, orchestration and the shared authority."""
from .models import (
    Cart,
    CartContext,
    CartCost,
    CartLine,
    CartLineAddInput,
    CartLineUpdateInput,
    CartSnapshot,
    CartStatus,
    Money,
    MutationError,
    MutationErrorCode,
    MutationResult,
    MutationState,
    MutationType,
)
from .context import CartContextValidator, CartSessionStore
from .gateway import CartGateway, StorefrontCartGateway
from .recovery import RecoveryController
from .orchestrator import MutationOrchestrator
from .authority import CartAuthorityRegistry, SharedCartAuthority

__all__ = [
    "Cart",
    "CartContext",
    "CartCost",
    "CartLine",
    "CartLineAddInput",
    "CartLineUpdateInput",
    "CartSnapshot",
    "CartStatus",
    "Money",
    "MutationError",
    "MutationErrorCode",
    "MutationResult",
    "MutationState",
    "MutationType",
    "CartContextValidator",
    "CartSessionStore",
    "CartGateway",
    "StorefrontCartGateway",
    "RecoveryController",
    "MutationOrchestrator",
    "CartAuthorityRegistry",
    "SharedCartAuthority",
]
