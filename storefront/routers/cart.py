"""
Cart Router

Caller-facing cart endpoints. Every route goes through the session's
SharedCartAuthority; mutation failures are part of the response body
(`result.success == false`), not HTTP errors.
"""
from fastapi import APIRouter, Depends, HTTPException

from storefront.cart import MutationResult, SharedCartAuthority
from storefront.errors import ERROR_INTERNAL
from storefront.logging import get_logger
from .deps import get_session_authority
from .models import AddMultipleRequest, AddToCartRequest, UpdateLineRequest

logger = get_logger(__name__)

router = APIRouter(tags=["cart"])


def _format_mutation_response(result: MutationResult, authority: SharedCartAuthority) -> dict:
    return {
        "result": result.to_dict(),
        "state": authority.snapshot(),
    }


@router.get("/cart")
async def get_cart(authority: SharedCartAuthority = Depends(get_session_authority)):
    """Current cart state as every consumer of the session sees it."""
    return authority.snapshot()


@router.post("/cart/add")
async def add_to_cart(
    request: AddToCartRequest,
    authority: SharedCartAuthority = Depends(get_session_authority),
):
    """Add merchandise (raises the quantity of an existing line)."""
    try:
        result = await authority.add_to_cart(request.merchandise_id, request.quantity)
    except Exception as e:
        logger.error(f"Failed to add to cart: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=ERROR_INTERNAL)
    return _format_mutation_response(result, authority)


@router.patch("/cart/line")
async def update_cart_line(
    request: UpdateLineRequest,
    authority: SharedCartAuthority = Depends(get_session_authority),
):
    """Update line quantity (0 = remove)."""
    try:
        result = await authority.update_quantity(request.line_id, request.quantity)
    except Exception as e:
        logger.error(f"Failed to update cart line: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=ERROR_INTERNAL)
    return _format_mutation_response(result, authority)


@router.delete("/cart/line")
async def remove_cart_line(
    line_id: str,
    authority: SharedCartAuthority = Depends(get_session_authority),
):
    """Remove a line."""
    try:
        result = await authority.remove_from_cart(line_id)
    except Exception as e:
        logger.error(f"Failed to remove cart line: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=ERROR_INTERNAL)
    return _format_mutation_response(result, authority)


@router.post("/cart/batch")
async def add_multiple_to_cart(
    request: AddMultipleRequest,
    authority: SharedCartAuthority = Depends(get_session_authority),
):
    """Add several items at once."""
    items = [item.model_dump() for item in request.items]
    try:
        result = await authority.add_multiple_to_cart(items)
    except Exception as e:
        logger.error(f"Failed to add items to cart: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=ERROR_INTERNAL)
    return _format_mutation_response(result, authority)


@router.post("/cart/recreate")
async def recreate_cart(authority: SharedCartAuthority = Depends(get_session_authority)):
    """Discard the current cart and start a fresh one."""
    try:
        result = await authority.force_new_cart()
    except Exception as e:
        logger.error(f"Failed to recreate cart: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=ERROR_INTERNAL)
    return _format_mutation_response(result, authority)


@router.delete("/cart/errors")
async def clear_cart_errors(authority: SharedCartAuthority = Depends(get_session_authority)):
    """Clear the visible error list."""
    authority.clear_errors()
    return authority.snapshot()
