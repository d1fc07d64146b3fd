"""
Mutation Gateway - adapter over the remote cart service.

The gateway keeps the latest cart it has seen, the status of the last
operation and the `userErrors` of the last mutation. Callers observe those
after an operation finishes; the gateway itself never interprets results.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from storefront.config import STOREFRONT_ACCESS_TOKEN, storefront_graphql_url
from storefront.errors import StorefrontAPIError
from storefront.logging import get_logger, sanitize_id_for_logging
from . import queries
from .models import Cart, CartLineAddInput, CartLineUpdateInput, CartStatus

logger = get_logger(__name__)


class CartGateway(ABC):
    """Contract every cart transport implements."""

    @property
    @abstractmethod
    def status(self) -> CartStatus:
        """Status of the most recent remote operation."""

    @property
    @abstractmethod
    def cart(self) -> Optional[Cart]:
        """Latest cart reported by the remote service."""

    @property
    @abstractmethod
    def user_errors(self) -> List[Dict[str, Any]]:
        """Raw `userErrors` of the most recent mutation."""

    @abstractmethod
    async def cart_create(self) -> None:
        """Ask the remote service for a brand-new, empty cart."""

    @abstractmethod
    async def lines_add(self, lines: Sequence[CartLineAddInput]) -> None:
        ...

    @abstractmethod
    async def lines_update(self, lines: Sequence[CartLineUpdateInput]) -> None:
        ...

    @abstractmethod
    async def lines_remove(self, line_ids: Sequence[str]) -> None:
        ...

    @abstractmethod
    async def fetch(self) -> Optional[Cart]:
        """Re-read the authoritative cart."""

    def set_locale(self, country_code: str, language_code: str) -> None:
        """Locale applied to subsequent operations."""
        self.country_code = country_code
        self.language_code = language_code

    async def aclose(self) -> None:
        """Release transport resources."""


# Connection-level failures mean the request never reached the remote
# service, so retrying cannot duplicate a mutation.
_RETRYABLE_TRANSPORT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class StorefrontCartGateway(CartGateway):
    """
    Cart gateway talking GraphQL to the Storefront API.

    Every operation is issued `@inContext(country, language)`. Adding lines
    without a cart id lets the remote service create the cart with those
    lines, mirroring how the storefront's first add-to-cart works.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        country_code: str,
        language_code: str,
        cart_id: Optional[str] = None,
        endpoint: Optional[str] = None,
        access_token: Optional[str] = None,
        owns_client: bool = False,
    ):
        self.client = client
        self.country_code = country_code
        self.language_code = language_code
        self.endpoint = endpoint or storefront_graphql_url()
        self.access_token = access_token if access_token is not None else STOREFRONT_ACCESS_TOKEN
        self.cart_id = cart_id
        self.owns_client = owns_client
        self._cart: Optional[Cart] = None
        self._status = CartStatus.UNINITIALIZED
        self._user_errors: List[Dict[str, Any]] = []

    @property
    def status(self) -> CartStatus:
        return self._status

    @property
    def cart(self) -> Optional[Cart]:
        return self._cart

    @property
    def user_errors(self) -> List[Dict[str, Any]]:
        return list(self._user_errors)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(_RETRYABLE_TRANSPORT_ERRORS),
        reraise=True,
    )
    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        return await self.client.post(
            self.endpoint,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Storefront-Access-Token": self.access_token,
            },
        )

    async def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL document and return its `data` object."""
        variables = {
            **variables,
            "country": self.country_code,
            "language": self.language_code,
        }
        response = await self._post({"query": query, "variables": variables})

        if response.status_code >= 400:
            raise StorefrontAPIError(
                f"Storefront API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        body = response.json()
        if body.get("errors"):
            messages = "; ".join(err.get("message", "unknown") for err in body["errors"])
            raise StorefrontAPIError(f"Storefront API error: {messages}", status_code=response.status_code)

        return body.get("data") or {}

    async def _mutate(
        self,
        status: CartStatus,
        field: str,
        query: str,
        variables: Dict[str, Any],
    ) -> None:
        self._status = status
        self._user_errors = []
        try:
            data = await self._execute(query, variables)
            payload = data.get(field) or {}
            self._user_errors = payload.get("userErrors") or []
            cart_data = payload.get("cart")
            if cart_data:
                self._cart = Cart.from_dict(cart_data)
                self.cart_id = self._cart.id
        finally:
            self._status = CartStatus.IDLE

    async def cart_create(self) -> None:
        # A failed creation must not leave the previous cart visible
        self._cart = None
        self.cart_id = None
        await self._mutate(
            CartStatus.CREATING,
            "cartCreate",
            queries.CART_CREATE_MUTATION,
            {"input": {}},
        )
        logger.debug(f"cartCreate issued, cart={sanitize_id_for_logging(self.cart_id)}")

    async def lines_add(self, lines: Sequence[CartLineAddInput]) -> None:
        line_inputs = [line.to_dict() for line in lines]
        if not self.cart_id:
            await self._mutate(
                CartStatus.CREATING,
                "cartCreate",
                queries.CART_CREATE_MUTATION,
                {"input": {"lines": line_inputs}},
            )
            return

        await self._mutate(
            CartStatus.UPDATING,
            "cartLinesAdd",
            queries.CART_LINES_ADD_MUTATION,
            {"cartId": self.cart_id, "lines": line_inputs},
        )

    async def lines_update(self, lines: Sequence[CartLineUpdateInput]) -> None:
        await self._mutate(
            CartStatus.UPDATING,
            "cartLinesUpdate",
            queries.CART_LINES_UPDATE_MUTATION,
            {"cartId": self.cart_id, "lines": [line.to_dict() for line in lines]},
        )

    async def lines_remove(self, line_ids: Sequence[str]) -> None:
        await self._mutate(
            CartStatus.UPDATING,
            "cartLinesRemove",
            queries.CART_LINES_REMOVE_MUTATION,
            {"cartId": self.cart_id, "lineIds": list(line_ids)},
        )

    async def fetch(self) -> Optional[Cart]:
        if not self.cart_id:
            return None

        self._status = CartStatus.FETCHING
        try:
            data = await self._execute(queries.CART_QUERY, {"cartId": self.cart_id})
        finally:
            self._status = CartStatus.IDLE

        cart_data = data.get("cart")
        if not cart_data:
            logger.warning(
                f"Cart {sanitize_id_for_logging(self.cart_id)} no longer exists on the remote service"
            )
            self._cart = None
            self.cart_id = None
            return None

        self._cart = Cart.from_dict(cart_data)
        return self._cart

    async def aclose(self) -> None:
        if self.owns_client:
            await self.client.aclose()
