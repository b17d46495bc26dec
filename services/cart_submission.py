"""
Cart Submission Adapter
Turns a validated bundle selection into storefront cart line items and runs
the prepare + cart exchange.

This is the only component that talks to the outside world. Every external
failure is caught here and normalized into a Notification; nothing
propagates to the caller and the selection is never modified, so the shopper
can retry without re-selecting anything.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote
import logging
import re

import httpx

from schemas.bundle_schemas import AddOn, Bundle
from services.pricing import BundlePricingEngine, Violation, pricing_engine, violation_message
from services.selection_state import SelectionState
from settings import (
    CART_ADD_PATH,
    CART_HTTP_TIMEOUT_SECONDS,
    CART_REDIRECT_PATH,
    CHECKOUT_REDIRECT_PATH,
    PREPARE_PATH_TEMPLATE,
    STOREFRONT_BASE_URL,
    resolve_shop_id,
)

logger = logging.getLogger(__name__)

_NUMERIC_ID = re.compile(r"^[0-9]+$")

ITEM_TYPE_PRODUCT = "Bundle Item"
ITEM_TYPE_ADDON = "Bundle Add-on"
ADDON_TYPE_WRAP = "Gift Wrap"
ADDON_TYPE_CARD = "Gift Card"

GENERIC_FAILURE_MESSAGE = "Failed to add to cart. Please try again."
NOTHING_TO_SUBMIT_MESSAGE = "Nothing to add to the cart. The selected items are not available for purchase yet."


class SubmissionCondition(str, Enum):
    IN_FLIGHT = "IN_FLIGHT"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOTHING_TO_SUBMIT = "NOTHING_TO_SUBMIT"
    PREPARE_FAILED = "PREPARE_FAILED"
    CART_FAILED = "CART_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"


@dataclass(frozen=True)
class Notification:
    """Single user-visible message shape for every submission result."""
    level: str  # "success" | "warning" | "error"
    message: str
    condition: Optional[SubmissionCondition] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "condition": self.condition.value if self.condition else None,
        }


@dataclass(frozen=True)
class CartLineItem:
    purchasable_id: str  # digits only
    properties: Dict[str, str] = field(default_factory=dict)
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.purchasable_id,
            "quantity": self.quantity,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class PrepareResponse:
    discount_code: Optional[str] = None


@dataclass
class SubmissionOutcome:
    success: bool
    notification: Notification
    redirect_url: Optional[str] = None
    line_items: List[CartLineItem] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)

    @property
    def condition(self) -> Optional[SubmissionCondition]:
        return self.notification.condition

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "notification": self.notification.to_dict(),
            "redirect_url": self.redirect_url,
            "line_items": [item.to_dict() for item in self.line_items],
            "violations": [v.value for v in self.violations],
        }


class CartSubmissionError(Exception):
    """External failure raised inside the adapter and caught at its boundary."""

    def __init__(self, condition: SubmissionCondition, message: str):
        super().__init__(message)
        self.condition = condition
        self.message = message


# =============================================================================
# LINE ITEM TRANSLATION
# =============================================================================

def extract_numeric_id(reference: Optional[Any]) -> Optional[str]:
    """
    Trailing numeric id of a purchasable reference.

    "gid://shopify/ProductVariant/123" -> "123", "456" -> "456",
    anything whose last path segment is not all digits -> None.
    """
    if reference is None:
        return None
    tail = str(reference).strip().split("/")[-1]
    if _NUMERIC_ID.match(tail):
        return tail
    return None


def _base_properties(bundle: Bundle, item_type: str) -> Dict[str, str]:
    return {
        "Type": item_type,
        "Bundle ID": str(bundle.id),
        "Bundle Name": bundle.title,
    }


def _addon_line(bundle: Bundle, addon: Optional[AddOn], addon_type: str) -> Optional[CartLineItem]:
    if addon is None or not addon.shopify_variant_id:
        return None
    numeric_id = extract_numeric_id(addon.shopify_variant_id)
    if numeric_id is None:
        logger.debug(f"Skipping {addon_type} {addon.id!r}: no numeric variant id")
        return None
    properties = _base_properties(bundle, ITEM_TYPE_ADDON)
    properties["Add-on Type"] = addon_type
    properties["Add-on Name"] = addon.name
    return CartLineItem(purchasable_id=numeric_id, properties=properties)


def build_line_items(bundle: Bundle, selection: SelectionState) -> List[CartLineItem]:
    """Products in selection order, then wrap, then card. Unresolvable items are skipped."""
    items = []
    for entry in selection.entries:
        product = bundle.find_product(entry.product_id)
        if product is None:
            continue
        variant = product.find_variant(entry.chosen_variant_id)
        reference = variant.id if variant else product.variant_gid
        numeric_id = extract_numeric_id(reference)
        if numeric_id is None:
            logger.debug(f"Skipping product {product.id!r}: reference {reference!r} has no numeric id")
            continue
        items.append(CartLineItem(
            purchasable_id=numeric_id,
            properties=_base_properties(bundle, ITEM_TYPE_PRODUCT),
        ))

    for addon, addon_type in (
        (selection.selected_wrap, ADDON_TYPE_WRAP),
        (selection.selected_card, ADDON_TYPE_CARD),
    ):
        line = _addon_line(bundle, addon, addon_type)
        if line is not None:
            items.append(line)
    return items


def build_prepare_payload(selection: SelectionState) -> Dict[str, Any]:
    return {
        "selectedProductIds": list(selection.selected_ids),
        "selectedVariantMap": selection.variant_map(),
        "selectedWrapId": selection.selected_wrap.id if selection.selected_wrap else None,
        "selectedCardId": selection.selected_card.id if selection.selected_card else None,
        "messageValue": selection.message,
    }


def redirect_url_for(prepare: PrepareResponse) -> str:
    """Checkout with the discount applied when one was issued, else the cart page."""
    if prepare.discount_code:
        return f"{CHECKOUT_REDIRECT_PATH}?discount={quote(prepare.discount_code, safe='')}"
    return CART_REDIRECT_PATH


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


# =============================================================================
# ADAPTER
# =============================================================================

class CartSubmissionAdapter:
    """
    Add-to-cart boundary for one builder.

    At most one submission runs at a time: the in-flight flag is taken before
    any network call and released on every exit path. No retries.
    """

    def __init__(
        self,
        shop_id: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        engine: Optional[BundlePricingEngine] = None,
    ):
        self.shop_id = resolve_shop_id(shop_id)
        self.base_url = (base_url or STOREFRONT_BASE_URL or f"https://{self.shop_id}").rstrip("/")
        self.timeout = timeout if timeout is not None else CART_HTTP_TIMEOUT_SECONDS
        self.engine = engine or pricing_engine
        self._http_client = http_client
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @asynccontextmanager
    async def _submission_slot(self) -> AsyncIterator[None]:
        self._in_flight = True
        try:
            yield
        finally:
            self._in_flight = False

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def submit(self, bundle: Bundle, selection: SelectionState) -> SubmissionOutcome:
        """Validate, translate and submit the selection; never raises for external failures."""
        if self._in_flight:
            return SubmissionOutcome(
                success=False,
                notification=Notification(
                    "warning",
                    "Your bundle is already being added to the cart",
                    SubmissionCondition.IN_FLIGHT,
                ),
            )

        async with self._submission_slot():
            evaluation = self.engine.evaluate(bundle, selection)
            if not evaluation.valid:
                return SubmissionOutcome(
                    success=False,
                    notification=Notification(
                        "warning",
                        violation_message(evaluation.violations[0], bundle),
                        SubmissionCondition.VALIDATION_FAILED,
                    ),
                    violations=list(evaluation.violations),
                )

            line_items = build_line_items(bundle, selection)
            if not line_items:
                return SubmissionOutcome(
                    success=False,
                    notification=Notification(
                        "warning",
                        NOTHING_TO_SUBMIT_MESSAGE,
                        SubmissionCondition.NOTHING_TO_SUBMIT,
                    ),
                )

            try:
                async with self._client() as client:
                    prepared = await self.prepare(client, bundle, selection)
                    await self.add_lines(client, line_items)
            except CartSubmissionError as e:
                logger.warning(f"Bundle {bundle.id} submission failed ({e.condition.value}): {e.message}")
                return SubmissionOutcome(
                    success=False,
                    notification=Notification("error", e.message, e.condition),
                    line_items=line_items,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.error(f"Network error submitting bundle {bundle.id}: {e}")
                return SubmissionOutcome(
                    success=False,
                    notification=Notification(
                        "error", GENERIC_FAILURE_MESSAGE, SubmissionCondition.NETWORK_ERROR
                    ),
                    line_items=line_items,
                )

        logger.info(
            f"Bundle {bundle.id} added to cart: {len(line_items)} line items, "
            f"discount={'yes' if prepared.discount_code else 'no'}"
        )
        return SubmissionOutcome(
            success=True,
            notification=Notification("success", "Bundle added to cart successfully!"),
            redirect_url=redirect_url_for(prepared),
            line_items=line_items,
        )

    async def prepare(
        self, client: httpx.AsyncClient, bundle: Bundle, selection: SelectionState
    ) -> PrepareResponse:
        path = PREPARE_PATH_TEMPLATE.format(bundle_id=quote(str(bundle.id), safe=""))
        response = await client.post(
            f"{self.base_url}{path}",
            params={"shop": self.shop_id, "prefer": "discount"},
            json=build_prepare_payload(selection),
        )
        payload = _json_or_empty(response)
        if not response.is_success:
            error = payload.get("error") or f"HTTP {response.status_code}"
            raise CartSubmissionError(
                SubmissionCondition.PREPARE_FAILED, f"Failed to prepare bundle: {error}"
            )
        code = payload.get("discountCode")
        if not isinstance(code, str) or not code.strip():
            if code:
                logger.warning(f"Ignoring unusable discount code for bundle {bundle.id}: {code!r}")
            code = None
        return PrepareResponse(discount_code=code)

    async def add_lines(self, client: httpx.AsyncClient, line_items: List[CartLineItem]) -> None:
        response = await client.post(
            f"{self.base_url}{CART_ADD_PATH}",
            json={"items": [item.to_dict() for item in line_items]},
        )
        if not response.is_success:
            description = _json_or_empty(response).get("description") or "Unknown error"
            raise CartSubmissionError(
                SubmissionCondition.CART_FAILED, f"Failed to add to cart: {description}"
            )
