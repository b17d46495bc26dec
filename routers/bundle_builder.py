"""
Bundle Builder Router
Stateless price quote for a bundle selection
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
import logging

from schemas.bundle_schemas import Bundle, normalize_bundle_data
from services.cart_submission import build_line_items
from services.pricing import pricing_engine, violation_message
from services.selection_state import SelectionState

logger = logging.getLogger(__name__)
router = APIRouter()


class SelectionPayload(BaseModel):
    selectedProductIds: List[str] = []
    selectedVariantMap: Dict[str, str] = {}
    selectedWrapId: Optional[str] = None
    selectedCardId: Optional[str] = None
    messageValue: Optional[str] = None


class QuoteRequest(BaseModel):
    bundle: Dict[str, Any]
    selection: SelectionPayload = SelectionPayload()


def build_selection(bundle: Bundle, payload: SelectionPayload) -> SelectionState:
    """Replay a posted selection through the same operations the shopper uses."""
    state = SelectionState.empty(bundle)
    for product_id in payload.selectedProductIds:
        state = state.select_product(product_id, payload.selectedVariantMap.get(product_id))
    return (
        state.choose_wrap(payload.selectedWrapId)
        .choose_card(payload.selectedCardId)
        .set_message(payload.messageValue)
    )


@router.post("/bundle-builder/quote")
async def quote_bundle(request: QuoteRequest):
    """Price and validate a selection, and preview the cart lines it would produce"""
    bundle = normalize_bundle_data(request.bundle)
    if bundle is None or not bundle.id:
        raise HTTPException(status_code=400, detail="Bundle payload must include an id")

    selection = build_selection(bundle, request.selection)
    evaluation = pricing_engine.evaluate(bundle, selection)
    line_items = build_line_items(bundle, selection)

    logger.info(
        f"Quoted bundle {bundle.id}: items={selection.count} "
        f"price={evaluation.unit_price_cents} valid={evaluation.valid}"
    )
    return {
        "bundleId": bundle.id,
        "unitPriceCents": evaluation.unit_price_cents,
        "savingsCents": evaluation.savings_cents,
        "subtotalCents": evaluation.subtotal_cents,
        "valid": evaluation.valid,
        "violations": [v.value for v in evaluation.violations],
        "messages": [violation_message(v, bundle) for v in evaluation.violations],
        "selectedProductIds": list(selection.selected_ids),
        "lineItems": [item.to_dict() for item in line_items],
    }
