"""
Bundle Builder Session
Exclusive owner of one shopper's Selection State for an open bundle.

Each shopper operation swaps in the next state, re-runs the pricing engine
and publishes the evaluation to subscribers. Presentation subscribes to
evaluations; it never computes prices itself.
"""
from __future__ import annotations

from typing import Callable, List, Optional
import logging

from schemas.bundle_schemas import Bundle
from services.cart_submission import CartSubmissionAdapter, SubmissionOutcome
from services.pricing import BundlePricingEngine, PriceEvaluation, pricing_engine
from services.selection_state import SelectionState

logger = logging.getLogger(__name__)

Subscriber = Callable[[SelectionState, PriceEvaluation], None]


class BundleBuilderSession:
    def __init__(
        self,
        bundle: Bundle,
        adapter: Optional[CartSubmissionAdapter] = None,
        engine: Optional[BundlePricingEngine] = None,
    ):
        self.bundle = bundle
        self.engine = engine or pricing_engine
        self.adapter = adapter or CartSubmissionAdapter(engine=self.engine)
        self._state = SelectionState.empty(bundle)
        self._evaluation = self.engine.evaluate(bundle, self._state)
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def evaluation(self) -> PriceEvaluation:
        return self._evaluation

    @property
    def submitting(self) -> bool:
        """True while add-to-cart is in flight (the trigger should stay disabled)."""
        return self.adapter.in_flight

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a listener and push the current evaluation to it. Returns an unsubscribe hook."""
        self._subscribers.append(subscriber)
        subscriber(self._state, self._evaluation)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _apply(self, next_state: SelectionState) -> PriceEvaluation:
        if next_state is self._state:
            return self._evaluation
        self._state = next_state
        self._evaluation = self.engine.evaluate(self.bundle, next_state)
        for subscriber in list(self._subscribers):
            subscriber(self._state, self._evaluation)
        return self._evaluation

    def select_product(self, product_id: str, variant_id: Optional[str] = None) -> PriceEvaluation:
        return self._apply(self._state.select_product(product_id, variant_id))

    def deselect_product(self, product_id: str) -> PriceEvaluation:
        return self._apply(self._state.deselect_product(product_id))

    def toggle_product(self, product_id: str) -> PriceEvaluation:
        return self._apply(self._state.toggle_product(product_id))

    def choose_variant(self, product_id: str, variant_id: Optional[str]) -> PriceEvaluation:
        return self._apply(self._state.choose_variant(product_id, variant_id))

    def choose_wrap(self, wrap_id: Optional[str]) -> PriceEvaluation:
        return self._apply(self._state.choose_wrap(wrap_id))

    def choose_card(self, card_id: Optional[str]) -> PriceEvaluation:
        return self._apply(self._state.choose_card(card_id))

    def set_message(self, message: Optional[str]) -> PriceEvaluation:
        return self._apply(self._state.set_message(message))

    async def add_to_cart(self) -> SubmissionOutcome:
        outcome = await self.adapter.submit(self.bundle, self._state)
        if not outcome.success:
            logger.info(
                f"Add to cart refused for bundle {self.bundle.id}: "
                f"{outcome.condition.value if outcome.condition else 'unknown'}"
            )
        return outcome
