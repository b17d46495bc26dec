"""
Selection State
Shopper's live choices for one open bundle.

The state is a frozen value: every operation returns the next state and
leaves the receiver untouched, so an evaluation computed from one state can
never be invalidated by a later change. Operations keep the data invariants
(known product ids, resolvable variants and add-ons) but never check bundle
rules; that is the pricing engine's job.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple
import logging

from schemas.bundle_schemas import AddOn, Bundle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedProduct:
    """One selected product entry."""
    product_id: str
    price_cents: int
    chosen_variant_id: Optional[str] = None


@dataclass(frozen=True)
class SelectionState:
    bundle: Bundle
    # Insertion order is display order
    entries: Tuple[SelectedProduct, ...] = ()
    selected_wrap: Optional[AddOn] = None
    selected_card: Optional[AddOn] = None
    message: str = ""

    @classmethod
    def empty(cls, bundle: Bundle) -> "SelectionState":
        return cls(bundle=bundle)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    @property
    def selected_products(self) -> Dict[str, SelectedProduct]:
        return {entry.product_id: entry for entry in self.entries}

    @property
    def selected_ids(self) -> Tuple[str, ...]:
        return tuple(entry.product_id for entry in self.entries)

    @property
    def count(self) -> int:
        return len(self.entries)

    def is_selected(self, product_id: str) -> bool:
        return str(product_id) in self.selected_ids

    def variant_map(self) -> Dict[str, str]:
        """Product id -> chosen variant id, for selected products with a choice."""
        return {
            entry.product_id: entry.chosen_variant_id
            for entry in self.entries
            if entry.chosen_variant_id
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def select_product(self, product_id: str, variant_id: Optional[str] = None) -> "SelectionState":
        product = self.bundle.find_product(product_id)
        if product is None:
            logger.debug(f"Ignoring selection of unknown product {product_id!r}")
            return self
        if self.is_selected(product.id):
            if variant_id is None:
                return self
            return self.choose_variant(product.id, variant_id)

        chosen = product.find_variant(variant_id)
        entry = SelectedProduct(
            product_id=product.id,
            price_cents=product.price_cents,
            chosen_variant_id=chosen.id if chosen else None,
        )
        return replace(self, entries=self.entries + (entry,))

    def deselect_product(self, product_id: str) -> "SelectionState":
        # Dropping the entry drops its variant choice with it
        wanted = str(product_id)
        if not self.is_selected(wanted):
            return self
        return replace(
            self,
            entries=tuple(e for e in self.entries if e.product_id != wanted),
        )

    def toggle_product(self, product_id: str) -> "SelectionState":
        if self.is_selected(product_id):
            return self.deselect_product(product_id)
        return self.select_product(product_id)

    def choose_variant(self, product_id: str, variant_id: Optional[str]) -> "SelectionState":
        wanted = str(product_id)
        if not self.is_selected(wanted):
            logger.debug(f"Ignoring variant choice for unselected product {wanted!r}")
            return self

        product = self.bundle.find_product(wanted)
        chosen = product.find_variant(variant_id) if product else None
        if variant_id is not None and chosen is None:
            logger.debug(f"Variant {variant_id!r} not found on product {wanted!r}, clearing choice")
        chosen_id = chosen.id if chosen else None

        entries = tuple(
            replace(e, chosen_variant_id=chosen_id) if e.product_id == wanted else e
            for e in self.entries
        )
        if entries == self.entries:
            return self
        return replace(self, entries=entries)

    def choose_wrap(self, wrap_id: Optional[str]) -> "SelectionState":
        wrap = self.bundle.find_wrap(wrap_id)
        if wrap_id is not None and wrap is None:
            logger.debug(f"Unknown wrapping option {wrap_id!r}, clearing wrap")
        if wrap == self.selected_wrap:
            return self
        return replace(self, selected_wrap=wrap)

    def choose_card(self, card_id: Optional[str]) -> "SelectionState":
        card = self.bundle.find_card(card_id)
        if card_id is not None and card is None:
            logger.debug(f"Unknown card option {card_id!r}, clearing card")
        if card == self.selected_card:
            return self
        return replace(self, selected_card=card)

    def set_message(self, message: Optional[str]) -> "SelectionState":
        text = message or ""
        if text == self.message:
            return self
        return replace(self, message=text)
