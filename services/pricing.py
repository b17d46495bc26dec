"""
Bundle Pricing & Validation Engine
Computes the live bundle price, savings and rule violations for a selection.

evaluate() is a pure function of (bundle, selection): no I/O, no hidden state,
so it can be re-run after every shopper change and again right before
add-to-cart with identical results.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from schemas.bundle_schemas import Bundle, PricingType, TierRule
from services.selection_state import SelectionState

logger = logging.getLogger(__name__)


class Violation(str, Enum):
    WRAP_REQUIRED = "WRAP_REQUIRED"
    TOO_FEW_ITEMS = "TOO_FEW_ITEMS"
    TOO_MANY_ITEMS = "TOO_MANY_ITEMS"
    NOTHING_SELECTED = "NOTHING_SELECTED"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"


@dataclass(frozen=True)
class PriceEvaluation:
    """Result of one engine run."""
    unit_price_cents: int
    savings_cents: int
    valid: bool
    violations: List[Violation] = field(default_factory=list)
    subtotal_cents: int = 0
    individual_total_cents: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_price_cents": self.unit_price_cents,
            "savings_cents": self.savings_cents,
            "valid": self.valid,
            "violations": [v.value for v in self.violations],
            "subtotal_cents": self.subtotal_cents,
            "individual_total_cents": self.individual_total_cents,
        }


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def violation_message(violation: Violation, bundle: Bundle) -> str:
    """Shopper-facing text for a violation."""
    if violation is Violation.WRAP_REQUIRED:
        return "Please select a wrapping option"
    if violation is Violation.TOO_FEW_ITEMS:
        n = bundle.min_items or 0
        return f"Please select at least {n} item{_plural(n)}"
    if violation is Violation.TOO_MANY_ITEMS:
        n = bundle.max_items or 0
        return f"Please select no more than {n} item{_plural(n)}"
    if violation is Violation.MESSAGE_TOO_LONG:
        return f"Message too long (max {bundle.message_char_limit} characters)"
    return "Nothing to add. Please select at least one product, wrap or card."


def apply_pricing_rule(
    subtotal_cents: int,
    pricing_type: PricingType,
    value_cents: Optional[int] = None,
    value_percent: Optional[float] = None,
) -> Optional[int]:
    """
    Price a subtotal under one rule.

    Returns None when the rule is missing the value its type needs, so the
    caller keeps whatever price it already had.
    """
    if pricing_type == PricingType.FIXED:
        if value_cents is None:
            return None
        return max(0, value_cents)

    if pricing_type == PricingType.DISCOUNT_PERCENT:
        if value_percent is None:
            return None
        try:
            percent = Decimal(str(value_percent))
        except InvalidOperation:
            return None
        if not percent.is_finite():
            logger.debug(f"Skipping percent rule with non-finite value {value_percent!r}")
            return None
        discount = (Decimal(subtotal_cents) * percent / Decimal("100")).to_integral_value(
            rounding=ROUND_FLOOR
        )
        return max(0, subtotal_cents - int(discount))

    if pricing_type == PricingType.DISCOUNT_AMOUNT:
        if value_cents is None:
            return None
        return max(0, subtotal_cents - value_cents)

    return None


def select_tier(tiers: Optional[List[TierRule]], quantity: int) -> Optional[TierRule]:
    """Qualifying tier with the largest min_quantity; the first listed wins a tie."""
    best = None
    for tier in tiers or ():
        if tier.min_quantity > quantity:
            continue
        if best is None or tier.min_quantity > best.min_quantity:
            best = tier
    return best


class BundlePricingEngine:
    """Pricing and rule validation for configurable bundles"""

    def evaluate(self, bundle: Bundle, selection: SelectionState) -> PriceEvaluation:
        subtotal, individual_total = self.compute_subtotal(bundle, selection)
        count = selection.count

        price = subtotal

        tier = select_tier(bundle.tier_prices, count)
        if tier is not None:
            tiered = apply_pricing_rule(subtotal, tier.pricing_type, tier.value_cents, tier.value_percent)
            if tiered is not None:
                price = tiered

        # Bundle-level rule recomputes from the subtotal and always beats the tier
        if bundle.pricing_type != PricingType.NONE:
            overridden = apply_pricing_rule(
                subtotal,
                bundle.pricing_type,
                value_cents=bundle.price_value_cents,
                value_percent=bundle.price_value_cents,
            )
            if overridden is not None:
                price = overridden

        price += self.compute_addons(bundle, selection)
        price = max(0, price)

        violations = self.validate(bundle, selection)
        return PriceEvaluation(
            unit_price_cents=price,
            savings_cents=max(0, individual_total - price),
            valid=not violations,
            violations=violations,
            subtotal_cents=subtotal,
            individual_total_cents=individual_total,
        )

    def compute_subtotal(self, bundle: Bundle, selection: SelectionState) -> tuple:
        """Return (variant-adjusted subtotal, list-price total) in cents."""
        subtotal = 0
        individual_total = 0
        for entry in selection.entries:
            product = bundle.find_product(entry.product_id)
            base = product.price_cents if product else entry.price_cents
            individual_total += base
            subtotal += base

            if product is None or entry.chosen_variant_id is None:
                continue
            variant = product.find_variant(entry.chosen_variant_id)
            if variant is None:
                logger.debug(
                    f"Variant {entry.chosen_variant_id!r} no longer on product {product.id!r}, no delta"
                )
                continue
            subtotal += max(0, variant.price_cents - base)
        return subtotal, individual_total

    def compute_addons(self, bundle: Bundle, selection: SelectionState) -> int:
        """Flat add-on costs; never discounted."""
        total = 0
        if selection.selected_wrap is not None:
            total += selection.selected_wrap.price_cents
        if selection.selected_card is not None:
            total += selection.selected_card.price_cents
        if bundle.allow_message and selection.message and bundle.personalization_fee_cents:
            total += bundle.personalization_fee_cents
        return total

    def validate(self, bundle: Bundle, selection: SelectionState) -> List[Violation]:
        """Collect violations in a fixed order."""
        violations = []
        count = selection.count

        if bundle.wrap_required and selection.selected_wrap is None:
            violations.append(Violation.WRAP_REQUIRED)
        if bundle.min_items and count < bundle.min_items:
            violations.append(Violation.TOO_FEW_ITEMS)
        if bundle.max_items and count > bundle.max_items:
            violations.append(Violation.TOO_MANY_ITEMS)
        if count == 0 and selection.selected_wrap is None and selection.selected_card is None:
            violations.append(Violation.NOTHING_SELECTED)
        if (
            bundle.allow_message
            and bundle.message_char_limit
            and len(selection.message) > bundle.message_char_limit
        ):
            violations.append(Violation.MESSAGE_TOO_LONG)
        return violations


# Global pricing engine instance
pricing_engine = BundlePricingEngine()


def evaluate(bundle: Bundle, selection: SelectionState) -> PriceEvaluation:
    return pricing_engine.evaluate(bundle, selection)
