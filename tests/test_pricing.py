"""
Tests for the bundle pricing & validation engine
"""

import pytest

from helpers import make_bundle
from schemas.bundle_schemas import AddOn, PricingType, Product, TierRule
from services.pricing import (
    BundlePricingEngine,
    Violation,
    apply_pricing_rule,
    evaluate,
    select_tier,
    violation_message,
)
from services.selection_state import SelectionState


def select(bundle, *product_ids):
    state = SelectionState.empty(bundle)
    for product_id in product_ids:
        state = state.select_product(product_id)
    return state


class TestSubtotal:
    def test_sum_of_base_prices(self, bundle):
        result = evaluate(bundle, select(bundle, "p1", "p2"))
        assert result.subtotal_cents == 1000
        assert result.unit_price_cents == 1000
        assert result.savings_cents == 0

    def test_variant_delta_added(self, bundle):
        state = select(bundle, "p1").choose_variant("p1", "gid://shopify/ProductVariant/1002")
        result = evaluate(bundle, state)
        assert result.subtotal_cents == 700
        assert result.unit_price_cents == 700

    def test_cheaper_variant_has_no_negative_delta(self, bundle):
        state = select(bundle, "p1").choose_variant("p1", "gid://shopify/ProductVariant/1003")
        assert evaluate(bundle, state).subtotal_cents == 500

    def test_variant_removed_from_catalog_fails_open(self, bundle):
        state = select(bundle, "p1").choose_variant("p1", "gid://shopify/ProductVariant/1002")
        # Same product, variants dropped since the selection was made
        stripped = make_bundle(products=(
            Product(id="p1", variant_gid="gid://shopify/ProductVariant/1001", price_cents=500),
        ))
        result = evaluate(stripped, state)
        assert result.subtotal_cents == 500

    def test_savings_ignore_variant_delta(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=1, pricing_type=PricingType.FIXED, value_cents=600),
        ))
        state = select(bundle, "p1").choose_variant("p1", "gid://shopify/ProductVariant/1002")
        result = evaluate(bundle, state)
        assert result.unit_price_cents == 600
        # List price 500 is below the 600 paid, so no savings
        assert result.savings_cents == 0
        assert result.individual_total_cents == 500


class TestTierPricing:
    def test_percent_tier_example(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=2, pricing_type=PricingType.DISCOUNT_PERCENT, value_percent=10),
        ))
        result = evaluate(bundle, select(bundle, "p1", "p2"))
        assert result.unit_price_cents == 900
        assert result.savings_cents == 100

    def test_largest_qualifying_tier_wins(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=3, pricing_type=PricingType.DISCOUNT_AMOUNT, value_cents=300),
            TierRule(min_quantity=2, pricing_type=PricingType.DISCOUNT_AMOUNT, value_cents=100),
        ))
        assert evaluate(bundle, select(bundle, "p1", "p2")).unit_price_cents == 900
        assert evaluate(bundle, select(bundle, "p1", "p2", "p3")).unit_price_cents == 1000

    def test_no_tier_qualifies(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=3, pricing_type=PricingType.FIXED, value_cents=100),
        ))
        assert evaluate(bundle, select(bundle, "p1")).unit_price_cents == 500

    def test_fixed_tier(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=2, pricing_type=PricingType.FIXED, value_cents=750),
        ))
        assert evaluate(bundle, select(bundle, "p1", "p2")).unit_price_cents == 750

    def test_percent_discount_floors_the_discount(self):
        bundle = make_bundle(
            products=(
                Product(id="a", variant_gid="1", price_cents=333),
                Product(id="b", variant_gid="2", price_cents=333),
            ),
            tier_prices=(
                TierRule(min_quantity=2, pricing_type=PricingType.DISCOUNT_PERCENT, value_percent=10),
            ),
        )
        # floor(666 * 0.10) = 66
        assert evaluate(bundle, select(bundle, "a", "b")).unit_price_cents == 600

    def test_tier_missing_value_keeps_subtotal(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=1, pricing_type=PricingType.DISCOUNT_AMOUNT),
        ))
        assert evaluate(bundle, select(bundle, "p1")).unit_price_cents == 500

    def test_select_tier_ties_keep_first(self):
        first = TierRule(min_quantity=2, pricing_type=PricingType.FIXED, value_cents=1)
        second = TierRule(min_quantity=2, pricing_type=PricingType.FIXED, value_cents=2)
        assert select_tier([first, second], 5) is first
        assert select_tier(None, 5) is None

    @pytest.mark.parametrize("percent", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_percent_tier_is_skipped(self, percent):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=1, pricing_type=PricingType.DISCOUNT_PERCENT, value_percent=percent),
        ))
        result = evaluate(bundle, select(bundle, "p1"))
        assert result.unit_price_cents == 500
        assert result.valid is True

    def test_apply_pricing_rule_ignores_unusable_percent(self):
        assert apply_pricing_rule(1000, PricingType.DISCOUNT_PERCENT, value_percent=float("nan")) is None
        assert apply_pricing_rule(1000, PricingType.DISCOUNT_PERCENT, value_percent="lots") is None


class TestBundleOverride:
    def test_fixed_bundle_price_beats_tier(self):
        bundle = make_bundle(
            pricing_type=PricingType.FIXED,
            price_value_cents=500,
            tier_prices=(
                TierRule(min_quantity=2, pricing_type=PricingType.DISCOUNT_PERCENT, value_percent=50),
            ),
        )
        assert evaluate(bundle, select(bundle, "p1", "p2")).unit_price_cents == 500
        assert evaluate(bundle, select(bundle, "p1", "p2", "p3")).unit_price_cents == 500

    def test_bundle_discount_uses_subtotal_not_tier_price(self):
        bundle = make_bundle(
            pricing_type=PricingType.DISCOUNT_AMOUNT,
            price_value_cents=100,
            tier_prices=(
                TierRule(min_quantity=2, pricing_type=PricingType.FIXED, value_cents=200),
            ),
        )
        assert evaluate(bundle, select(bundle, "p1", "p2")).unit_price_cents == 900

    def test_bundle_percent_reads_price_value(self):
        bundle = make_bundle(pricing_type=PricingType.DISCOUNT_PERCENT, price_value_cents=25)
        assert evaluate(bundle, select(bundle, "p1", "p2")).unit_price_cents == 750

    def test_fixed_bundle_price_plus_addons(self):
        bundle = make_bundle(pricing_type=PricingType.FIXED, price_value_cents=500)
        state = select(bundle, "p1", "p2").choose_wrap("w1").choose_card("c1")
        assert evaluate(bundle, state).unit_price_cents == 500 + 150 + 200

    def test_missing_bundle_value_leaves_tier_result(self):
        bundle = make_bundle(
            pricing_type=PricingType.FIXED,
            price_value_cents=None,
            tier_prices=(
                TierRule(min_quantity=2, pricing_type=PricingType.FIXED, value_cents=800),
            ),
        )
        assert evaluate(bundle, select(bundle, "p1", "p2")).unit_price_cents == 800


class TestNeverNegative:
    @pytest.mark.parametrize("pricing_type,value", [
        (PricingType.DISCOUNT_AMOUNT, 10_000),
        (PricingType.DISCOUNT_PERCENT, 150),
    ])
    def test_oversized_bundle_discount_clamps_to_zero(self, pricing_type, value):
        bundle = make_bundle(pricing_type=pricing_type, price_value_cents=value)
        result = evaluate(bundle, select(bundle, "p1", "p2"))
        assert result.unit_price_cents == 0
        assert result.savings_cents == 1000

    def test_oversized_tier_discount_then_addons(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=1, pricing_type=PricingType.DISCOUNT_AMOUNT, value_cents=5000),
        ))
        state = select(bundle, "p1").choose_wrap("w1")
        assert evaluate(bundle, state).unit_price_cents == 150

    def test_apply_pricing_rule_clamps(self):
        assert apply_pricing_rule(100, PricingType.DISCOUNT_AMOUNT, value_cents=500) == 0
        assert apply_pricing_rule(100, PricingType.FIXED, value_cents=-5) == 0
        assert apply_pricing_rule(100, PricingType.NONE) is None


class TestAddOns:
    def test_addons_are_not_discounted(self):
        bundle = make_bundle(tier_prices=(
            TierRule(min_quantity=1, pricing_type=PricingType.DISCOUNT_PERCENT, value_percent=50),
        ))
        state = select(bundle, "p1", "p2").choose_wrap("w1").choose_card("c1")
        result = evaluate(bundle, state)
        assert result.unit_price_cents == 500 + 150 + 200
        assert result.savings_cents == 150

    def test_personalization_fee_needs_message_and_permission(self):
        bundle = make_bundle(allow_message=True, personalization_fee_cents=99)
        state = select(bundle, "p1")
        assert evaluate(bundle, state).unit_price_cents == 500
        assert evaluate(bundle, state.set_message("Happy birthday")).unit_price_cents == 599

        locked = make_bundle(allow_message=False, personalization_fee_cents=99)
        assert evaluate(locked, select(locked, "p1").set_message("Hi")).unit_price_cents == 500


class TestValidation:
    def test_too_few_items(self):
        bundle = make_bundle(min_items=2)
        result = evaluate(bundle, select(bundle, "p1"))
        assert result.valid is False
        assert result.violations == [Violation.TOO_FEW_ITEMS]

    def test_wrap_required(self):
        bundle = make_bundle(wrap_required=True, min_items=2, max_items=3)
        result = evaluate(bundle, select(bundle, "p1", "p2"))
        assert result.violations == [Violation.WRAP_REQUIRED]

    def test_too_many_items(self):
        bundle = make_bundle(max_items=2)
        result = evaluate(bundle, select(bundle, "p1", "p2", "p3"))
        assert result.violations == [Violation.TOO_MANY_ITEMS]

    def test_nothing_selected(self, bundle):
        result = evaluate(bundle, SelectionState.empty(bundle))
        assert result.violations == [Violation.NOTHING_SELECTED]
        assert result.unit_price_cents == 0

    def test_addon_only_selection_is_valid(self, bundle):
        result = evaluate(bundle, SelectionState.empty(bundle).choose_card("c1"))
        assert result.valid is True
        assert result.unit_price_cents == 200

    def test_violation_order_is_fixed(self):
        bundle = make_bundle(
            wrap_required=True,
            min_items=1,
            allow_message=True,
            message_char_limit=3,
        )
        state = SelectionState.empty(bundle).set_message("too long")
        assert evaluate(bundle, state).violations == [
            Violation.WRAP_REQUIRED,
            Violation.TOO_FEW_ITEMS,
            Violation.NOTHING_SELECTED,
            Violation.MESSAGE_TOO_LONG,
        ]

    def test_valid_selection(self):
        bundle = make_bundle(min_items=1, max_items=2)
        result = evaluate(bundle, select(bundle, "p1", "p2"))
        assert result.valid is True
        assert result.violations == []

    def test_violation_messages(self):
        bundle = make_bundle(min_items=1, max_items=3)
        assert violation_message(Violation.TOO_FEW_ITEMS, bundle) == "Please select at least 1 item"
        assert violation_message(Violation.TOO_MANY_ITEMS, bundle) == "Please select no more than 3 items"
        assert violation_message(Violation.WRAP_REQUIRED, bundle) == "Please select a wrapping option"


class TestPurity:
    def test_same_inputs_same_output(self, bundle):
        state = select(bundle, "p1", "p3").choose_wrap("w1")
        engine = BundlePricingEngine()
        assert engine.evaluate(bundle, state) == engine.evaluate(bundle, state)

    def test_missing_collections_do_not_raise(self):
        bundle = make_bundle(tier_prices=(), cards=(), wrapping_options=())
        state = select(bundle, "p2")
        assert evaluate(bundle, state).unit_price_cents == 500

    def test_unknown_wrap_price_is_not_charged(self):
        bundle = make_bundle(wrapping_options=(AddOn(id="w9", name="Gold", price_cents=900),))
        state = select(bundle, "p1").choose_wrap("w1")
        assert state.selected_wrap is None
        assert evaluate(bundle, state).unit_price_cents == 500
