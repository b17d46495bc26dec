"""
Bundle Builder Schemas
======================

Canonical data structures for a shopper-configurable bundle.

A bundle arrives from the storefront API as camelCase JSON. Everything in the
pricing engine, the selection state and the cart adapter works on the typed
records defined here, never on the raw payload.

MONEY:
------
All money values are integer cents. Variant payloads that only carry a decimal
``price`` (major units) are converted with half-up rounding.

PRICING TYPES:
--------------
- NONE: sum of selected product prices (storefront also sends "SUM")
- FIXED: flat bundle price
- DISCOUNT_PERCENT: percentage off the subtotal
- DISCOUNT_AMOUNT: fixed amount off the subtotal
"""

from typing import List, Dict, Any, Optional, Union, TypedDict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from enum import Enum
import json
import logging
import math

logger = logging.getLogger(__name__)


class PricingType(str, Enum):
    NONE = "NONE"
    FIXED = "FIXED"
    DISCOUNT_PERCENT = "DISCOUNT_PERCENT"
    DISCOUNT_AMOUNT = "DISCOUNT_AMOUNT"


# Values the storefront uses for "no bundle-level pricing"
_NO_PRICING_ALIASES = {"", "NONE", "SUM"}


# =============================================================================
# TYPE DEFINITIONS (raw storefront payloads)
# =============================================================================

class VariantDict(TypedDict, total=False):
    """Variant entry as sent by the storefront."""
    id: str
    variantId: str        # Legacy key, same meaning as id
    title: str
    priceCents: int
    price: Union[str, float]  # Major units, used when priceCents is missing


class AddOnDict(TypedDict, total=False):
    """Wrap or card entry."""
    id: str
    name: str
    priceCents: int
    shopifyVariantId: Optional[str]  # "gid://shopify/ProductVariant/123"
    imageUrl: Optional[str]


class TierPriceDict(TypedDict, total=False):
    """Quantity tier rule."""
    minQuantity: int
    pricingType: str      # "FIXED" | "DISCOUNT_PERCENT" | "DISCOUNT_AMOUNT"
    valueCents: Optional[int]
    valuePercent: Optional[float]


class ProductDict(TypedDict, total=False):
    """Product offered inside a bundle."""
    id: str
    variantGid: str       # Default purchasable variant
    priceCents: int
    title: str
    imageUrl: Optional[str]
    variants: Union[List[VariantDict], str]
    variantsJson: str     # Encoded variants list


class BundleDict(TypedDict, total=False):
    """Complete bundle payload."""
    id: str
    title: str
    description: Optional[str]
    imageUrl: Optional[str]
    products: List[ProductDict]
    wrappingOptions: List[AddOnDict]
    wrapRequired: bool
    cards: List[AddOnDict]
    minItems: Optional[int]
    maxItems: Optional[int]
    pricingType: Optional[str]
    priceValueCents: Optional[int]
    tierPrices: List[TierPriceDict]
    allowMessage: bool
    messageCharLimit: Optional[int]
    personalizationFeeCents: Optional[int]


# =============================================================================
# DATACLASS DEFINITIONS (for type safety in code)
# =============================================================================

@dataclass(frozen=True)
class Variant:
    """Alternate purchasable option of a product, with its own price."""
    id: str
    title: str = "Variant"
    price_cents: int = 0

    def to_dict(self) -> VariantDict:
        return {"id": self.id, "title": self.title, "priceCents": self.price_cents}


@dataclass(frozen=True)
class Product:
    """Catalog item offered inside the bundle."""
    id: str
    variant_gid: str
    price_cents: int
    variants: tuple = ()
    title: str = ""
    image_url: Optional[str] = None

    def find_variant(self, variant_id: Optional[str]) -> Optional[Variant]:
        if variant_id is None:
            return None
        wanted = str(variant_id)
        for variant in self.variants:
            if variant.id == wanted:
                return variant
        return None

    def to_dict(self) -> ProductDict:
        return {
            "id": self.id,
            "variantGid": self.variant_gid,
            "priceCents": self.price_cents,
            "title": self.title,
            "imageUrl": self.image_url,
            "variants": [v.to_dict() for v in self.variants],
        }


@dataclass(frozen=True)
class AddOn:
    """Gift wrap or greeting card.

    Without ``shopify_variant_id`` the add-on is priced but cannot be put in
    the cart.
    """
    id: str
    name: str
    price_cents: int = 0
    shopify_variant_id: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> AddOnDict:
        return {
            "id": self.id,
            "name": self.name,
            "priceCents": self.price_cents,
            "shopifyVariantId": self.shopify_variant_id,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class TierRule:
    """Pricing override that kicks in at ``min_quantity`` selected products."""
    min_quantity: int
    pricing_type: PricingType
    value_cents: Optional[int] = None
    value_percent: Optional[float] = None

    def to_dict(self) -> TierPriceDict:
        return {
            "minQuantity": self.min_quantity,
            "pricingType": self.pricing_type.value,
            "valueCents": self.value_cents,
            "valuePercent": self.value_percent,
        }


@dataclass(frozen=True)
class Bundle:
    """Bundle configuration being shopped."""
    id: str
    title: str
    products: tuple = ()
    wrapping_options: tuple = ()
    cards: tuple = ()
    wrap_required: bool = False
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    pricing_type: PricingType = PricingType.NONE
    price_value_cents: Optional[int] = None
    tier_prices: tuple = ()
    description: Optional[str] = None
    image_url: Optional[str] = None
    allow_message: bool = False
    message_char_limit: Optional[int] = None
    personalization_fee_cents: Optional[int] = None

    def find_product(self, product_id: Optional[str]) -> Optional[Product]:
        if product_id is None:
            return None
        wanted = str(product_id)
        for product in self.products:
            if product.id == wanted:
                return product
        return None

    def find_wrap(self, wrap_id: Optional[str]) -> Optional[AddOn]:
        return _find_addon(self.wrapping_options, wrap_id)

    def find_card(self, card_id: Optional[str]) -> Optional[AddOn]:
        return _find_addon(self.cards, card_id)

    def to_dict(self) -> BundleDict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "imageUrl": self.image_url,
            "products": [p.to_dict() for p in self.products],
            "wrappingOptions": [w.to_dict() for w in self.wrapping_options],
            "wrapRequired": self.wrap_required,
            "cards": [c.to_dict() for c in self.cards],
            "minItems": self.min_items,
            "maxItems": self.max_items,
            "pricingType": self.pricing_type.value,
            "priceValueCents": self.price_value_cents,
            "tierPrices": [t.to_dict() for t in self.tier_prices],
            "allowMessage": self.allow_message,
            "messageCharLimit": self.message_char_limit,
            "personalizationFeeCents": self.personalization_fee_cents,
        }


def _find_addon(options: tuple, addon_id: Optional[str]) -> Optional[AddOn]:
    if addon_id is None:
        return None
    wanted = str(addon_id)
    for option in options:
        if option.id == wanted:
            return option
    return None


# =============================================================================
# NORMALIZATION HELPERS
# =============================================================================

def _to_int(value: Any) -> Optional[int]:
    """Coerce an integral value; anything else (including bools) is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    return None


def _positive_or_none(value: Any) -> Optional[int]:
    """Storefront treats 0 / missing bounds and fees as "not set"."""
    number = _to_int(value)
    return number if number else None


def _to_cents(value: Any) -> Optional[int]:
    """Convert a major-unit price ("12.50", 12.5) to integer cents."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_percent(value: Any) -> Optional[float]:
    """Percent as a finite float; NaN and infinities count as missing."""
    if value is None or isinstance(value, bool):
        return None
    try:
        percent = float(value)
    except (TypeError, ValueError):
        return None
    return percent if math.isfinite(percent) else None


def normalize_pricing_type(value: Any) -> PricingType:
    """Map a raw pricingType onto PricingType, defaulting to NONE."""
    text = str(value or "").strip().upper()
    if text in _NO_PRICING_ALIASES:
        return PricingType.NONE
    try:
        return PricingType(text)
    except ValueError:
        logger.warning(f"Unknown bundle pricingType {value!r}, treating as NONE")
        return PricingType.NONE


def normalize_variants(variants: Union[List[Dict[str, Any]], str, None]) -> List[Variant]:
    """
    Normalize product variants from a list or an encoded JSON string.

    A blob that fails to decode, or decodes to something other than a list,
    yields an empty list. Entries without an id are dropped.
    """
    if not variants:
        return []

    if isinstance(variants, str):
        try:
            decoded = json.loads(variants)
        except (TypeError, ValueError) as e:
            logger.debug(f"Ignoring undecodable variants blob: {e}")
            return []
    else:
        decoded = variants

    if not isinstance(decoded, list):
        return []

    normalized = []
    for entry in decoded:
        if not isinstance(entry, dict):
            continue
        variant_id = entry.get("id") or entry.get("variantId")
        if not variant_id:
            continue
        price_cents = _to_int(entry.get("priceCents"))
        if price_cents is None:
            price_cents = _to_cents(entry.get("price")) or 0
        normalized.append(Variant(
            id=str(variant_id),
            title=entry.get("title") or "Variant",
            price_cents=price_cents,
        ))
    return normalized


def normalize_product(product: Dict[str, Any]) -> Product:
    """Normalize a product entry; variants may come as a list or variantsJson."""
    raw_variants = product.get("variants") or product.get("variantsJson")
    return Product(
        id=str(product.get("id", "")),
        variant_gid=str(product.get("variantGid") or ""),
        price_cents=_to_int(product.get("priceCents")) or 0,
        variants=tuple(normalize_variants(raw_variants)),
        title=product.get("title") or "",
        image_url=product.get("imageUrl"),
    )


def normalize_addon(addon: Dict[str, Any]) -> AddOn:
    variant_ref = addon.get("shopifyVariantId")
    return AddOn(
        id=str(addon.get("id", "")),
        name=addon.get("name") or "",
        price_cents=_to_int(addon.get("priceCents")) or 0,
        shopify_variant_id=str(variant_ref) if variant_ref else None,
        image_url=addon.get("imageUrl"),
    )


def normalize_tier_prices(tiers: Optional[List[Dict[str, Any]]]) -> List[TierRule]:
    """Drop tier rules with no usable threshold or pricing type."""
    rules = []
    for tier in tiers or []:
        if not isinstance(tier, dict):
            continue
        min_quantity = _to_int(tier.get("minQuantity"))
        pricing_type = normalize_pricing_type(tier.get("pricingType"))
        if min_quantity is None or pricing_type is PricingType.NONE:
            logger.debug(f"Dropping unusable tier rule: {tier}")
            continue
        rules.append(TierRule(
            min_quantity=min_quantity,
            pricing_type=pricing_type,
            value_cents=_to_int(tier.get("valueCents")),
            value_percent=_to_percent(tier.get("valuePercent")),
        ))
    return rules


def normalize_bundle_data(bundle: Optional[Dict[str, Any]]) -> Optional[Bundle]:
    """
    Normalize a storefront bundle payload into a Bundle.

    Args:
        bundle: Raw bundle dict (camelCase keys)

    Returns:
        Bundle, or None when no payload was given
    """
    if not bundle:
        return None

    return Bundle(
        id=str(bundle.get("id", "")),
        title=bundle.get("title") or "",
        description=bundle.get("description"),
        image_url=bundle.get("imageUrl"),
        products=tuple(
            normalize_product(p) for p in bundle.get("products") or [] if isinstance(p, dict)
        ),
        wrapping_options=tuple(
            normalize_addon(w) for w in bundle.get("wrappingOptions") or [] if isinstance(w, dict)
        ),
        cards=tuple(
            normalize_addon(c) for c in bundle.get("cards") or [] if isinstance(c, dict)
        ),
        wrap_required=bool(bundle.get("wrapRequired")),
        min_items=_positive_or_none(bundle.get("minItems")),
        max_items=_positive_or_none(bundle.get("maxItems")),
        pricing_type=normalize_pricing_type(bundle.get("pricingType")),
        price_value_cents=_to_int(bundle.get("priceValueCents")),
        tier_prices=tuple(normalize_tier_prices(bundle.get("tierPrices"))),
        allow_message=bool(bundle.get("allowMessage")),
        message_char_limit=_positive_or_none(bundle.get("messageCharLimit")),
        personalization_fee_cents=_positive_or_none(bundle.get("personalizationFeeCents")),
    )
