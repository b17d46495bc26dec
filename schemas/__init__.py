"""
Bundle Schemas Package
Provides the typed bundle records used by the builder core.
"""

from .bundle_schemas import (
    # Records
    Bundle,
    Product,
    Variant,
    AddOn,
    TierRule,
    PricingType,

    # Raw payload shapes
    BundleDict,
    ProductDict,
    VariantDict,
    AddOnDict,
    TierPriceDict,

    # Helper functions
    normalize_bundle_data,
    normalize_product,
    normalize_addon,
    normalize_variants,
    normalize_tier_prices,
    normalize_pricing_type,
)
