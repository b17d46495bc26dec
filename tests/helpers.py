"""Shared bundle fixtures for the builder tests."""
from schemas.bundle_schemas import AddOn, Bundle, Product, Variant


def make_bundle(**overrides) -> Bundle:
    """Products p1/p2 at 500 cents (p1 has 700 and 400 cent variants), p3 at 300, two wraps, one card."""
    fields = dict(
        id="bundle-1",
        title="Holiday Box",
        products=(
            Product(
                id="p1",
                variant_gid="gid://shopify/ProductVariant/1001",
                price_cents=500,
                variants=(
                    Variant(id="gid://shopify/ProductVariant/1002", title="Large", price_cents=700),
                    Variant(id="gid://shopify/ProductVariant/1003", title="Small", price_cents=400),
                ),
            ),
            Product(id="p2", variant_gid="gid://shopify/ProductVariant/2001", price_cents=500),
            Product(id="p3", variant_gid="gid://shopify/ProductVariant/3001", price_cents=300),
        ),
        wrapping_options=(
            AddOn(id="w1", name="Red Paper", price_cents=150,
                  shopify_variant_id="gid://shopify/ProductVariant/9001"),
            AddOn(id="w2", name="Plain Box", price_cents=0),
        ),
        cards=(
            AddOn(id="c1", name="Birthday Card", price_cents=200, shopify_variant_id="9101"),
        ),
    )
    fields.update(overrides)
    return Bundle(**fields)
