import pytest
from fastapi.testclient import TestClient

from main import app

BUNDLE_PAYLOAD = {
    "id": "b-1",
    "title": "Coffee Lover",
    "minItems": 2,
    "pricingType": "NONE",
    "tierPrices": [{"minQuantity": 2, "pricingType": "DISCOUNT_PERCENT", "valuePercent": 10}],
    "products": [
        {"id": "beans", "variantGid": "gid://shopify/ProductVariant/10", "priceCents": 500,
         "variantsJson": '[{"id": "gid://shopify/ProductVariant/11", "title": "1kg", "priceCents": 900}]'},
        {"id": "mug", "variantGid": "gid://shopify/ProductVariant/20", "priceCents": 500},
    ],
    "wrappingOptions": [{"id": "w1", "name": "Kraft", "priceCents": 100, "shopifyVariantId": "30"}],
}


@pytest.fixture
def client():
    return TestClient(app)


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["X-Request-Id"]


def test_quote_valid_selection(client):
    response = client.post("/api/bundle-builder/quote", json={
        "bundle": BUNDLE_PAYLOAD,
        "selection": {
            "selectedProductIds": ["beans", "mug"],
            "selectedVariantMap": {"beans": "gid://shopify/ProductVariant/11"},
            "selectedWrapId": "w1",
        },
    })

    assert response.status_code == 200
    body = response.json()
    # subtotal 500 + 400 delta + 500 = 1400, 10% off = 1260, plus wrap
    assert body["subtotalCents"] == 1400
    assert body["unitPriceCents"] == 1360
    assert body["savingsCents"] == 0
    assert body["valid"] is True
    assert [item["id"] for item in body["lineItems"]] == ["11", "20", "30"]


def test_quote_reports_violations(client):
    response = client.post("/api/bundle-builder/quote", json={
        "bundle": BUNDLE_PAYLOAD,
        "selection": {"selectedProductIds": ["mug", "ghost"]},
    })

    body = response.json()
    assert body["selectedProductIds"] == ["mug"]
    assert body["valid"] is False
    assert body["violations"] == ["TOO_FEW_ITEMS"]
    assert body["messages"] == ["Please select at least 2 items"]


def test_quote_requires_bundle_id(client):
    response = client.post("/api/bundle-builder/quote", json={"bundle": {"title": "no id"}})
    assert response.status_code == 400
    assert response.json() == {"error": "Bundle payload must include an id"}


def test_quote_rejects_malformed_body(client):
    response = client.post("/api/bundle-builder/quote", json={"selection": {}})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


def test_quote_skips_non_finite_percent_tier(client):
    payload = dict(BUNDLE_PAYLOAD, tierPrices=[
        {"minQuantity": 1, "pricingType": "DISCOUNT_PERCENT", "valuePercent": "NaN"},
    ])
    response = client.post("/api/bundle-builder/quote", json={
        "bundle": payload,
        "selection": {"selectedProductIds": ["beans", "mug"]},
    })

    assert response.status_code == 200
    assert response.json()["unitPriceCents"] == 1000
