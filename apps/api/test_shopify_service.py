"""Shopify status mapping and catalog paging"""
import asyncio
import json
from datetime import datetime

import httpx
import pytest

from models import OrderStatus, FinancialStatus, FulfillmentStatus
from services.shopify_service import (
    ShopifyClient, ShopifyError, ShopifyConfigError,
    map_order_status, map_financial_status, extract_order_state, normalize_store_url,
)


@pytest.mark.parametrize("shopify_order, expected", [
    ({"cancelled_at": "2024-03-01T10:00:00Z", "fulfillment_status": "fulfilled"}, OrderStatus.CANCELLED),
    ({"fulfillment_status": "fulfilled", "financial_status": "pending"}, OrderStatus.FULFILLED),
    ({"fulfillment_status": None, "financial_status": "paid"}, OrderStatus.PROCESSING),
    ({"fulfillment_status": "partial", "financial_status": "authorized"}, OrderStatus.PENDING),
    ({}, OrderStatus.PENDING),
])
def test_map_order_status(shopify_order, expected):
    assert map_order_status(shopify_order) == expected


def test_map_financial_status_folds_refund_variants():
    assert map_financial_status("partially_refunded") == FinancialStatus.REFUNDED
    assert map_financial_status("voided") == FinancialStatus.REFUNDED
    assert map_financial_status("authorized") == FinancialStatus.PENDING


def test_extract_order_state_uses_latest_fulfillment():
    state = extract_order_state({
        "financial_status": "paid",
        "fulfillment_status": "fulfilled",
        "total_price": "1700.00",
        "updated_at": "2024-03-02T15:30:00+05:00",
        "fulfillments": [
            {"tracking_number": "TCS-1", "tracking_url": "https://track.example/1"},
            {"tracking_number": "TCS-2", "tracking_url": None},
        ],
    }, current_tracking_url="https://track.example/old")

    assert state.order_status == OrderStatus.FULFILLED
    assert state.fulfillment_status == FulfillmentStatus.FULFILLED
    assert state.tracking_number == "TCS-2"
    assert state.tracking_url == "https://track.example/old"
    assert state.total_amount == 1700.0
    assert state.shopify_updated_at == datetime(2024, 3, 2, 10, 30)


def test_extract_order_state_keeps_tracking_without_fulfillments():
    state = extract_order_state({"total_price": "10"}, current_tracking_number="KEEP")

    assert state.tracking_number == "KEEP"


def test_extract_order_state_rejects_bad_total():
    with pytest.raises(ShopifyError):
        extract_order_state({"total_price": "n/a"})


def test_extract_order_state_rejects_malformed_fulfillments():
    with pytest.raises(ShopifyError):
        extract_order_state({"financial_status": "paid", "fulfillments": [None], "total_price": "1"})
    with pytest.raises(ShopifyError):
        extract_order_state({"fulfillments": "TCS-1", "total_price": "1"})


def test_extract_order_state_rejects_non_object_order():
    with pytest.raises(ShopifyError):
        extract_order_state(["not", "an", "order"])


def test_extract_order_state_rejects_bad_tracking_fields():
    with pytest.raises(ShopifyError):
        extract_order_state({"fulfillments": [{"tracking_number": {"id": 1}}], "total_price": "1"})


def test_normalize_store_url():
    assert normalize_store_url("dasteyaar.myshopify.com/") == "https://dasteyaar.myshopify.com"


def test_client_requires_configuration():
    with pytest.raises(ShopifyConfigError):
        ShopifyClient(store_url="", access_token="token")


def product_page(edges, has_next_page):
    return {"data": {"products": {"edges": edges, "pageInfo": {"hasNextPage": has_next_page}}}}


def test_fetch_products_follows_cursor():
    cursors_seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["X-Shopify-Access-Token"] == "shpat_test"
        variables = json.loads(request.content)["variables"]
        cursors_seen.append(variables["cursor"])
        if variables["cursor"] is None:
            return httpx.Response(200, json=product_page([{
                "cursor": "c1",
                "node": {
                    "id": "gid://shopify/Product/101",
                    "title": "Acne Clear Gel",
                    "status": "ACTIVE",
                    "variants": {"edges": [{"node": {
                        "id": "gid://shopify/ProductVariant/9001", "title": "Default Title", "sku": "acg-30", "price": "850.00",
                    }}]},
                },
            }], True))
        return httpx.Response(200, json=product_page([{
            "cursor": "c2",
            "node": {
                "id": "gid://shopify/Product/102",
                "title": "Sunblock",
                "status": "DRAFT",
                "variants": {"edges": []},
            },
        }], False))

    client = ShopifyClient("dasteyaar.myshopify.com", "shpat_test", transport=httpx.MockTransport(handler))
    products = asyncio.run(client.fetch_products())

    assert cursors_seen == [None, "c1"]
    assert [p.id for p in products] == ["101", "102"]
    assert products[0].variants[0].id == "9001"


def test_graphql_errors_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

    client = ShopifyClient("dasteyaar.myshopify.com", "shpat_test", transport=httpx.MockTransport(handler))

    with pytest.raises(ShopifyError):
        asyncio.run(client.fetch_products())


def test_http_error_becomes_shopify_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"errors": "Invalid API key"})

    client = ShopifyClient("dasteyaar.myshopify.com", "bad", transport=httpx.MockTransport(handler))

    with pytest.raises(ShopifyError, match="401"):
        asyncio.run(client.get_order("5001"))


def test_non_object_body_becomes_shopify_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"order": {"id": 5001}}])

    client = ShopifyClient("dasteyaar.myshopify.com", "shpat_test", transport=httpx.MockTransport(handler))

    with pytest.raises(ShopifyError, match="unexpected response"):
        asyncio.run(client.get_order("5001"))


def test_non_object_order_becomes_shopify_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"order": "5001"})

    client = ShopifyClient("dasteyaar.myshopify.com", "shpat_test", transport=httpx.MockTransport(handler))

    with pytest.raises(ShopifyError):
        asyncio.run(client.get_order("5001"))
