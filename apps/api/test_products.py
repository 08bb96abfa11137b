"""Product catalog management and the Shopify catalog sync"""
import asyncio
import json

import httpx
from sqlmodel import select

from conftest import add
from main import app
from models import Product, TeamProduct
from services.product_sync import sync_products
from services.shopify_service import ShopifyClient, get_shopify_client


def catalog_handler(request: httpx.Request) -> httpx.Response:
    assert json.loads(request.content)["variables"]["first"] == 50
    return httpx.Response(200, json={"data": {"products": {
        "edges": [
            {
                "cursor": "c1",
                "node": {
                    "id": "gid://shopify/Product/101",
                    "title": "Acne Clear Gel",
                    "status": "ACTIVE",
                    "variants": {"edges": [{"node": {
                        "id": "gid://shopify/ProductVariant/9001", "title": "Default Title", "sku": "acg-30", "price": "900.00",
                    }}]},
                },
            },
            {
                "cursor": "c2",
                "node": {
                    "id": "gid://shopify/Product/102",
                    "title": "Hydra Serum",
                    "status": "ARCHIVED",
                    "variants": {"edges": [
                        {"node": {"id": "gid://shopify/ProductVariant/9002", "title": "15ml", "sku": "", "price": "1200.00"}},
                        {"node": {"id": "gid://shopify/ProductVariant/9003", "title": "30ml", "sku": "HS-30", "price": "2100.00"}},
                    ]},
                },
            },
        ],
        "pageInfo": {"hasNextPage": False},
    }}})


def shopify_client(handler) -> ShopifyClient:
    return ShopifyClient("dasteyaar.myshopify.com", "shpat_test", transport=httpx.MockTransport(handler))


def test_sync_products_upserts_variants(session, product):
    result = asyncio.run(sync_products(session, shopify_client(catalog_handler)))

    assert result.total_processed == 2
    assert result.updated_count == 1
    assert result.added_count == 2
    assert result.errors == []

    session.refresh(product)
    assert product.price == 900.0
    assert product.shopify_product_id == "101"
    assert product.shopify_variant_id == "9001"
    assert product.name == "Acne Clear Gel"

    fallback = session.exec(select(Product).where(Product.sku == "SHOPIFY-9002")).first()
    assert fallback is not None
    assert fallback.name == "Hydra Serum - 15ml"
    assert fallback.status == "inactive"


def test_sync_route_reports_counts(client, admin_headers):
    app.dependency_overrides[get_shopify_client] = lambda: shopify_client(catalog_handler)

    response = client.post("/api/products/sync", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Successfully synced 3 products from Shopify"
    assert body["data"]["added_count"] == 3


def test_sync_route_without_configuration(client, admin_headers):
    response = client.post("/api/products/sync", headers=admin_headers)

    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Shopify configuration missing"


def test_kam_cannot_manage_products(client, kam_headers):
    response = client.post(
        "/api/products",
        json={"name": "Sunblock", "sku": "SB-50", "price": 650},
        headers=kam_headers,
    )

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Only Super Admin can manage products"


def test_create_product_rejects_duplicate_sku(client, admin_headers, product):
    response = client.post(
        "/api/products",
        json={"name": "Acne Clear Gel XL", "sku": "acg-30", "price": 1200},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "SKU already exists"


def test_kam_can_browse_products(client, kam_headers, product):
    response = client.get("/api/products", headers=kam_headers)

    assert response.status_code == 200
    assert response.json()["data"]["products"][0]["sku"] == "ACG-30"


def test_deleting_product_removes_team_assignments(client, session, admin_headers, product, team):
    add(session, TeamProduct(team_id=team.id, product_id=product.id))
    product_id = product.id

    response = client.delete(f"/api/products/{product_id}", headers=admin_headers)

    assert response.status_code == 200
    assert session.get(Product, product_id) is None
    assert session.exec(select(TeamProduct)).all() == []
