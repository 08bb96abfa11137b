"""
Shopify Admin API Service
REST order lookups and GraphQL catalog paging against a single store.
"""
import httpx
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, ValidationError
import logging
import os

from models import OrderStatus, FinancialStatus, FulfillmentStatus
from validators.business_rules import get_business_rules

logger = logging.getLogger(__name__)

# Constants
DEFAULT_API_VERSION = "2024-01"
DEFAULT_TIMEOUT_SECONDS = 15.0
PRODUCT_GID_PREFIX = "gid://shopify/Product/"
VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"

PRODUCTS_QUERY = """
query getProducts($cursor: String, $first: Int!, $variants: Int!) {
  products(first: $first, after: $cursor) {
    edges {
      node {
        id
        title
        status
        variants(first: $variants) {
          edges {
            node {
              id
              title
              sku
              price
            }
          }
        }
      }
      cursor
    }
    pageInfo {
      hasNextPage
    }
  }
}
"""


class ShopifyError(Exception):
    """Shopify could not be reached or returned an unusable response"""


class ShopifyConfigError(ShopifyError):
    """Store URL or access token is not configured"""


class ShopifyVariant(BaseModel):
    """One purchasable variant of a Shopify product"""
    id: str
    title: str
    sku: str = ""
    price: str = "0"


class ShopifyProduct(BaseModel):
    """Catalog entry as returned by the GraphQL products query"""
    id: str
    title: str
    status: str
    variants: List[ShopifyVariant] = []


class ShopifyOrderState(BaseModel):
    """Internal order fields derived from a Shopify order payload"""
    order_status: OrderStatus
    financial_status: FinancialStatus
    fulfillment_status: FulfillmentStatus
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    total_amount: float
    shopify_updated_at: Optional[datetime] = None


def normalize_store_url(store_url: str) -> str:
    """Accept a bare shop domain or a full URL"""
    url = store_url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def map_order_status(shopify_order: Dict[str, Any]) -> OrderStatus:
    """Collapse Shopify cancellation/fulfillment/payment flags into one status"""
    if shopify_order.get("cancelled_at"):
        return OrderStatus.CANCELLED
    if shopify_order.get("fulfillment_status") == "fulfilled":
        return OrderStatus.FULFILLED
    if shopify_order.get("financial_status") == "paid":
        return OrderStatus.PROCESSING
    return OrderStatus.PENDING


def map_financial_status(value: Optional[str]) -> FinancialStatus:
    if value == "paid":
        return FinancialStatus.PAID
    if value in ("refunded", "partially_refunded", "voided"):
        return FinancialStatus.REFUNDED
    # authorized, partially_paid, pending, expired, unpaid
    return FinancialStatus.PENDING


def map_fulfillment_status(value: Optional[str]) -> FulfillmentStatus:
    if value == "fulfilled":
        return FulfillmentStatus.FULFILLED
    if value == "partial":
        return FulfillmentStatus.PARTIAL
    return FulfillmentStatus.UNFULFILLED


def parse_shopify_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 with offset to naive UTC, matching how timestamps are stored"""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable Shopify timestamp: {value}")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def extract_order_state(
    shopify_order: Dict[str, Any],
    current_tracking_number: Optional[str] = None,
    current_tracking_url: Optional[str] = None,
) -> ShopifyOrderState:
    """Derive the internal order state from a Shopify REST order payload.

    Tracking details come from the most recent fulfillment; when Shopify has
    none, the currently stored values are kept.
    """
    if not isinstance(shopify_order, dict):
        raise ShopifyError("Shopify order payload is not an object")

    tracking_number = current_tracking_number
    tracking_url = current_tracking_url
    fulfillments = shopify_order.get("fulfillments") or []
    if not isinstance(fulfillments, list) or not all(isinstance(f, dict) for f in fulfillments):
        raise ShopifyError("Malformed fulfillments in Shopify order")
    if fulfillments:
        latest = fulfillments[-1]
        tracking_number = latest.get("tracking_number") or tracking_number
        tracking_url = latest.get("tracking_url") or tracking_url

    try:
        total_amount = float(shopify_order.get("total_price") or "0")
    except (TypeError, ValueError):
        raise ShopifyError(f"Invalid total_price in Shopify order: {shopify_order.get('total_price')!r}")

    try:
        return ShopifyOrderState(
            order_status=map_order_status(shopify_order),
            financial_status=map_financial_status(shopify_order.get("financial_status")),
            fulfillment_status=map_fulfillment_status(shopify_order.get("fulfillment_status")),
            tracking_number=tracking_number,
            tracking_url=tracking_url,
            total_amount=total_amount,
            shopify_updated_at=parse_shopify_timestamp(shopify_order.get("updated_at")),
        )
    except ValidationError as e:
        raise ShopifyError(f"Malformed Shopify order: {e.error_count()} invalid field(s)")


class ShopifyClient:
    """Thin async client for the Shopify Admin API"""

    def __init__(
        self,
        store_url: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not store_url or not access_token:
            raise ShopifyConfigError("Shopify configuration missing")
        self.base_url = normalize_store_url(store_url)
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.transport = transport

    @property
    def admin_url(self) -> str:
        return f"{self.base_url}/admin/api/{self.api_version}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "X-Shopify-Access-Token": self.access_token,
                "Content-Type": "application/json",
            },
        )

    async def _send(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException:
            logger.error(f"Timeout calling Shopify {method} {url}")
            raise ShopifyError("Timed out contacting Shopify")
        except httpx.HTTPStatusError as e:
            logger.error(f"Shopify returned {e.response.status_code} for {method} {url}")
            raise ShopifyError(f"Shopify API error: {e.response.status_code} {e.response.reason_phrase}")
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling Shopify {method} {url}: {e}")
            raise ShopifyError(f"Could not reach Shopify: {e}")
        except ValueError:
            raise ShopifyError("Shopify returned a non-JSON response")
        if not isinstance(data, dict):
            raise ShopifyError("Shopify returned an unexpected response")
        return data

    async def get_order(self, shopify_order_id: str) -> Dict[str, Any]:
        """Fetch a single order via the REST Admin API"""
        data = await self._send("GET", f"{self.admin_url}/orders/{shopify_order_id}.json")
        order = data.get("order")
        if not order or not isinstance(order, dict):
            raise ShopifyError(f"Shopify order {shopify_order_id} not found in response")
        return order

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = await self._send(
            "POST",
            f"{self.admin_url}/graphql.json",
            json={"query": query, "variables": variables or {}},
        )
        if data.get("errors"):
            raise ShopifyError(f"Shopify GraphQL error: {data['errors']}")
        return data.get("data") or {}

    async def fetch_products(self) -> List[ShopifyProduct]:
        """Page through the whole catalog with cursor pagination"""
        rules = get_business_rules()
        products: List[ShopifyProduct] = []
        cursor = None
        has_next_page = True

        while has_next_page:
            data = await self.graphql(PRODUCTS_QUERY, {
                "cursor": cursor,
                "first": rules.SHOPIFY_PRODUCTS_PER_PAGE,
                "variants": rules.SHOPIFY_VARIANTS_PER_PRODUCT,
            })
            connection = data.get("products") or {}
            edges = connection.get("edges") or []

            for edge in edges:
                node = edge["node"]
                products.append(ShopifyProduct(
                    id=node["id"].replace(PRODUCT_GID_PREFIX, ""),
                    title=node["title"],
                    status=node.get("status") or "",
                    variants=[
                        ShopifyVariant(
                            id=v["node"]["id"].replace(VARIANT_GID_PREFIX, ""),
                            title=v["node"].get("title") or "",
                            sku=v["node"].get("sku") or "",
                            price=str(v["node"].get("price") or "0"),
                        )
                        for v in (node.get("variants") or {}).get("edges", [])
                    ],
                ))
                cursor = edge.get("cursor")

            has_next_page = bool((connection.get("pageInfo") or {}).get("hasNextPage")) and bool(edges)

        logger.info(f"Fetched {len(products)} products from Shopify")
        return products


def get_shopify_client() -> Optional[ShopifyClient]:
    """FastAPI dependency: a client for the configured store, or None"""
    store_url = os.getenv("SHOPIFY_STORE_URL")
    access_token = os.getenv("SHOPIFY_ACCESS_TOKEN")
    if not store_url or not access_token:
        return None
    return ShopifyClient(
        store_url=store_url,
        access_token=access_token,
        api_version=os.getenv("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
        timeout=float(os.getenv("SHOPIFY_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
    )
