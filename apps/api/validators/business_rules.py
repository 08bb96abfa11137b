"""Business rule configuration"""
from pydantic import BaseModel


class BusinessRules(BaseModel):
    """Business rules configuration"""
    # Pagination defaults per resource
    DEFAULT_PAGE_SIZE: int = 20
    DOCTORS_PAGE_SIZE: int = 10
    USERS_PAGE_SIZE: int = 10
    DISTRIBUTORS_PAGE_SIZE: int = 10
    DISTRICTS_PAGE_SIZE: int = 50
    CITIES_PAGE_SIZE: int = 50
    TEAMS_PAGE_SIZE: int = 50
    PRODUCTS_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200

    # Detail views and dashboard widgets
    RECENT_ITEMS_LIMIT: int = 10

    # Authentication
    LOGIN_RATE_LIMIT: str = "5/minute"

    # Orders
    LOCAL_ORDER_PREFIX: str = "LOCAL-"
    DEFAULT_CURRENCY: str = "PKR"

    # Shopify catalog paging
    SHOPIFY_PRODUCTS_PER_PAGE: int = 50
    SHOPIFY_VARIANTS_PER_PRODUCT: int = 10


business_rules = BusinessRules()


def get_business_rules() -> BusinessRules:
    """Get current business rules"""
    return business_rules
