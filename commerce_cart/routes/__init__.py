from .categories import register_category_routes
from .orders import register_order_routes
from .products import register_product_routes
from .users import register_user_routes

__all__ = [
    "register_category_routes",
    "register_order_routes",
    "register_product_routes",
    "register_user_routes",
]
