"""Storefront REST backend: products, categories, orders and users over MongoDB."""

from .app import create_app
from .config import Settings

__all__ = ["create_app", "Settings"]
