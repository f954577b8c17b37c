"""SQLAlchemy models for menu-pricing."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import all models to register them with Base.metadata
from .ingredient import Ingredient, IngredientCostHistory
from .product import Product, BOMLine, ProductChannelPrice
from .channel import SalesChannel, PricingConfig
from .sale import Sale
from .price_audit import PriceChangeAudit

__all__ = [
    "Base",
    "Ingredient",
    "IngredientCostHistory",
    "Product",
    "BOMLine",
    "ProductChannelPrice",
    "SalesChannel",
    "PricingConfig",
    "Sale",
    "PriceChangeAudit",
]
