# app/services/catalog_service.py
"""
Admin side of the catalogue: products and categories.

Partial updates are merged onto the stored record and re-validated as a whole
(e.g. a new `discount_price` must still not exceed the price); a merge that
fails validation raises `InvalidUpdate` and nothing is written.

Deletes follow the storefront rule "hidden unless hard": by default the record
is only deactivated (`is_active=False`), `hard=True` removes it. Carts drop
missing or inactive products on their next read; placed orders keep their own
item snapshots either way.
"""
import logging
import uuid
from typing import Dict, List, Optional

from pydantic import ValidationError

from app.core.errors import CategoryNotFound, InvalidUpdate, ProductNotFound
from app.repositories.base import CategoryRepository, ProductRepository
from app.schemas.product import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
)

logger = logging.getLogger("grocer.catalog")


class CatalogService:
    def __init__(self, products: ProductRepository, categories: CategoryRepository):
        self._products = products
        self._categories = categories

    # ---------- products ----------
    def list_products(self, category_id: Optional[str] = None) -> List[Product]:
        return self._products.list(category_id=category_id, active_only=True)

    def get_product(self, product_id: str) -> Product:
        """Storefront read: inactive products look missing."""
        product = self._products.get(product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(product_id)
        return product

    def create_product(self, payload: ProductCreate) -> Product:
        product = Product(id=uuid.uuid4().hex, **payload.model_dump())
        self._products.save(product)
        logger.info("Product %s created", product.id)
        return product

    def update_product(self, product_id: str, payload: ProductUpdate) -> Product:
        current = self._products.get(product_id)
        if current is None:
            raise ProductNotFound(product_id)
        product = _merged(Product, "product", current.model_dump(), payload.model_dump(exclude_unset=True))
        self._products.save(product)
        return product

    def delete_product(self, product_id: str, hard: bool = False) -> Dict[str, str]:
        current = self._products.get(product_id)
        if current is None:
            raise ProductNotFound(product_id)
        if hard:
            if not self._products.delete(product_id):
                raise ProductNotFound(product_id)
            logger.info("Product %s hard-deleted", product_id)
            return {"detail": "Product hard-deleted"}
        self._products.save(current.model_copy(update={"is_active": False}))
        logger.info("Product %s deactivated", product_id)
        return {"detail": "Product soft-deleted"}

    # ---------- categories ----------
    def list_categories(self) -> List[Category]:
        return self._categories.list()

    def create_category(self, payload: CategoryCreate) -> Category:
        category = Category(id=uuid.uuid4().hex, **payload.model_dump())
        return self._categories.save(category)

    def update_category(self, category_id: str, payload: CategoryUpdate) -> Category:
        current = self._categories.get(category_id)
        if current is None:
            raise CategoryNotFound(category_id)
        category = _merged(Category, "category", current.model_dump(), payload.model_dump(exclude_unset=True))
        return self._categories.save(category)

    def delete_category(self, category_id: str, hard: bool = False) -> Dict[str, str]:
        current = self._categories.get(category_id)
        if current is None:
            raise CategoryNotFound(category_id)
        if hard:
            self._categories.delete(category_id)
            return {"detail": "Category permanently deleted"}
        self._categories.save(current.model_copy(update={"is_active": False}))
        return {"detail": "Category deleted"}


def _merged(model, entity: str, current: dict, changes: dict):
    try:
        return model(**{**current, **changes})
    except ValidationError as exc:
        raise InvalidUpdate.from_validation(entity, exc) from exc
