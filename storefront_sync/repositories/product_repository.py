"""
Product Repository for managing mirrored Printful products.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError

from ..models import Product, ProductCategory, Category
from .base import BaseRepository

logger = logging.getLogger(__name__)


def product_fields_from_remote(sync_product: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Printful ``sync_product`` payload onto Product columns."""
    return {
        'printful_id': int(sync_product['id']),
        'external_id': str(sync_product.get('external_id') or sync_product['id']),
        'name': sync_product.get('name') or f"Product {sync_product['id']}",
        'thumbnail_url': sync_product.get('thumbnail_url'),
        'description': sync_product.get('description'),
        'tags': list(sync_product.get('tags') or []),
        'meta_data': dict(sync_product.get('metadata') or {}),
        'is_ignored': bool(sync_product.get('is_ignored', False)),
    }


class ProductRepository(BaseRepository):
    """Repository for Product model operations."""

    def __init__(self, session: Session):
        super().__init__(Product, session)

    def get_by_printful_id(self, printful_id: int) -> Optional[Product]:
        """Get a product by its Printful sync product id."""
        return self.get_by(printful_id=printful_id)

    def get_with_relations(self, product_id: int) -> Optional[Product]:
        """Get a product with variants, categories and tags loaded."""
        try:
            return (
                self.session.query(Product)
                .options(
                    selectinload(Product.variants),
                    selectinload(Product.category_links).selectinload(ProductCategory.category),
                    selectinload(Product.tag_links),
                )
                .filter(Product.id == product_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error loading product {product_id}: {e}")
            raise

    def list_all(self) -> List[Product]:
        """All local products ordered by id."""
        try:
            return self.session.query(Product).order_by(Product.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing products: {e}")
            raise

    def list_printful_ids(self) -> List[int]:
        try:
            return [row[0] for row in self.session.query(Product.printful_id).all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing product printful ids: {e}")
            raise

    def list_storefront(self, category_slug: Optional[str] = None, search: Optional[str] = None,
                        include_inactive: bool = False) -> List[Product]:
        """Products visible in the storefront, optionally narrowed to a category."""
        try:
            query = self.session.query(Product).options(selectinload(Product.variants))
            if not include_inactive:
                query = query.filter(Product.is_active.is_(True), Product.is_ignored.is_(False))
            if category_slug:
                query = (
                    query.join(ProductCategory, ProductCategory.product_id == Product.id)
                    .join(Category, Category.id == ProductCategory.category_id)
                    .filter(Category.slug == category_slug)
                )
            if search:
                query = query.filter(Product.name.ilike(f"%{search}%"))
            return query.order_by(Product.name).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing storefront products: {e}")
            raise

    def upsert_from_remote(self, sync_product: Dict[str, Any]) -> Tuple[Product, bool]:
        """Create or update a product from a Printful payload. Returns ``(product, created)``."""
        fields = product_fields_from_remote(sync_product)
        fields['synced_at'] = datetime.utcnow()

        existing = self.get_by_printful_id(fields['printful_id'])
        if existing:
            for key, value in fields.items():
                setattr(existing, key, value)
            self.session.flush()
            return existing, False

        return self.create(**fields), True

    def delete_with_variants(self, product_id: int) -> int:
        """Delete a product; its variants and links cascade. Returns the number of variants removed."""
        product = self.get(product_id)
        if not product:
            return 0
        variant_count = len(product.variants)
        self.session.delete(product)
        self.session.flush()
        return variant_count

    def set_active(self, product_id: int, is_active: bool) -> Optional[Product]:
        return self.update(product_id, is_active=is_active)
