"""
Category Repository for managing storefront categories and their mapping rules.
"""

from typing import List, Optional, Dict, Any
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models import Category, CategoryMappingRule, ProductCategory, Product
from .base import BaseRepository

logger = logging.getLogger(__name__)


class CategoryRepository(BaseRepository):
    """Repository for Category model operations."""

    def __init__(self, session: Session):
        super().__init__(Category, session)

    def get_by_slug(self, slug: str) -> Optional[Category]:
        """Get category by slug."""
        return self.get_by(slug=slug)

    def get_all_slugs(self) -> List[str]:
        return [row[0] for row in self.session.query(Category.slug).all()]

    def list_ordered(self, include_inactive: bool = False, search: Optional[str] = None) -> List[Category]:
        """Categories ordered by sort order then name."""
        try:
            query = self.session.query(Category)
            if not include_inactive:
                query = query.filter(Category.is_active.is_(True))
            if search:
                query = query.filter(Category.name.ilike(f"%{search}%"))
            return query.order_by(Category.sort_order, Category.name).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing categories: {e}")
            raise

    def get_children(self, parent_id: int) -> List[Category]:
        return (
            self.session.query(Category)
            .filter(Category.parent_id == parent_id)
            .order_by(Category.sort_order, Category.name)
            .all()
        )

    def product_counts(self, include_inactive: bool = False) -> Dict[int, int]:
        """Map of category id to number of linked products."""
        try:
            query = (
                self.session.query(ProductCategory.category_id, func.count(ProductCategory.product_id))
                .join(Product, Product.id == ProductCategory.product_id)
            )
            if not include_inactive:
                query = query.filter(Product.is_active.is_(True))
            return {category_id: count for category_id, count in query.group_by(ProductCategory.category_id).all()}
        except SQLAlchemyError as e:
            logger.error(f"Error counting category products: {e}")
            raise

    def get_product_count(self, category_id: int) -> int:
        return (
            self.session.query(func.count(ProductCategory.id))
            .filter(ProductCategory.category_id == category_id)
            .scalar()
        ) or 0

    def get_all_with_counts(self, include_inactive: bool = False, search: Optional[str] = None) -> List[Dict[str, Any]]:
        counts = self.product_counts()
        return [
            {**category.to_dict(), 'product_count': counts.get(category.id, 0)}
            for category in self.list_ordered(include_inactive=include_inactive, search=search)
        ]

    def get_category_tree(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        """Nested category dicts, roots first."""
        nodes = {c['id']: {**c, 'children': []} for c in self.get_all_with_counts(include_inactive=include_inactive)}
        roots = []
        for node in nodes.values():
            parent = nodes.get(node['parent_id'])
            if parent is not None:
                parent['children'].append(node)
            else:
                roots.append(node)
        return roots

    def deletion_blocker(self, category: Category) -> Optional[str]:
        """Reason the category may not be deleted, or None when deletion is allowed."""
        if category.is_system:
            return 'Cannot delete system categories'
        if self.get_product_count(category.id) > 0:
            return 'Cannot delete category with associated products'
        if self.get_children(category.id):
            return 'Cannot delete category with child categories'
        return None

    def assign_to_product(self, product_id: int, category_id: int, is_primary: bool = False) -> ProductCategory:
        """Link a product to a category; a primary link demotes any other primary link."""
        try:
            if is_primary:
                (
                    self.session.query(ProductCategory)
                    .filter(ProductCategory.product_id == product_id, ProductCategory.is_primary.is_(True))
                    .update({ProductCategory.is_primary: False}, synchronize_session='fetch')
                )

            link = (
                self.session.query(ProductCategory)
                .filter_by(product_id=product_id, category_id=category_id)
                .first()
            )
            if link:
                link.is_primary = is_primary
            else:
                link = ProductCategory(product_id=product_id, category_id=category_id, is_primary=is_primary)
                self.session.add(link)
            self.session.flush()
            return link
        except SQLAlchemyError as e:
            logger.error(f"Error assigning category {category_id} to product {product_id}: {e}")
            raise

    def set_product_categories(self, product_id: int, category_ids: List[int],
                               primary_category_id: Optional[int] = None) -> List[ProductCategory]:
        """Replace a product's category links."""
        self.session.query(ProductCategory).filter(ProductCategory.product_id == product_id).delete(
            synchronize_session='fetch'
        )
        self.session.flush()
        if primary_category_id is None and category_ids:
            primary_category_id = category_ids[0]
        return [
            self.assign_to_product(product_id, category_id, is_primary=(category_id == primary_category_id))
            for category_id in dict.fromkeys(category_ids)
        ]

    def get_active_rules(self) -> List[CategoryMappingRule]:
        """Active mapping rules on active categories, highest priority first."""
        return (
            self.session.query(CategoryMappingRule)
            .join(Category, Category.id == CategoryMappingRule.category_id)
            .filter(CategoryMappingRule.is_active.is_(True), Category.is_active.is_(True))
            .order_by(CategoryMappingRule.priority.desc(), CategoryMappingRule.id)
            .all()
        )

    def create_rule(self, category_id: int, rule_type: str, rule_value: str, priority: int = 0) -> CategoryMappingRule:
        rule = CategoryMappingRule(
            category_id=category_id,
            rule_type=rule_type,
            rule_value=rule_value,
            priority=priority,
        )
        self.session.add(rule)
        self.session.flush()
        return rule

    def rule_exists(self, category_id: int, rule_type: str, rule_value: str) -> bool:
        return self.session.query(CategoryMappingRule).filter_by(
            category_id=category_id, rule_type=rule_type, rule_value=rule_value
        ).first() is not None
