"""
Tag Repository for managing product tags.
"""

import re
from typing import List, Optional, Dict, Any
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models import Tag, ProductTag
from .base import BaseRepository

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    """Lowercase, spaces to dashes, drop anything that is not a word character or dash."""
    slug = re.sub(r'\s+', '-', value.strip().lower())
    return re.sub(r'[^a-z0-9-]', '', slug).strip('-')


class TagRepository(BaseRepository):
    """Repository for Tag model operations."""

    def __init__(self, session: Session):
        super().__init__(Tag, session)

    def get_by_slug(self, slug: str) -> Optional[Tag]:
        return self.get_by(slug=slug)

    def get_by_name(self, name: str) -> Optional[Tag]:
        return self.get_by(name=name)

    def list_ordered(self, include_inactive: bool = False) -> List[Tag]:
        query = self.session.query(Tag)
        if not include_inactive:
            query = query.filter(Tag.is_active.is_(True))
        return query.order_by(Tag.name).all()

    def create_if_not_exists(self, name: str, slug: Optional[str] = None, color: str = '#6B7280',
                             description: Optional[str] = None) -> Tag:
        """Return the tag with this slug, creating it first when missing."""
        slug = slug or slugify(name)
        existing = self.get_by_slug(slug)
        if existing:
            return existing
        return self.create(name=name, slug=slug, color=color, description=description)

    def get_tags_for_product(self, product_id: int) -> List[Tag]:
        return (
            self.session.query(Tag)
            .join(ProductTag, ProductTag.tag_id == Tag.id)
            .filter(ProductTag.product_id == product_id)
            .order_by(Tag.name)
            .all()
        )

    def assign_tags_to_product(self, product_id: int, tag_ids: List[int]) -> List[Tag]:
        """Replace a product's tags and refresh usage counts of every tag touched."""
        try:
            previous = {
                row[0] for row in
                self.session.query(ProductTag.tag_id).filter(ProductTag.product_id == product_id).all()
            }
            self.session.query(ProductTag).filter(ProductTag.product_id == product_id).delete(
                synchronize_session='fetch'
            )
            unique_ids = list(dict.fromkeys(tag_ids))
            for tag_id in unique_ids:
                self.session.add(ProductTag(product_id=product_id, tag_id=tag_id))
            self.session.flush()

            for tag_id in previous | set(unique_ids):
                self.update_usage_count(tag_id)
            return self.get_tags_for_product(product_id)
        except SQLAlchemyError as e:
            logger.error(f"Error assigning tags to product {product_id}: {e}")
            raise

    def update_usage_count(self, tag_id: int) -> None:
        count = (
            self.session.query(func.count(ProductTag.id))
            .filter(ProductTag.tag_id == tag_id)
            .scalar()
        ) or 0
        self.update(tag_id, usage_count=count)

    def search(self, query: str, limit: int = 10) -> List[Tag]:
        return (
            self.session.query(Tag)
            .filter(Tag.is_active.is_(True), Tag.name.ilike(f"%{query}%"))
            .order_by(Tag.usage_count.desc(), Tag.name)
            .limit(limit)
            .all()
        )

    def get_popular(self, limit: int = 20) -> List[Tag]:
        return (
            self.session.query(Tag)
            .filter(Tag.is_active.is_(True))
            .order_by(Tag.usage_count.desc(), Tag.name)
            .limit(limit)
            .all()
        )

    def get_with_stats(self) -> List[Dict[str, Any]]:
        counts = dict(
            self.session.query(ProductTag.tag_id, func.count(ProductTag.id)).group_by(ProductTag.tag_id).all()
        )
        return [{**tag.to_dict(), 'product_count': counts.get(tag.id, 0)} for tag in self.list_ordered(True)]
