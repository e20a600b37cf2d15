"""
Categorization service.

Assigns newly synced products to a category using keyword mapping rules and
attaches marketing and Printful tags. Also seeds the default system
categories and their rules.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models import Category, Product, RuleType
from ..repositories.category_repository import CategoryRepository
from ..repositories.tag_repository import TagRepository, slugify

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {'name': 'Children', 'slug': 'children', 'description': 'Products designed for kids and children',
     'color': '#FF6B6B', 'icon': 'baby', 'sort_order': 1},
    {'name': 'Adults', 'slug': 'adults', 'description': 'Products designed for adults',
     'color': '#4ECDC4', 'icon': 'user', 'sort_order': 2},
    {'name': 'Accessories', 'slug': 'accessories', 'description': 'Fashion accessories and add-ons',
     'color': '#96CEB4', 'icon': 'shopping-bag', 'sort_order': 3},
    {'name': 'Home & Living', 'slug': 'home-living', 'description': 'Home decor and lifestyle products',
     'color': '#FFA726', 'icon': 'home', 'sort_order': 4},
]

DEFAULT_NAME_KEYWORDS = {
    'children': ['kids', 'child', 'children', 'baby', 'toddler', 'youth', 'junior'],
    'adults': ['adult', 'men', 'women', 'grown', 'mature'],
    'accessories': ['bag', 'backpack', 'hat', 'cap', 'accessory', 'accessories'],
    'home-living': ['home', 'living', 'decor', 'decoration', 'house', 'room', 'wall', 'cushion', 'pillow', 'blanket'],
}
DEFAULT_RULE_PRIORITY = 10

MARKETING_KEYWORDS = ['new', 'trending', 'popular', 'best', 'top', 'featured']
MARKETING_TAG_COLOR = '#6B7280'
PRINTFUL_TAG_COLOR = '#3B82F6'
PRINTFUL_TAG_LIMIT = 3


class CategorizationService:
    """Rule-based category and tag assignment for products."""

    def __init__(self, session: Session):
        self.session = session
        self.categories = CategoryRepository(session)
        self.tags = TagRepository(session)

    def seed_defaults(self) -> int:
        """Create missing system categories and keyword rules. Returns how many rows were added."""
        added = 0
        for data in DEFAULT_CATEGORIES:
            if not self.categories.get_by_slug(data['slug']):
                self.categories.create(is_system=True, **data)
                added += 1

        for slug, keywords in DEFAULT_NAME_KEYWORDS.items():
            category = self.categories.get_by_slug(slug)
            if category is None:
                continue
            for keyword in keywords:
                if not self.categories.rule_exists(category.id, RuleType.NAME_KEYWORD.value, keyword):
                    self.categories.create_rule(category.id, RuleType.NAME_KEYWORD.value, keyword,
                                                priority=DEFAULT_RULE_PRIORITY)
                    added += 1

        logger.info(f"Seeded {added} default categories and mapping rules")
        return added

    def match_category(self, product: Product) -> Optional[Category]:
        """First active rule, by priority, that matches the product."""
        name = (product.name or '').lower()
        tags = [str(t).lower() for t in (product.tags or [])]
        metadata = product.meta_data or {}

        for rule in self.categories.get_active_rules():
            value = rule.rule_value.lower()
            if rule.rule_type == RuleType.NAME_KEYWORD.value:
                matches = value in name
            elif rule.rule_type == RuleType.TAG_KEYWORD.value:
                matches = any(value in tag for tag in tags)
            else:
                matches = bool(metadata.get(rule.rule_value))
            if matches:
                return rule.category
        return None

    def auto_categorize(self, product: Product) -> Optional[Category]:
        """Assign the matching category as the product's primary category."""
        category = self.match_category(product)
        if category is None:
            logger.debug(f"No category rule matched product {product.printful_id}")
            return None
        self.categories.assign_to_product(product.id, category.id, is_primary=True)
        logger.info(f"Categorized product {product.printful_id} as '{category.slug}'")
        return category

    def auto_tag(self, product: Product) -> List[str]:
        """Tag the product from name keywords and its first Printful tags. Returns tag slugs."""
        name = (product.name or '').lower()
        tag_ids = []

        for keyword in MARKETING_KEYWORDS:
            if keyword in name:
                tag = self.tags.create_if_not_exists(
                    name=keyword.capitalize(),
                    slug=keyword,
                    color=MARKETING_TAG_COLOR,
                    description=f"Auto-generated tag for {keyword} products",
                )
                tag_ids.append(tag.id)

        for tag_name in (product.tags or [])[:PRINTFUL_TAG_LIMIT]:
            slug = slugify(str(tag_name))
            if not slug:
                continue
            tag = self.tags.create_if_not_exists(
                name=str(tag_name),
                slug=slug,
                color=PRINTFUL_TAG_COLOR,
                description="Auto-generated tag from Printful",
            )
            tag_ids.append(tag.id)

        if not tag_ids:
            return []
        return [tag.slug for tag in self.tags.assign_tags_to_product(product.id, tag_ids)]

    def categorize_and_tag(self, product: Product) -> dict:
        category = self.auto_categorize(product)
        tag_slugs = self.auto_tag(product)
        return {
            'category': category.slug if category else None,
            'tags': tag_slugs,
        }
