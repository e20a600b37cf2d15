"""
Database Models for the Storefront Catalog

This module contains SQLAlchemy models for the mirrored Printful catalog, the
admin-managed categories and tags, and the sync run bookkeeping.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Numeric, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship, validates
from datetime import datetime
import enum

Base = declarative_base()


class SyncStatus(enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @classmethod
    def terminal(cls):
        return {cls.SUCCESS.value, cls.PARTIAL.value, cls.FAILED.value}


class RuleType(enum.Enum):
    NAME_KEYWORD = "name_keyword"
    TAG_KEYWORD = "tag_keyword"
    METADATA_KEY = "metadata_key"


class Product(Base):
    """A Printful sync product mirrored into the local store."""
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True)
    printful_id = Column(Integer, unique=True, nullable=False, index=True)
    external_id = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(500), nullable=False)
    thumbnail_url = Column(Text)
    description = Column(Text)
    tags = Column(JSON, default=list)
    meta_data = Column(JSON, default=dict)
    is_ignored = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    synced_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    variants = relationship("Variant", back_populates="product", cascade="all, delete-orphan",
                            passive_deletes=True, order_by="Variant.id")
    category_links = relationship("ProductCategory", back_populates="product", cascade="all, delete-orphan",
                                  passive_deletes=True)
    tag_links = relationship("ProductTag", back_populates="product", cascade="all, delete-orphan",
                             passive_deletes=True)

    @property
    def primary_category(self):
        for link in self.category_links:
            if link.is_primary:
                return link.category
        return self.category_links[0].category if self.category_links else None

    def to_dict(self, include_variants: bool = False):
        data = {
            'id': self.id,
            'printful_id': self.printful_id,
            'external_id': self.external_id,
            'name': self.name,
            'thumbnail_url': self.thumbnail_url,
            'description': self.description,
            'tags': self.tags or [],
            'is_ignored': self.is_ignored,
            'is_active': self.is_active,
            'synced_at': self.synced_at.isoformat() if self.synced_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'categories': [
                {**link.category.to_dict(), 'is_primary': link.is_primary} for link in self.category_links
            ],
            'product_tags': [link.tag.to_dict() for link in self.tag_links],
        }
        if include_variants:
            data['variants'] = [v.to_dict() for v in self.variants]
        return data


class Variant(Base):
    """A Printful sync variant; unique per product by remote id."""
    __tablename__ = 'variants'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    printful_id = Column(Integer, nullable=False)
    external_id = Column(String(255), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    retail_price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default='USD')
    size = Column(String(100))
    color = Column(String(100))
    is_enabled = Column(Boolean, default=True, nullable=False)
    in_stock = Column(Boolean, default=True, nullable=False)
    is_ignored = Column(Boolean, default=False, nullable=False)
    files = Column(JSON, default=list)
    options = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        UniqueConstraint('product_id', 'printful_id', name='uq_variant_product_printful'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'printful_id': self.printful_id,
            'external_id': self.external_id,
            'name': self.name,
            'retail_price': str(self.retail_price) if self.retail_price is not None else None,
            'currency': self.currency,
            'size': self.size,
            'color': self.color,
            'is_enabled': self.is_enabled,
            'in_stock': self.in_stock,
            'files': self.files or [],
            'options': self.options or [],
        }


class Category(Base):
    """Storefront category, managed from the admin UI."""
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text)
    color = Column(String(7), default='#3B82F6')
    icon = Column(String(100))
    parent_id = Column(Integer, ForeignKey('categories.id', ondelete='SET NULL'), index=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    parent = relationship("Category", remote_side=[id], backref="children")
    product_links = relationship("ProductCategory", back_populates="category", passive_deletes=True)
    mapping_rules = relationship("CategoryMappingRule", back_populates="category",
                                 cascade="all, delete-orphan", passive_deletes=True)

    @validates('slug')
    def validate_slug(self, key, slug):
        if not slug or not slug.strip():
            raise ValueError("Category slug cannot be empty")
        return slug.strip().lower()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'color': self.color,
            'icon': self.icon,
            'parent_id': self.parent_id,
            'sort_order': self.sort_order,
            'is_active': self.is_active,
            'is_system': self.is_system,
        }


class Tag(Base):
    """Free-form product tag with a usage counter."""
    __tablename__ = 'tags'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    color = Column(String(7), default='#6B7280')
    is_active = Column(Boolean, default=True, nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    product_links = relationship("ProductTag", back_populates="tag", cascade="all, delete-orphan",
                                 passive_deletes=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'color': self.color,
            'is_active': self.is_active,
            'usage_count': self.usage_count,
        }


class ProductCategory(Base):
    __tablename__ = 'product_categories'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="category_links")
    category = relationship("Category", back_populates="product_links")

    __table_args__ = (
        UniqueConstraint('product_id', 'category_id', name='uq_product_category'),
    )


class ProductTag(Base):
    __tablename__ = 'product_tags'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    tag_id = Column(Integer, ForeignKey('tags.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="tag_links")
    tag = relationship("Tag", back_populates="product_links")

    __table_args__ = (
        UniqueConstraint('product_id', 'tag_id', name='uq_product_tag'),
    )


class CategoryMappingRule(Base):
    """Keyword rule used to auto-categorize newly synced products."""
    __tablename__ = 'category_mapping_rules'

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), nullable=False)
    rule_type = Column(String(20), nullable=False)
    rule_value = Column(String(255), nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    category = relationship("Category", back_populates="mapping_rules")

    @validates('rule_type')
    def validate_rule_type(self, key, rule_type):
        valid = [t.value for t in RuleType]
        if rule_type not in valid:
            raise ValueError(f"Invalid rule type: {rule_type}. Must be one of {valid}")
        return rule_type


class SyncLog(Base):
    """One reconciliation run. Mutated while running, frozen once finished."""
    __tablename__ = 'sync_logs'

    id = Column(Integer, primary_key=True)
    operation = Column(String(100), nullable=False, index=True)
    status = Column(String(20), default=SyncStatus.QUEUED.value, nullable=False, index=True)
    current_step = Column(String(255))
    progress = Column(Integer, default=0, nullable=False)

    products_processed = Column(Integer, default=0, nullable=False)
    products_created = Column(Integer, default=0, nullable=False)
    products_updated = Column(Integer, default=0, nullable=False)
    products_deleted = Column(Integer, default=0, nullable=False)
    variants_processed = Column(Integer, default=0, nullable=False)
    variants_created = Column(Integer, default=0, nullable=False)
    variants_updated = Column(Integer, default=0, nullable=False)
    variants_deleted = Column(Integer, default=0, nullable=False)

    errors = Column(JSON, default=list)
    warnings = Column(JSON, default=list)
    error_message = Column(Text)
    options = Column(JSON, default=dict)

    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime)
    duration = Column(Integer)  # milliseconds
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_sync_log_operation_status', 'operation', 'status'),
    )

    @validates('status')
    def validate_status(self, key, status):
        valid = [s.value for s in SyncStatus]
        if status not in valid:
            raise ValueError(f"Invalid sync status: {status}. Must be one of {valid}")
        return status

    @property
    def is_finished(self) -> bool:
        return self.status in SyncStatus.terminal()

    def to_dict(self):
        return {
            'id': self.id,
            'operation': self.operation,
            'status': self.status,
            'current_step': self.current_step,
            'progress': self.progress,
            'products_processed': self.products_processed,
            'products_created': self.products_created,
            'products_updated': self.products_updated,
            'products_deleted': self.products_deleted,
            'variants_processed': self.variants_processed,
            'variants_created': self.variants_created,
            'variants_updated': self.variants_updated,
            'variants_deleted': self.variants_deleted,
            'errors': self.errors or [],
            'warnings': self.warnings or [],
            'error_message': self.error_message,
            'options': self.options or {},
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration': self.duration,
        }


class SyncLock(Base):
    """Advisory lease keyed by operation name; one row per running operation."""
    __tablename__ = 'sync_locks'

    name = Column(String(100), primary_key=True)
    owner = Column(String(255), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
