"""
Repository pattern implementation for database operations.
"""

from .base import BaseRepository
from .product_repository import ProductRepository
from .variant_repository import VariantRepository, VariantChanges
from .category_repository import CategoryRepository
from .tag_repository import TagRepository
from .sync_log_repository import SyncLogRepository
from .sync_lock_repository import SyncLockRepository

__all__ = [
    'BaseRepository',
    'ProductRepository',
    'VariantRepository',
    'VariantChanges',
    'CategoryRepository',
    'TagRepository',
    'SyncLogRepository',
    'SyncLockRepository',
]
