"""
Shared repository plumbing: primary-key lookup, create/update/delete with
flush, counting and paging.
"""

from typing import Type, TypeVar, List, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func
import logging

from ..models import Base

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=Base)


class BaseRepository:
    """Operations every model repository gets. Writes flush but never commit."""

    def __init__(self, model: Type[T], session: Session):
        self.model = model
        self.session = session

    def _equal_to(self, query, filters: Optional[Dict[str, Any]]):
        for name, value in (filters or {}).items():
            if hasattr(self.model, name):
                query = query.filter(getattr(self.model, name) == value)
        return query

    def get(self, id: int) -> Optional[T]:
        try:
            return self.session.get(self.model, id)
        except SQLAlchemyError as e:
            logger.error(f"Error loading {self.model.__name__} {id}: {e}")
            raise

    def get_by(self, **kwargs) -> Optional[T]:
        """First row whose columns equal ``kwargs``."""
        try:
            return self.session.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            logger.error(f"Error looking up {self.model.__name__} by {kwargs}: {e}")
            raise

    def create(self, **kwargs) -> T:
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            self.session.flush()  # assigns the id
            return instance
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            raise

    def update(self, id: int, **kwargs) -> Optional[T]:
        """Set attributes on the row with ``id``; unknown names are ignored. None if missing."""
        instance = self.get(id)
        if instance is None:
            return None
        try:
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            self.session.flush()
            return instance
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model.__name__} {id}: {e}")
            raise

    def delete(self, id: int) -> bool:
        instance = self.get(id)
        if instance is None:
            return False
        try:
            self.session.delete(instance)
            self.session.flush()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.model.__name__} {id}: {e}")
            raise

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            query = self._equal_to(self.session.query(func.count(self.model.id)), filters)
            return query.scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Error counting {self.model.__name__}: {e}")
            raise

    def paginate(self, page: int = 1, per_page: int = 20, filters: Optional[Dict[str, Any]] = None,
                 order_by=None) -> Dict[str, Any]:
        """One page of rows with ``total``, ``page``, ``per_page`` and ``pages``."""
        try:
            query = self._equal_to(self.session.query(self.model), filters)
            if order_by is not None:
                query = query.order_by(order_by)
            total = query.count()
            items: List[T] = query.offset((page - 1) * per_page).limit(per_page).all()
        except SQLAlchemyError as e:
            logger.error(f"Error paging {self.model.__name__}: {e}")
            raise

        return {
            'items': items,
            'total': total,
            'page': page,
            'per_page': per_page,
            'pages': (total + per_page - 1) // per_page if per_page else 0,
        }
