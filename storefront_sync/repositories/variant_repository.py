"""
Variant Repository for managing Printful sync variants.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models import Variant
from .base import BaseRepository

logger = logging.getLogger(__name__)


@dataclass
class VariantChanges:
    """Counts produced by reconciling one product's variants."""
    created: int = 0
    updated: int = 0
    deleted: int = 0

    @property
    def processed(self) -> int:
        return self.created + self.updated


def _price(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, '') else Decimal('0')
    except InvalidOperation:
        return Decimal('0')


def variant_fields_from_remote(sync_variant: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Printful ``sync_variant`` payload onto Variant columns."""
    availability = sync_variant.get('availability_status')
    in_stock = sync_variant.get('in_stock')
    if in_stock is None:
        in_stock = availability in (None, 'active')
    is_ignored = bool(sync_variant.get('is_ignored', False))
    is_enabled = sync_variant.get('is_enabled')
    if is_enabled is None:
        is_enabled = not is_ignored

    return {
        'printful_id': int(sync_variant['id']),
        'external_id': str(sync_variant.get('external_id') or sync_variant['id']),
        'name': sync_variant.get('name') or f"Variant {sync_variant['id']}",
        'retail_price': _price(sync_variant.get('retail_price')),
        'currency': sync_variant.get('currency') or 'USD',
        'size': sync_variant.get('size'),
        'color': sync_variant.get('color'),
        'is_enabled': bool(is_enabled),
        'in_stock': bool(in_stock),
        'is_ignored': is_ignored,
        'files': list(sync_variant.get('files') or []),
        'options': list(sync_variant.get('options') or []),
    }


def unique_by_id(sync_variants: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Remote variants with repeated ids collapsed; the last copy wins, first position is kept."""
    by_id = {}
    for sync_variant in sync_variants:
        by_id[int(sync_variant['id'])] = sync_variant
    if len(by_id) < len(sync_variants):
        logger.warning(f"Ignoring {len(sync_variants) - len(by_id)} duplicate remote variants")
    return list(by_id.values())


class VariantRepository(BaseRepository):
    """Repository for Variant model operations."""

    def __init__(self, session: Session):
        super().__init__(Variant, session)

    def get_for_product(self, product_id: int) -> List[Variant]:
        try:
            return (
                self.session.query(Variant)
                .filter(Variant.product_id == product_id)
                .order_by(Variant.id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error getting variants for product {product_id}: {e}")
            raise

    def upsert_for_product(self, product_id: int, sync_variants: List[Dict[str, Any]]) -> VariantChanges:
        """
        Reconcile a product's variants with the remote list.

        Unseen remote ids are inserted, known ones updated in place, and local
        variants whose remote id is gone are deleted.
        """
        sync_variants = unique_by_id(sync_variants)
        changes = VariantChanges()
        existing = {v.printful_id: v for v in self.get_for_product(product_id)}
        incoming_ids = {int(v['id']) for v in sync_variants}

        try:
            for printful_id, variant in existing.items():
                if printful_id not in incoming_ids:
                    self.session.delete(variant)
                    changes.deleted += 1
            self.session.flush()

            for sync_variant in sync_variants:
                fields = variant_fields_from_remote(sync_variant)
                variant = existing.get(fields['printful_id'])
                if variant is not None:
                    for key, value in fields.items():
                        setattr(variant, key, value)
                    changes.updated += 1
                else:
                    self.session.add(Variant(product_id=product_id, **fields))
                    changes.created += 1

            self.session.flush()
            return changes
        except SQLAlchemyError as e:
            logger.error(f"Error upserting variants for product {product_id}: {e}")
            raise

    @staticmethod
    def preview_changes(existing_ids: List[int], sync_variants: List[Dict[str, Any]]) -> VariantChanges:
        """Counts ``upsert_for_product`` would produce, without touching the database."""
        existing = set(existing_ids)
        incoming = {int(v['id']) for v in sync_variants}
        return VariantChanges(
            created=len(incoming - existing),
            updated=len(incoming & existing),
            deleted=len(existing - incoming),
        )
