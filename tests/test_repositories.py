"""Tests for the repository layer."""
import pytest
from datetime import datetime, timedelta

from storefront_sync.exceptions import SyncLogClosedError
from storefront_sync.models import SyncLock, SyncLog
from storefront_sync.repositories import (
    CategoryRepository,
    ProductRepository,
    SyncLockRepository,
    SyncLogRepository,
    TagRepository,
    VariantRepository,
)

from conftest import make_remote_product


def create_product(session, printful_id, variant_ids=None):
    remote = make_remote_product(printful_id, variant_ids=variant_ids)
    product, _ = ProductRepository(session).upsert_from_remote(remote['sync_product'])
    VariantRepository(session).upsert_for_product(product.id, remote['sync_variants'])
    return product


class TestSyncLogRepository:

    def test_lifecycle(self, db):
        with db.session_scope() as session:
            repo = SyncLogRepository(session)
            sync = repo.create_sync_log('full_sync', {'dry_run': True})
            assert sync.status == 'queued'

            repo.start_sync(sync.id)
            repo.update_progress(sync.id, 40, 'Processing', products_created=2)
            repo.update_progress(sync.id, 30, 'Late update')
            repo.add_warning(sync.id, 'Count mismatch', {'missing': [5]})
            completed = repo.complete_sync(sync.id, {'products_created': 3})

            assert completed.status == 'success'
            assert completed.progress == 100
            assert completed.products_created == 3
            assert completed.warnings[0]['message'] == 'Count mismatch'
            assert completed.warnings[0]['details'] == {'missing': [5]}
            assert completed.duration >= 0

    def test_progress_is_capped(self, db):
        with db.session_scope() as session:
            repo = SyncLogRepository(session)
            sync = repo.create_sync_log('full_sync')
            repo.update_progress(sync.id, 250)
            assert sync.progress == 100

    def test_errors_make_run_partial(self, db):
        with db.session_scope() as session:
            repo = SyncLogRepository(session)
            sync = repo.create_sync_log('full_sync')
            repo.start_sync(sync.id)
            repo.add_error(sync.id, 'Failed to process Tee: boom')
            assert repo.complete_sync(sync.id).status == 'partial'

    def test_finished_log_is_frozen(self, db):
        with db.session_scope() as session:
            repo = SyncLogRepository(session)
            sync = repo.create_sync_log('full_sync')
            repo.fail_sync(sync.id, 'boom')

            with pytest.raises(SyncLogClosedError):
                repo.update_progress(sync.id, 50)
            with pytest.raises(SyncLogClosedError):
                repo.add_warning(sync.id, 'late')

    def test_fail_stale_syncs(self, db):
        with db.session_scope() as session:
            repo = SyncLogRepository(session)
            stale = repo.start_sync(repo.create_sync_log('full_sync').id)
            fresh = repo.start_sync(repo.create_sync_log('full_sync').id)
            stale.updated_at = datetime.utcnow() - timedelta(minutes=30)
            session.flush()

            assert repo.fail_stale_syncs('full_sync', 300) == [stale.id]
            assert stale.status == 'failed'
            assert fresh.status == 'running'
            assert repo.get_active_sync('full_sync').id == fresh.id

    def test_timestamps_are_utc_and_set_client_side(self, db):
        updated_at = SyncLog.__table__.c.updated_at
        assert updated_at.default.is_callable
        assert updated_at.onupdate.is_callable

        with db.session_scope() as session:
            repo = SyncLogRepository(session)
            sync = repo.start_sync(repo.create_sync_log('full_sync').id)

            assert abs(datetime.utcnow() - sync.updated_at) < timedelta(minutes=1)
            assert repo.fail_stale_syncs('full_sync', 60) == []
            assert sync.status == 'running'


class TestSyncLockRepository:

    def test_acquire_and_release(self, db):
        with db.session_scope() as session:
            repo = SyncLockRepository(session)
            assert repo.acquire('full_sync', 'worker-1', 600)
            assert not repo.acquire('full_sync', 'worker-2', 600)
            assert repo.owner_of('full_sync') == 'worker-1'

            assert not repo.release('full_sync', 'worker-2')
            assert repo.release('full_sync', 'worker-1')
            assert repo.owner_of('full_sync') is None
            assert repo.acquire('full_sync', 'worker-2', 600)

    def test_expired_lease_is_taken_over(self, db):
        with db.session_scope() as session:
            session.add(SyncLock(
                name='full_sync',
                owner='dead-worker',
                acquired_at=datetime.utcnow() - timedelta(hours=2),
                expires_at=datetime.utcnow() - timedelta(hours=1),
            ))

        with db.session_scope() as session:
            repo = SyncLockRepository(session)
            assert repo.owner_of('full_sync') is None
            assert repo.acquire('full_sync', 'worker-1', 600)
            assert repo.owner_of('full_sync') == 'worker-1'


class TestCatalogRepositories:

    def test_variant_upsert_counts(self, db):
        with db.session_scope() as session:
            product = create_product(session, 1, variant_ids=[101, 102])
            remote = make_remote_product(1, variant_ids=[102, 103, 104])

            changes = VariantRepository(session).upsert_for_product(product.id, remote['sync_variants'])

            assert (changes.created, changes.updated, changes.deleted) == (2, 1, 1)
            assert changes.processed == 3
            ids = [v.printful_id for v in VariantRepository(session).get_for_product(product.id)]
            assert sorted(ids) == [102, 103, 104]

    def test_repeated_remote_variant_ids_are_stored_once(self, db):
        with db.session_scope() as session:
            product = create_product(session, 1, variant_ids=[])
            remote = make_remote_product(1, variant_ids=[101, 101])
            remote['sync_variants'][1]['color'] = 'White'

            changes = VariantRepository(session).upsert_for_product(product.id, remote['sync_variants'])

            assert (changes.created, changes.updated, changes.deleted) == (1, 0, 0)
            variants = VariantRepository(session).get_for_product(product.id)
            assert [(v.printful_id, v.color) for v in variants] == [(101, 'White')]

    def test_preview_matches_upsert(self):
        remote = make_remote_product(1, variant_ids=[102, 103])
        changes = VariantRepository.preview_changes([101, 102], remote['sync_variants'])
        assert (changes.created, changes.updated, changes.deleted) == (1, 1, 1)

    def test_delete_with_variants(self, db):
        with db.session_scope() as session:
            product = create_product(session, 1, variant_ids=[101, 102])
            assert ProductRepository(session).delete_with_variants(product.id) == 2
            assert VariantRepository(session).count() == 0

    def test_category_deletion_blockers(self, db):
        with db.session_scope() as session:
            repo = CategoryRepository(session)
            system = repo.create(name='Children', slug='children', is_system=True)
            parent = repo.create(name='Apparel', slug='apparel')
            repo.create(name='Shirts', slug='shirts', parent_id=parent.id)
            used = repo.create(name='Sale', slug='sale')
            free = repo.create(name='Empty', slug='empty')
            product = create_product(session, 1)
            repo.assign_to_product(product.id, used.id, is_primary=True)

            assert repo.deletion_blocker(system) == 'Cannot delete system categories'
            assert repo.deletion_blocker(parent) == 'Cannot delete category with child categories'
            assert repo.deletion_blocker(used) == 'Cannot delete category with associated products'
            assert repo.deletion_blocker(free) is None

    def test_single_primary_category(self, db):
        with db.session_scope() as session:
            repo = CategoryRepository(session)
            first = repo.create(name='Adults', slug='adults')
            second = repo.create(name='Sale', slug='sale')
            product = create_product(session, 1)

            repo.assign_to_product(product.id, first.id, is_primary=True)
            repo.assign_to_product(product.id, second.id, is_primary=True)
            session.expire_all()

            product = ProductRepository(session).get(product.id)
            assert [link.category.slug for link in product.category_links if link.is_primary] == ['sale']
            assert product.primary_category.slug == 'sale'

    def test_tag_usage_counts(self, db):
        with db.session_scope() as session:
            repo = TagRepository(session)
            summer = repo.create_if_not_exists('Summer Vibes')
            retro = repo.create_if_not_exists('Retro')
            assert summer.slug == 'summer-vibes'
            assert repo.create_if_not_exists('Summer Vibes').id == summer.id

            first = create_product(session, 1)
            second = create_product(session, 2)
            repo.assign_tags_to_product(first.id, [summer.id, retro.id])
            repo.assign_tags_to_product(second.id, [summer.id])
            assert summer.usage_count == 2
            assert retro.usage_count == 1

            repo.assign_tags_to_product(first.id, [retro.id])
            assert summer.usage_count == 1
            assert [t.slug for t in repo.get_popular()] == ['retro', 'summer-vibes']
