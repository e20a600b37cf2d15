#!/usr/bin/env python3
"""
Storefront Sync CLI

Command-line entry points for catalog syncs and database setup.

Exit codes: 0 on a completed run (success or partial), 1 on a fatal error,
2 when another sync holds the lock.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import get_config
from .context import AppContext
from .exceptions import SyncAlreadyRunningError
from .services.categorization_service import CategorizationService
from .services.sync_service import SyncOptions
from .logging_config import setup_cli_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOCKED = 2


def run_sync(args, ctx: AppContext) -> int:
    """Run a full catalog sync in the foreground."""
    options = SyncOptions(
        dry_run=args.dry_run,
        force_delete=args.force_delete,
        skip_verification=args.skip_verification,
    )
    if options.dry_run:
        logger.info("DRY RUN: no products or variants will be changed")

    try:
        stats = ctx.sync_engine().run_full_sync(options)
    except SyncAlreadyRunningError as e:
        logger.error(str(e))
        return EXIT_LOCKED
    except Exception as e:
        logger.error(f"Sync failed: {e}")
        return EXIT_FAILED

    print(json.dumps(stats.to_dict(), indent=2))
    if stats.errors:
        logger.warning(f"Sync finished with {len(stats.errors)} errors")
    return EXIT_OK


def init_db(args, ctx: AppContext) -> int:
    """Create tables and optionally seed default categories."""
    try:
        ctx.db.create_tables()
        if args.seed:
            with ctx.db.session_scope() as session:
                added = CategorizationService(session).seed_defaults()
            logger.info(f"Seeded {added} default rows")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        return EXIT_FAILED
    logger.info("Database initialized")
    return EXIT_OK


def show_sync_logs(args, ctx: AppContext) -> int:
    """Print recent sync runs."""
    try:
        logs = ctx.store.recent_sync_logs(ctx.sync_settings.operation, limit=args.limit)
    except Exception as e:
        logger.error(f"Could not read sync logs: {e}")
        return EXIT_FAILED

    for log in logs:
        print(
            f"#{log['id']} {log['status']:<8} {log['progress']:>3}% "
            f"started {log['started_at']} "
            f"+{log['products_created']} ~{log['products_updated']} -{log['products_deleted']} "
            f"errors={len(log['errors'])} warnings={len(log['warnings'])}"
        )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='storefront-sync',
        description='Printful catalog sync and database management',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--env', help='Configuration name (development, production, testing)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    sync_parser = subparsers.add_parser('sync', help='Run a full catalog sync from Printful')
    sync_parser.add_argument('--dry-run', action='store_true', help='Report changes without writing them')
    sync_parser.add_argument('--force-delete', action='store_true',
                             help='Delete orphans without re-checking them against Printful')
    sync_parser.add_argument('--skip-verification', action='store_true',
                             help='Skip the final local/remote comparison')
    sync_parser.set_defaults(func=run_sync)

    init_parser = subparsers.add_parser('init-db', help='Create database tables')
    init_parser.add_argument('--seed', action='store_true', help='Seed default categories and mapping rules')
    init_parser.set_defaults(func=init_db)

    logs_parser = subparsers.add_parser('sync-logs', help='Show recent sync runs')
    logs_parser.add_argument('--limit', type=int, default=10, help='Number of runs to show (default: 10)')
    logs_parser.set_defaults(func=show_sync_logs)

    return parser


def main(argv: Optional[List[str]] = None, context: Optional[AppContext] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        return EXIT_FAILED

    setup_cli_logging(args.verbose)

    try:
        ctx = context or AppContext(get_config(args.env))
        ctx.initialize()
    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        return EXIT_FAILED

    try:
        return args.func(args, ctx)
    finally:
        if context is None:
            ctx.db.close()


if __name__ == '__main__':
    sys.exit(main())
