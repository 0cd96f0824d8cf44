#!/usr/bin/env python3
"""Project sync CLI.

Command-line tool for syncing tracked projects with the GitHub API.

Usage:
    project_sync.py --once                  # Run one sync pass (default)
    project_sync.py --record ID             # Sync a single record now
    project_sync.py --status                # Show rate limit and settings
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from projectsync.config import get_config
from projectsync.connectors.github.client import GitHubClient
from projectsync.connectors.github.rate_limit import RateLimiter
from projectsync.errors import SyncError
from projectsync.logging_config import configure_logging
from projectsync.stores import SettingsCredentialStore, ensure_collection
from projectsync.sync import create_engine


async def show_status(config) -> int:
    """Display settings and the current (padded) rate limit."""
    print("Project Sync Status")
    print("=" * 50)
    print(f"Source host: {config.source_host}")
    print(f"API host: {config.api_host}")
    print(f"Authenticated: {config.has_credentials()}")
    print(f"Batch cap: {config.batch_cap}")
    print(f"Rate padding: {config.rate_padding}")
    print(f"Sync interval: {config.sync_interval}s")
    print(f"Record store: {config.record_store}")
    print(f"Failure alerts: {config.notify_on_failure}")
    print()

    async with GitHubClient(
        SettingsCredentialStore(config), timeout=config.request_timeout
    ) as client:
        limiter = RateLimiter(
            client, padding=config.rate_padding, url=config.rate_limit_url
        )
        try:
            status = await limiter.get_rate_limit_status()
        except SyncError as e:
            print(f"Rate limit: unavailable ({e})")
            return 1

    print(f"Rate limit: {status.remaining}/{status.total} usable")
    if status.exhausted:
        print("Budget exhausted: the next pass will be skipped")
    return 0


async def run_pass(config) -> int:
    """Run one sync pass and print its summary."""
    engine = create_engine(config)
    if config.record_store == "qdrant":
        ensure_collection(engine.store.client, engine.store.collection_name)

    async with engine:
        result = await engine.run_sync_pass()

    print(f"  Synced: {result.records_synced}, Failed: {result.records_failed}")
    print(f"  Skipped (no/invalid URL): {result.records_skipped}")
    print(f"  Field errors: {result.field_errors}, Enrichment errors: {result.enrichment_errors}")
    if result.budget_exhausted:
        print("  Rate limit budget exhausted, nothing synced")
    if result.aborted:
        print("  Pass aborted (see logs)")
    print(f"  Duration: {result.duration_seconds:.1f}s")
    return 1 if result.aborted else 0


async def run_record(config, record_id) -> int:
    """Sync a single record and print the result as JSON."""
    engine = create_engine(config)
    async with engine:
        result = await engine.sync_record(record_id, context="cli")
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def _parse_record_id(value: str):
    """Qdrant point ids are unsigned integers or UUIDs."""
    return int(value) if value.isdigit() else value


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sync tracked projects with the GitHub API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --once                    # One pass over the least recently synced records
  %(prog)s --record 42               # Sync record 42 immediately
  %(prog)s --status                  # Display rate limit and settings

Configuration (.env or environment):
    API_USER=your_github_user
    API_KEY=ghp_your_token_here
    RECORD_STORE=qdrant
        """,
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--once", action="store_true", help="Run one sync pass (default)")
    mode_group.add_argument("--record", metavar="ID", help="Sync a single record")
    mode_group.add_argument("--status", action="store_true", help="Display sync status")

    args = parser.parse_args()

    config = get_config()
    configure_logging(config.log_level, config.log_format)

    if args.status:
        sys.exit(asyncio.run(show_status(config)))

    if args.record is not None:
        sys.exit(asyncio.run(run_record(config, _parse_record_id(args.record))))

    print(f"Running sync pass (cap={config.batch_cap})...")
    exit_code = asyncio.run(run_pass(config))
    print("\nDone.")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
