#!/usr/bin/env python3
"""
Reconcile clip records against the object store.

Moves pending-upload clips to uploaded once their video exists, marks
stale pending clips failed, and deletes objects no clip references.

Usage:
    python scripts/reconcile.py
    python scripts/reconcile.py --dry-run

Requires:
    - .env file with Snowflake and R2 credentials (or mock modes enabled)
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from cliphub.config.settings import get_settings  # noqa: E402
from cliphub.context import build_app_context  # noqa: E402
from cliphub.core.errors import ClipHubError  # noqa: E402


def print_report(report) -> None:
    mode = "DRY RUN" if report.dry_run else "APPLIED"
    print(f"\nReconciliation ({mode})")
    print(f"  promoted to uploaded: {len(report.promoted)}")
    print(f"  marked failed:        {len(report.failed)}")
    print(f"  orphans removed:      {len(report.orphans_deleted)}")
    print(f"  skipped (conflict):   {len(report.skipped)}")

    for label, names in (
        ("promoted", report.promoted),
        ("failed", report.failed),
        ("orphan", report.orphans_deleted),
    ):
        for name in names:
            print(f"    {label}: {name}")


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Reconcile clip records with stored objects')
    parser.add_argument('--dry-run', action='store_true', help='Report changes without applying them')
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level.upper(),
    )

    try:
        context = build_app_context(settings)
    except ClipHubError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)

    try:
        report = asyncio.run(context.reconciler.run(dry_run=args.dry_run))
    except ClipHubError as e:
        print(f"ERROR: Reconciliation failed: {e.message}")
        sys.exit(1)
    finally:
        context.close()

    print_report(report)
    sys.exit(0)


if __name__ == '__main__':
    main()
