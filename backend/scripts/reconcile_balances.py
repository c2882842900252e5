"""
Recompute cached creator balances from earning and payout history.

Run this after a manual data fix or when a creator reports a wrong balance.
Balances are overwritten only where they drifted from history.

Usage:
    python scripts/reconcile_balances.py [--creator-id UUID] [--dry-run]

Options:
    --creator-id UUID  Reconcile one creator only
    --dry-run          Report drift without changing anything
"""

import asyncio
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select, union
from creator_ledger.database import AsyncSessionLocal
from creator_ledger.exceptions import LedgerError
from creator_ledger.models.balance import CreatorBalance
from creator_ledger.models.earning import EarningEvent
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.money import cents_to_str
import logging

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _describe(values: dict) -> str:
    return ", ".join(f"{key.replace('_cents', '')}={cents_to_str(value)}" for key, value in values.items())


async def main(creator_id: str | None = None, dry_run: bool = False):
    async with AsyncSessionLocal() as db:
        if creator_id:
            creator_ids = [creator_id]
        else:
            result = await db.execute(
                union(
                    select(CreatorBalance.creator_id),
                    select(EarningEvent.creator_id),
                )
            )
            creator_ids = sorted(row[0] for row in result.all())

        if not creator_ids:
            logger.info("No creators with balances or earnings found")
            return

        logger.info(f"Found {len(creator_ids)} creator(s) to check")

        ledger = BalanceLedger(db)
        fixed = consistent = fail = 0

        for cid in creator_ids:
            try:
                if dry_run:
                    current = await ledger.get_balance(cid)
                    expected = await ledger.expected_totals(cid)
                    before = {key: getattr(current, key) for key in expected}
                    snapshots = {"before": before, "after": expected}
                    await db.rollback()
                else:
                    snapshots = await ledger.reconcile(cid)
            except LedgerError as e:
                logger.error(f"  ✗ Failed creator {cid}: {e.message}")
                fail += 1
                continue

            if snapshots["before"] == snapshots["after"]:
                consistent += 1
                continue

            prefix = "[DRY RUN] Would fix" if dry_run else "Fixed"
            logger.info(f"  ✓ {prefix} creator {cid}: {_describe(snapshots['before'])} -> {_describe(snapshots['after'])}")
            fixed += 1

        logger.info(f"\nSummary: {fixed} drifted, {consistent} consistent, {fail} failed")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Recompute cached creator balances from earning and payout history"
    )
    parser.add_argument("--creator-id", type=str, help="Reconcile a specific creator UUID only")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    args = parser.parse_args()

    asyncio.run(main(creator_id=args.creator_id, dry_run=args.dry_run))
