"""
Run (or preview) creator settlement outside the scheduler.

Usage:
    python scripts/run_settlement.py [--date YYYY-MM-DD] [--preview]

Options:
    --date YYYY-MM-DD  Settlement date to run (default: today, UTC)
    --preview          Show what settlement would do without changing anything
"""

import asyncio
import argparse
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from creator_ledger.database import AsyncSessionLocal
from creator_ledger.services.money import cents_to_str
from creator_ledger.services.settlement import SettlementProcessor
import logging

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def main(settlement_date: date | None = None, preview: bool = False):
    async with AsyncSessionLocal() as db:
        processor = SettlementProcessor(db)

        if preview:
            summary = await processor.preview()
            logger.info(
                f"{summary['total_creators']} creator(s) would settle "
                f"${summary['total_pending_amount']}; {summary['auto_payout_count']} auto payout(s) "
                f"totalling ${summary['total_auto_payout_amount']}"
            )
            for creator in summary["creators"]:
                marker = "auto payout" if creator["will_get_auto_payout"] else "stays available"
                logger.info(f"  - {creator['creator_id']}: {creator['new_available']} ({marker})")
            return

        outcome = await processor.run(settlement_date)
        logger.info(outcome.message)
        logger.info(
            f"\nSummary: status={outcome.status}, processed={outcome.creators_processed}, "
            f"failed={outcome.creators_failed}, auto_payouts={outcome.auto_payouts_created}, "
            f"moved=${cents_to_str(outcome.total_pending_moved_cents)}"
        )
        for failure in outcome.failures:
            logger.error(f"  ✗ {failure['creator_id']}: {failure['error']}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run creator settlement for a date")
    parser.add_argument("--date", type=date.fromisoformat, help="Settlement date (YYYY-MM-DD)")
    parser.add_argument("--preview", action="store_true", help="Preview without writing")
    args = parser.parse_args()

    asyncio.run(main(settlement_date=args.date, preview=args.preview))
