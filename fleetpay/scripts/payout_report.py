#!/usr/bin/env python3
"""
Generate a payout or print a payout summary from the shell.

    python -m fleetpay.scripts.payout_report generate --driver_id 7 --date 2025-01-10
    python -m fleetpay.scripts.payout_report summary --driver_id 7
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

from fleetpay.core.config import settings
from fleetpay.database import SessionLocal
from fleetpay.logic.money import format_currency
from fleetpay.services import payouts as payout_service
from fleetpay.services.errors import PayoutError

logger = logging.getLogger(__name__)


def _print_payout(payout: payout_service.Payout) -> None:
    print(f"\nPAYOUT #{payout.id} | Driver ID: {payout.driver_id} | {payout.payout_date}")
    print("-" * 45)
    print(f"Revenue:           {format_currency(payout.revenue_amount):>20}")
    print(f"Platform cut:      {format_currency(payout.commission_amount):>20}")
    print(f"Incentive:         {format_currency(payout.incentive_amount):>20}")
    print(f"Deductions:        {format_currency(payout.deduction_amount):>20}")
    print("-" * 45)
    print(f"NET PAYOUT:        {format_currency(payout.net_payout):>20}")
    print(f"Status:            {payout.approval_status} / {payout.payment_status}")


def _print_summary(driver_id: int | None) -> None:
    with SessionLocal() as db:
        payouts = payout_service.list_payouts(db, driver_id=driver_id)
    stats = payout_service.summarize_payouts(payouts)

    label = f"Driver ID: {driver_id}" if driver_id is not None else "All drivers"
    print(f"\nPAYOUT SUMMARY | {label}")
    print("-" * 45)
    print(f"Payouts:                {stats.total_count}")
    print(f"Total net:              {format_currency(stats.total_net)}")
    print(f"Pending approval:       {stats.pending_count} ({format_currency(stats.pending_amount)})")
    print(f"Approved, unpaid:       {format_currency(stats.approved_unpaid_amount)}")
    print(f"Paid:                   {format_currency(stats.paid_amount)}")
    print(f"This month:             {format_currency(stats.this_month_amount)}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Driver payout tools")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="generate a payout for one driver and day")
    gen.add_argument("--driver_id", type=int, required=True)
    gen.add_argument("--date", type=date.fromisoformat, required=True)

    summary = sub.add_parser("summary", help="print payout totals")
    summary.add_argument("--driver_id", type=int, default=None)

    args = parser.parse_args(argv)

    if args.command == "generate":
        with SessionLocal() as db:
            try:
                payout = payout_service.generate_payout(db, args.driver_id, args.date)
            except PayoutError as exc:
                logger.error("payout_report: %s: %s", type(exc).__name__, exc)
                return 1
        _print_payout(payout)
        return 0

    _print_summary(args.driver_id)
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    sys.exit(main())
