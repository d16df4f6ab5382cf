#!/usr/bin/env python3
"""Leave jobs runner — entry point for the external scheduler.

Subcommands:
    monthly-accrual   credit earned leave for a month (default: previous month)
    carry-forward     cap non-encashable earned leave for a year
    enforce-cap       trim combined earned leave to the total cap
    reset-casual      reset casual leave to the yearly entitlement

Usage:
    python -m scripts.run_leave_jobs monthly-accrual
    python -m scripts.run_leave_jobs monthly-accrual --year 2025 --month 3 --employee 42
    python -m scripts.run_leave_jobs carry-forward --year 2026

Suggested crontab (server time, see SCHEDULER_TIMEZONE):
    30 0 1 1 *        python -m scripts.run_leave_jobs reset-casual
    5 1 1 * *         python -m scripts.run_leave_jobs monthly-accrual
    10 2 1 1,4,7,10 * python -m scripts.run_leave_jobs enforce-cap
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from ems.leave import accrual  # noqa: E402

logger = logging.getLogger("leave_jobs")


def previous_month(today: date) -> tuple[int, int]:
    """(year, month) of the calendar month before *today*."""
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run scheduled leave balance jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    monthly = sub.add_parser("monthly-accrual", help="Monthly earned-leave accrual")
    monthly.add_argument("--year", type=int, help="Year (default: previous month's year)")
    monthly.add_argument("--month", type=int, choices=range(1, 13),
                         help="Month 1-12 (default: previous month)")
    monthly.add_argument("--employee", type=int, dest="employee_id",
                         help="Limit to one employee id")

    carry = sub.add_parser("carry-forward", help="Yearly carry-forward cap")
    carry.add_argument("--year", type=int, help="Year (default: current year)")
    carry.add_argument("--employee", type=int, dest="employee_id",
                       help="Limit to one employee id")

    sub.add_parser("enforce-cap", help="Trim combined earned leave to the cap")
    sub.add_parser("reset-casual", help="Reset casual leave to the yearly entitlement")
    return parser


async def run(
    args: argparse.Namespace,
    session_factory: async_sessionmaker[AsyncSession],
    today: Optional[date] = None,
):
    """Dispatch *args* to the matching job and return its summary."""
    today = today or date.today()

    if args.command == "monthly-accrual":
        default_year, default_month = previous_month(today)
        return await accrual.run_monthly_accrual(
            session_factory,
            args.year or default_year,
            args.month or default_month,
            employee_id=args.employee_id,
        )
    if args.command == "carry-forward":
        return await accrual.run_annual_carry_forward(
            session_factory, args.year or today.year, employee_id=args.employee_id,
        )
    if args.command == "enforce-cap":
        return await accrual.enforce_combined_cap(session_factory)
    if args.command == "reset-casual":
        return await accrual.reset_casual_leave(session_factory)
    raise ValueError(f"Unknown command: {args.command}")


async def _main(args: argparse.Namespace) -> int:
    from ems.database import async_session_factory, engine

    try:
        summary = await run(args, async_session_factory)
    finally:
        await engine.dispose()

    print(summary.model_dump_json(indent=2))
    return 1 if getattr(summary, "failed", None) else 0


def main(argv: Optional[list[str]] = None) -> int:
    from ems.common.logging import configure_logging
    from ems.config import settings

    configure_logging(settings.LOG_LEVEL)
    args = build_parser().parse_args(argv)
    logger.info("Running %s (scheduler tz: %s)", args.command, settings.SCHEDULER_TIMEZONE or "server local")
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
