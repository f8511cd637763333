"""CLI entry point for the scheduled billing jobs.

The external scheduler runs these; nothing here schedules itself.

Usage:
    python -m cuotas.cli.tasks generate [--year 2025 --month 3]
    python -m cuotas.cli.tasks sweep [--now 2025-04-10T06:00:00]
    python -m cuotas.cli.tasks remind

Suggested cron:
    0 9 1 * *   generate   (1st of the month, 09:00)
    0 6 * * *   sweep      (daily, 06:00)

Exit Codes:
    0 - Success
    1 - Failure: error logged; per-due commits already made are kept
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from dotenv import load_dotenv

logger = logging.getLogger("cuotas.cli.tasks")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cuotas-tasks", description="Billing scheduled jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Generate dues for a period from the directory roster")
    generate.add_argument("--year", type=int, default=None)
    generate.add_argument("--month", type=int, default=None)

    sweep = sub.add_parser("sweep", help="Run the delinquency sweep")
    sweep.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time (ISO 8601); defaults to now",
    )

    sub.add_parser("remind", help="Email reminders for delinquent dues")
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one job. Returns the process exit code."""
    from cuotas.services import AsyncSessionLocal, async_engine
    from cuotas.services.delinquency_service import DelinquencyService
    from cuotas.services.directory_client import ResidentDirectoryClient
    from cuotas.services.dues_generator import DuesGenerator
    from cuotas.services.email_service import EmailService

    try:
        async with AsyncSessionLocal() as session:
            if args.command == "generate":
                residents = await ResidentDirectoryClient().fetch_active_residents()
                report = await DuesGenerator(session).generate_for_period(
                    residents, year=args.year, month=args.month
                )
                if report.errors:
                    logger.warning("%d residents failed during generation", len(report.errors))
                    return 1
            elif args.command == "sweep":
                report = await DelinquencyService(session).sweep(args.now)
                if report.errors:
                    logger.warning("%d dues failed during sweep", len(report.errors))
                    return 1
            elif args.command == "remind":
                await DelinquencyService(session).remind(EmailService())
        return 0
    except Exception as e:
        logger.error("Task %s failed: %s", args.command, e, exc_info=True)
        return 1
    finally:
        await async_engine.dispose()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    from cuotas.config import settings
    from cuotas.services.logging import setup_server_logging

    setup_server_logging(settings.log_file, settings.log_level)
    args = build_parser().parse_args(argv)
    logger.info("Starting task: %s", args.command)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
