"""Scheduled job entry points run against the test database."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from cuotas import services
from cuotas.cli.tasks import build_parser, run
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.services import directory_client as directory_module
from cuotas.services import email_service as email_module


class _KeepEngine:
    """Stands in for the app engine so the in-memory test database survives run()."""

    async def dispose(self):
        return None


@pytest.fixture
def wired(monkeypatch, session_factory, directory_client, email_service):
    monkeypatch.setattr(services, "AsyncSessionLocal", session_factory)
    monkeypatch.setattr(services, "async_engine", _KeepEngine())
    monkeypatch.setattr(directory_module, "ResidentDirectoryClient", lambda: directory_client)
    monkeypatch.setattr(email_module, "EmailService", lambda: email_service)
    return directory_client


class TestParser:
    def test_generate_period(self):
        args = build_parser().parse_args(["generate", "--year", "2025", "--month", "3"])
        assert (args.command, args.year, args.month) == ("generate", 2025, 3)

    def test_sweep_reference_time(self):
        args = build_parser().parse_args(["sweep", "--now", "2025-04-10T06:00:00"])
        assert args.now == datetime(2025, 4, 10, 6, 0)

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


@pytest.mark.integration
@pytest.mark.asyncio
async def test_generate_then_sweep(wired, session):
    parser = build_parser()

    assert await run(parser.parse_args(["generate", "--year", "2025", "--month", "3"])) == 0
    assert await run(parser.parse_args(["sweep", "--now", "2025-04-10T06:00:00"])) == 0

    dues = (await session.execute(select(MonthlyDue).order_by(MonthlyDue.resident_id))).scalars().all()
    assert [d.resident_id for d in dues] == ["R1", "R2"]
    assert all(d.state == DueState.DELINQUENT for d in dues)
    assert dues[0].total_amount == Decimal("198.00")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_remind_sends_to_delinquent_residents(wired, make_due, email_service):
    await make_due("R1", 2025, 3, state=DueState.DELINQUENT)

    assert await run(build_parser().parse_args(["remind"])) == 0
    assert [m["to"] for m in email_service.sent] == ["r1@example.com"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_directory_failure_exits_nonzero(wired):
    wired.fail = True

    assert await run(build_parser().parse_args(["generate", "--year", "2025", "--month", "3"])) == 1
