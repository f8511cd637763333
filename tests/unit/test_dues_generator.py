"""Unit tests for monthly dues generation."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.services.concept_service import ConceptService
from cuotas.services.directory_client import Resident
from cuotas.services.dues_generator import DuesGenerator

ROSTER = [
    Resident(id="R1", name="Ana Rojas", email="ana@example.com"),
    Resident(id="R2", name="Luis Vargas", email=None),
]


async def _count_dues(session) -> int:
    return (await session.execute(select(func.count(MonthlyDue.id)))).scalar()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_creates_pending_dues_from_configuration(session):
    concepts = ConceptService(session)
    await concepts.add("water", "Water", amount=35)
    await concepts.add("cleaning", "Cleaning", amount=30)

    report = await DuesGenerator(session).generate_for_period(ROSTER, 2025, 3)

    assert (report.created, report.already_existed, report.total) == (2, 0, 2)
    assert report.errors == []
    due = (await session.execute(select(MonthlyDue).where(MonthlyDue.resident_id == "R1"))).scalar_one()
    assert due.base_amount == Decimal("65.00")
    assert due.surcharge_amount == Decimal("0.00")
    assert due.total_amount == Decimal("65.00")
    assert due.state == DueState.PENDING
    assert due.surcharge_percent == Decimal("10.00")
    assert due.due_date == datetime(2025, 3, 31, 23, 59, 59)
    assert due.grace_date == datetime(2025, 4, 5, 23, 59, 59)
    assert due.resident_name == "Ana Rojas"
    assert due.resident_email == "ana@example.com"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_uses_defaults_when_catalog_empty(session):
    await DuesGenerator(session).generate_for_period(ROSTER[:1], 2025, 3)

    due = (await session.execute(select(MonthlyDue))).scalar_one()
    assert due.base_amount == Decimal("180.00")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_twice_is_idempotent(session):
    generator = DuesGenerator(session)

    first = await generator.generate_for_period(ROSTER, 2025, 3)
    second = await generator.generate_for_period(ROSTER, 2025, 3)

    assert first.created == 2
    assert (second.created, second.already_existed) == (0, 2)
    assert await _count_dues(session) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_defaults_to_current_period(session):
    report = await DuesGenerator(session).generate_for_period(
        ROSTER[:1], now=datetime(2025, 6, 1, 9, 0)
    )

    assert (report.year, report.month) == (2025, 6)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_uniqueness_violation_counts_as_already_existed(session, make_due, monkeypatch):
    await make_due("R1", 2025, 3)
    generator = DuesGenerator(session)
    real_find = generator.ledger.find
    calls = {"n": 0}

    async def stale_find(resident_id, year, month):
        # First lookup misses, as if another worker inserted in between
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_find(resident_id, year, month)

    monkeypatch.setattr(generator.ledger, "find", stale_find)

    report = await generator.generate_for_period(ROSTER[:1], 2025, 3)

    assert (report.created, report.already_existed) == (0, 1)
    assert report.errors == []
    assert await _count_dues(session) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failing_resident_does_not_abort_batch(session, monkeypatch):
    generator = DuesGenerator(session)
    real_insert = generator._insert

    async def flaky_insert(resident, year, month, base):
        if resident.id == "R2":
            raise RuntimeError("disk full")
        return await real_insert(resident, year, month, base)

    monkeypatch.setattr(generator, "_insert", flaky_insert)

    report = await generator.generate_for_period(ROSTER, 2025, 3)

    assert report.created == 1
    assert report.errors == [{"resident_id": "R2", "error": "disk full"}]
    assert await _count_dues(session) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ensure_due_returns_existing(session, make_due):
    existing = await make_due("R1", 2025, 3)
    generator = DuesGenerator(session)

    due, created = await generator.ensure_due(ROSTER[0], 2025, 3)
    new_due, new_created = await generator.ensure_due(ROSTER[0], 2025, 4)

    assert (due.id, created) == (existing.id, False)
    assert new_created is True
    assert new_due.month == 4
