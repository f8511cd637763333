"""Unit tests for workers and payroll payments."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cuotas.errors import ConflictError, NotFoundError, ValidationError
from cuotas.models.payroll import PayrollState
from cuotas.services.payroll_service import PayrollService, payment_reference

MARCH_10 = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_payment_reference_format():
    reference = payment_reference(7, 2025, 3, MARCH_10)

    assert reference == f"PAY-7-202503-{int(MARCH_10.timestamp() * 1000)}"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_register_worker_normalizes_type(session):
    worker = await PayrollService(session).register_worker("  Pedro Mamani ", " Janitor ")

    assert worker.id is not None
    assert worker.name == "Pedro Mamani"
    assert worker.worker_type == "janitor"
    assert worker.active is True


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("name, worker_type", [("", "janitor"), ("Pedro", "  ")])
async def test_register_worker_requires_name_and_type(session, name, worker_type):
    with pytest.raises(ValidationError) as exc_info:
        await PayrollService(session).register_worker(name, worker_type)

    assert exc_info.value.code == "invalid_worker"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_workers_hides_inactive_by_default(session):
    service = PayrollService(session)
    await service.register_worker("Bruno", "security")
    retired = await service.register_worker("Alicia", "gardener")
    retired.active = False
    await session.commit()

    assert [w.name for w in await service.list_workers()] == ["Bruno"]
    assert [w.name for w in await service.list_workers(active_only=False)] == ["Alicia", "Bruno"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pay_records_completed_payment(session):
    service = PayrollService(session)
    worker = await service.register_worker("Pedro", "janitor")

    payment = await service.pay(worker.id, "1500", paid_by="admin-1", now=MARCH_10)

    assert payment.amount == Decimal("1500.00")
    assert payment.state == PayrollState.COMPLETED
    assert (payment.year, payment.month) == (2025, 3)
    assert payment.reference.startswith(f"PAY-{worker.id}-202503-")
    assert payment.paid_by == "admin-1"
    assert payment.worker.name == "Pedro"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pay_twice_in_same_month_conflicts(session):
    service = PayrollService(session)
    worker = await service.register_worker("Pedro", "janitor")
    await service.pay(worker.id, 1500, now=MARCH_10)

    with pytest.raises(ConflictError) as exc_info:
        await service.pay(worker.id, 1500, now=datetime(2025, 3, 28, tzinfo=timezone.utc))

    assert exc_info.value.code == "already_paid"
    april = await service.pay(worker.id, 1500, now=datetime(2025, 4, 1, tzinfo=timezone.utc))
    assert april.month == 4


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -10, "abc"])
async def test_pay_rejects_bad_amounts(session, amount):
    service = PayrollService(session)
    worker = await service.register_worker("Pedro", "janitor")

    with pytest.raises(ValidationError) as exc_info:
        await service.pay(worker.id, amount, now=MARCH_10)

    assert exc_info.value.code == "invalid_amount"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pay_inactive_or_unknown_worker(session):
    service = PayrollService(session)
    worker = await service.register_worker("Pedro", "janitor")
    worker.active = False
    await session.commit()

    with pytest.raises(ValidationError) as exc_info:
        await service.pay(worker.id, 100, now=MARCH_10)
    assert exc_info.value.code == "inactive_worker"

    with pytest.raises(NotFoundError):
        await service.pay(9999, 100, now=MARCH_10)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_paid(session):
    service = PayrollService(session)
    worker = await service.register_worker("Pedro", "janitor")
    await service.pay(worker.id, 1500, now=MARCH_10)

    march = await service.check_paid(worker.id, 2025, 3)
    april = await service.check_paid(worker.id, 2025, 4)

    assert march.already_paid is True
    assert march.payment.amount == Decimal("1500.00")
    assert april.already_paid is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_history_newest_first_and_filtered(session):
    service = PayrollService(session)
    pedro = await service.register_worker("Pedro", "janitor")
    bruno = await service.register_worker("Bruno", "security")
    await service.pay(pedro.id, 1500, now=MARCH_10)
    await service.pay(bruno.id, 1800, now=datetime(2025, 3, 11, tzinfo=timezone.utc))
    await service.pay(pedro.id, 1500, now=datetime(2025, 4, 10, tzinfo=timezone.utc))

    everything = await service.history()
    march = await service.history(year=2025, month=3)

    assert [(p.worker.name, p.month) for p in everything] == [
        ("Pedro", 4),
        ("Bruno", 3),
        ("Pedro", 3),
    ]
    assert len(march) == 2
