"""Monthly dues generation: one due per resident per period."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.config import settings
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.services.audit_service import AuditService
from cuotas.services.directory_client import Resident
from cuotas.services.dues_config_service import DuesConfigService, money
from cuotas.services.dues_service import DuesService, period_dates, resolve_period

logger = logging.getLogger(__name__)


@dataclass
class GenerationReport:
    """Outcome of a generation batch."""

    year: int
    month: int
    created: int = 0
    already_existed: int = 0
    total: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


class DuesGenerator:
    """Creates PENDING dues for a roster, idempotently.

    Each due is committed on its own so one failing resident never blocks the
    rest of the batch. The store's unique (resident_id, year, month)
    constraint decides races between concurrent generators.
    """

    def __init__(
        self,
        session: AsyncSession,
        grace_days: int | None = None,
        surcharge_percent: Decimal | None = None,
    ):
        self.session = session
        self.grace_days = settings.grace_days if grace_days is None else grace_days
        self.surcharge_percent = money(
            settings.default_surcharge_percent if surcharge_percent is None else surcharge_percent
        )
        self.ledger = DuesService(session)
        self.config_service = DuesConfigService(session)

    def _new_due(self, resident: Resident, year: int, month: int, base: Decimal) -> MonthlyDue:
        due_date, grace_date = period_dates(year, month, self.grace_days)
        return MonthlyDue(
            resident_id=resident.id,
            resident_name=resident.name,
            resident_email=resident.email,
            year=year,
            month=month,
            base_amount=base,
            surcharge_amount=Decimal("0.00"),
            total_amount=base,
            surcharge_percent=self.surcharge_percent,
            state=DueState.PENDING,
            due_date=due_date,
            grace_date=grace_date,
            delinquency_days=0,
        )

    async def _insert(
        self, resident: Resident, year: int, month: int, base: Decimal
    ) -> tuple[MonthlyDue, bool]:
        due = self._new_due(resident, year, month, base)
        self.session.add(due)
        try:
            await self.session.flush()
            AuditService.log(
                self.session,
                entity_type="monthly_due",
                entity_id=due.id,
                action="create",
                changes={"resident_id": resident.id, "period": f"{year}-{month:02d}",
                         "base_amount": str(base)},
            )
            await self.session.commit()
        except IntegrityError:
            # Lost a race with another generator
            await self.session.rollback()
            existing = await self.ledger.find(resident.id, year, month)
            if existing is None:
                raise
            return existing, False
        return due, True

    async def ensure_due(
        self,
        resident: Resident,
        year: int | None = None,
        month: int | None = None,
        now: datetime | None = None,
    ) -> tuple[MonthlyDue, bool]:
        """Get the resident's due for the period, creating it if missing.

        Returns:
            Tuple of (due, created)
        """
        year, month = resolve_period(year, month, now)
        existing = await self.ledger.find(resident.id, year, month)
        if existing is not None:
            return existing, False
        base = await self.config_service.base_amount()
        return await self._insert(resident, year, month, base)

    async def generate_for_period(
        self,
        residents: list[Resident],
        year: int | None = None,
        month: int | None = None,
        now: datetime | None = None,
    ) -> GenerationReport:
        """Create one PENDING due per resident for the period.

        Args:
            residents: Active roster
            year: Billing year (defaults to current)
            month: Billing month (defaults to current)
            now: Reference time for the default period

        Returns:
            GenerationReport with created/already-existed counts and the
            per-resident errors
        """
        year, month = resolve_period(year, month, now)
        report = GenerationReport(year=year, month=month, total=len(residents))
        base = await self.config_service.base_amount()

        logger.info(
            "Generating dues for %d-%02d: %d residents, base amount %s",
            year,
            month,
            len(residents),
            base,
        )

        for resident in residents:
            try:
                if await self.ledger.find(resident.id, year, month) is not None:
                    report.already_existed += 1
                    continue
                _, created = await self._insert(resident, year, month, base)
                if created:
                    report.created += 1
                else:
                    report.already_existed += 1
            except Exception as e:
                await self.session.rollback()
                logger.error(
                    "Failed to generate due for resident %s (%d-%02d): %s",
                    resident.id,
                    year,
                    month,
                    e,
                    exc_info=True,
                )
                report.errors.append({"resident_id": resident.id, "error": str(e)})

        logger.info(
            "Dues generation %d-%02d finished: %d created, %d already existed, %d errors",
            year,
            month,
            report.created,
            report.already_existed,
            len(report.errors),
        )
        return report


__all__ = ["DuesGenerator", "GenerationReport"]
