"""Dues configuration derived from the concept catalog."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, NamedTuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.errors import ValidationError
from cuotas.models.concept import Concept
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.services.audit_service import AuditService
from cuotas.services.concept_service import ConceptService, normalize_key
from cuotas.services.dues_service import naive

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class DefaultConcept(NamedTuple):
    key: str
    label: str
    amount: Decimal


# Used only while the catalog table is empty
DEFAULT_CONCEPTS: tuple[DefaultConcept, ...] = (
    DefaultConcept("front_garden", "Front garden", Decimal("15.00")),
    DefaultConcept("common_garden", "Common garden", Decimal("20.00")),
    DefaultConcept("garbage_collection", "Garbage collection", Decimal("25.00")),
    DefaultConcept("cleaning", "Cleaning", Decimal("30.00")),
    DefaultConcept("stair_lighting", "Stair lighting", Decimal("10.00")),
    DefaultConcept("wax", "Floor wax", Decimal("5.00")),
    DefaultConcept("ace", "ACE", Decimal("8.00")),
    DefaultConcept("laundry", "Laundry", Decimal("12.00")),
    DefaultConcept("admin_savings", "Administration savings", Decimal("20.00")),
    DefaultConcept("water", "Water", Decimal("35.00")),
)


def money(value: Decimal | int | float | str) -> Decimal:
    """Round to cents, half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class DuesConfiguration:
    """Concept amounts currently billed and their total."""

    concepts: dict[str, Decimal]
    total: Decimal
    concepts_metadata: list[Concept] = field(default_factory=list)
    is_default: bool = False
    updated_at: datetime | None = None


class ConfigUpdateResult(NamedTuple):
    configuration: DuesConfiguration
    updated_dues: int


def _parse_amount(key: str, value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(
            f"Amount for '{key}' must be a number", code="invalid_amount", key=key
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(
            f"Amount for '{key}' must be a finite number", code="invalid_amount", key=key
        )
    try:
        amount = money(value)
    except InvalidOperation as e:
        raise ValidationError(
            f"Amount for '{key}' must be a number", code="invalid_amount", key=key
        ) from e
    if amount < 0:
        raise ValidationError(
            f"Amount for '{key}' must be non-negative", code="invalid_amount", key=key
        )
    return amount


def build_configuration(concepts: list[Concept], is_default: bool = False) -> DuesConfiguration:
    """Build the configuration view; total is always the sum of the amounts."""
    amounts = {concept.key: money(concept.amount) for concept in concepts}
    timestamps = [naive(c.updated_at) for c in concepts if c.updated_at is not None]
    return DuesConfiguration(
        concepts=amounts,
        total=money(sum(amounts.values(), Decimal("0"))),
        concepts_metadata=list(concepts),
        is_default=is_default,
        updated_at=max(timestamps) if timestamps else None,
    )


def default_configuration() -> DuesConfiguration:
    concepts = [
        Concept(key=d.key, label=d.label, amount=d.amount, active=True, position=i)
        for i, d in enumerate(DEFAULT_CONCEPTS, start=1)
    ]
    return build_configuration(concepts, is_default=True)


class DuesConfigService:
    """Async service reading and updating the dues configuration.

    The configuration is not stored on its own: it is the set of active
    concepts with their amounts. An update also reprices every PENDING due.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session
        self.concepts = ConceptService(session)

    async def get(self) -> DuesConfiguration:
        """Current configuration, or the defaults when the catalog is empty."""
        if await self.concepts.count() == 0:
            return default_configuration()
        return build_configuration(await self.concepts.list_concepts(active_only=True))

    async def base_amount(self) -> Decimal:
        """Total billed on newly generated dues."""
        return (await self.get()).total

    async def _persist_defaults(self, actor: str | None) -> None:
        for default in DEFAULT_CONCEPTS:
            await self.concepts.add(
                key=default.key,
                label=default.label,
                amount=default.amount,
                actor=actor,
                commit=False,
            )
        logger.info("Persisted %d default concepts", len(DEFAULT_CONCEPTS))

    async def update(
        self, amounts: dict[str, Any], actor: str | None = None
    ) -> ConfigUpdateResult:
        """Update concept amounts and reprice PENDING dues.

        Only supplied keys change. All keys and values are validated before
        anything is written.

        Args:
            amounts: Mapping concept key -> non-negative amount
            actor: Gateway user performing the change

        Returns:
            ConfigUpdateResult with the new configuration and the number of
            PENDING dues repriced

        Raises:
            ValidationError: Empty map, unknown/inactive key, or invalid amount
        """
        if not amounts:
            raise ValidationError("At least one concept amount is required", code="empty_update")

        is_empty_catalog = await self.concepts.count() == 0
        if is_empty_catalog:
            known_keys = {d.key for d in DEFAULT_CONCEPTS}
        else:
            known_keys = {c.key for c in await self.concepts.list_concepts(active_only=True)}

        parsed: dict[str, Decimal] = {}
        unknown: list[str] = []
        for raw_key, value in amounts.items():
            key = normalize_key(raw_key)
            if key not in known_keys:
                unknown.append(raw_key)
                continue
            parsed[key] = _parse_amount(key, value)
        if unknown:
            raise ValidationError(
                f"Unknown or inactive concepts: {', '.join(sorted(unknown))}",
                code="unknown_concept",
                keys=sorted(unknown),
            )

        if is_empty_catalog:
            await self._persist_defaults(actor)

        active = await self.concepts.list_concepts(active_only=True)
        changes: dict[str, dict[str, str]] = {}
        for concept in active:
            if concept.key in parsed and money(concept.amount) != parsed[concept.key]:
                changes[concept.key] = {
                    "from": str(money(concept.amount)),
                    "to": str(parsed[concept.key]),
                }
                concept.amount = parsed[concept.key]

        configuration = build_configuration(active)
        result = await self.session.execute(
            update(MonthlyDue)
            .where(MonthlyDue.state == DueState.PENDING)
            .values(
                base_amount=configuration.total,
                surcharge_amount=Decimal("0.00"),
                total_amount=configuration.total,
            )
        )
        updated_dues = result.rowcount or 0

        AuditService.log(
            self.session,
            entity_type="dues_configuration",
            entity_id=0,
            action="update_amounts",
            actor=actor,
            changes={
                "concepts": changes,
                "total": str(configuration.total),
                "updated_dues": updated_dues,
            },
        )
        await self.session.commit()
        configuration = build_configuration(active)

        logger.info(
            "Dues configuration updated: total=%s, %d concepts changed, %d pending dues repriced",
            configuration.total,
            len(changes),
            updated_dues,
        )
        return ConfigUpdateResult(configuration=configuration, updated_dues=updated_dues)


__all__ = [
    "ConfigUpdateResult",
    "DEFAULT_CONCEPTS",
    "DuesConfigService",
    "DuesConfiguration",
    "build_configuration",
    "default_configuration",
    "money",
]
