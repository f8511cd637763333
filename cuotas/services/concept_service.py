"""Concept catalog: the named line items that compose the monthly due."""

import logging
import re
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.errors import ConflictError, NotFoundError, ValidationError
from cuotas.models.concept import Concept
from cuotas.services.audit_service import AuditService

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
KEY_MAX_LENGTH = 50
LABEL_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

PATCHABLE_FIELDS = ("label", "description", "active")


def normalize_key(raw: str) -> str:
    """Lowercase the key and drop all whitespace, inner included."""
    return re.sub(r"\s+", "", raw or "").lower()


def validate_key(raw: str) -> str:
    """Normalize and validate a concept key.

    Raises:
        ValidationError: Empty, too long, or not snake_case after normalization
    """
    key = normalize_key(raw)
    if not key:
        raise ValidationError("Concept key is required", code="invalid_key")
    if len(key) > KEY_MAX_LENGTH:
        raise ValidationError(
            f"Concept key must be at most {KEY_MAX_LENGTH} characters", code="invalid_key"
        )
    if not KEY_PATTERN.match(key):
        raise ValidationError(
            f"Concept key '{key}' must start with a letter and contain only "
            "lowercase letters, digits and underscores",
            code="invalid_key",
        )
    return key


def _validate_label(label: str | None) -> str:
    label = (label or "").strip()
    if not label:
        raise ValidationError("Concept label is required", code="invalid_label")
    if len(label) > LABEL_MAX_LENGTH:
        raise ValidationError(
            f"Concept label must be at most {LABEL_MAX_LENGTH} characters", code="invalid_label"
        )
    return label


def _validate_description(description: str | None) -> str | None:
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Concept description must be at most {DESCRIPTION_MAX_LENGTH} characters",
            code="invalid_description",
        )
    return description


class ConceptService:
    """Async service for concept catalog operations.

    Concepts are soft-deleted only; receipts issued in the past keep
    referring to them.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def list_concepts(self, active_only: bool = False) -> list[Concept]:
        """List concepts ordered by position, then id."""
        stmt = select(Concept).order_by(Concept.position, Concept.id)
        if active_only:
            stmt = stmt.where(Concept.active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(Concept.id)))
        return int(result.scalar() or 0)

    async def get(self, key: str) -> Concept | None:
        """Get concept by (normalized) key."""
        result = await self.session.execute(
            select(Concept).where(Concept.key == normalize_key(key))
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, key: str) -> Concept:
        concept = await self.get(key)
        if concept is None:
            raise NotFoundError(f"Concept '{normalize_key(key)}' not found", key=key)
        return concept

    async def add(
        self,
        key: str,
        label: str,
        description: str | None = None,
        active: bool = True,
        amount: Decimal | int | float = Decimal("0"),
        actor: str | None = None,
        commit: bool = True,
    ) -> Concept:
        """Add a concept to the catalog.

        Args:
            key: Raw key; normalized before validation
            label: Display name (required)
            description: Optional notes
            active: Whether the concept is billed
            amount: Initial monthly amount (>= 0)
            actor: Gateway user creating the concept
            commit: Commit immediately; False lets the caller batch inserts

        Returns:
            Created Concept

        Raises:
            ValidationError: Bad key, label, description or amount
            ConflictError: A concept with the same normalized key exists
        """
        normalized = validate_key(key)
        clean_label = _validate_label(label)
        clean_description = _validate_description(description)
        value = Decimal(str(amount)).quantize(Decimal("0.01"))
        if value < 0:
            raise ValidationError("Concept amount must be non-negative", code="invalid_amount")

        if await self.get(normalized) is not None:
            raise ConflictError(
                f"Concept '{normalized}' already exists", code="duplicate_key", key=normalized
            )

        result = await self.session.execute(select(func.max(Concept.position)))
        position = (result.scalar() or 0) + 1

        concept = Concept(
            key=normalized,
            label=clean_label,
            description=clean_description,
            amount=value,
            active=active,
            position=position,
        )
        self.session.add(concept)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Concept '{normalized}' already exists", code="duplicate_key", key=normalized
            ) from e

        AuditService.log(
            self.session,
            entity_type="concept",
            entity_id=concept.id,
            action="create",
            actor=actor,
            changes={"key": normalized, "label": clean_label, "amount": str(value)},
        )
        if commit:
            await self.session.commit()
            logger.info("Added concept %s (amount %s)", normalized, value)
        return concept

    async def update(
        self, key: str, patch: dict[str, Any], actor: str | None = None
    ) -> Concept:
        """Apply a partial patch of label/description/active.

        Raises:
            NotFoundError: Unknown key
            ValidationError: Invalid label or description, or a null active flag
        """
        concept = await self.get_or_404(key)
        changes: dict[str, Any] = {}
        for field in PATCHABLE_FIELDS:
            if field not in patch:
                continue
            value = patch[field]
            if field == "label":
                value = _validate_label(value)
            elif field == "description":
                value = _validate_description(value)
            elif field == "active":
                if value is None:
                    raise ValidationError(
                        "Concept active flag must be true or false", code="invalid_active"
                    )
                value = bool(value)
            if getattr(concept, field) != value:
                changes[field] = value
                setattr(concept, field, value)

        if changes:
            AuditService.log(
                self.session,
                entity_type="concept",
                entity_id=concept.id,
                action="update",
                actor=actor,
                changes=changes,
            )
            await self.session.commit()
            logger.info("Updated concept %s: %s", concept.key, sorted(changes))
        return concept

    async def deactivate(self, key: str, actor: str | None = None) -> Concept:
        """Soft-delete a concept.

        Raises:
            NotFoundError: Unknown key
        """
        concept = await self.get_or_404(key)
        if concept.active:
            concept.active = False
            AuditService.log(
                self.session,
                entity_type="concept",
                entity_id=concept.id,
                action="deactivate",
                actor=actor,
            )
            await self.session.commit()
            logger.info("Deactivated concept %s", concept.key)
        return concept


__all__ = ["ConceptService", "normalize_key", "validate_key"]
