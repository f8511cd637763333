"""Pydantic schemas for concepts, dues configuration, dues and payments."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cuotas.models.monthly_due import DueState


class ConceptResponse(BaseModel):
    """Concept as exposed over the API."""

    id: int | None = None
    key: str
    label: str
    description: str | None = None
    amount: float
    active: bool
    position: int

    model_config = ConfigDict(from_attributes=True)


class CreateConceptPayload(BaseModel):
    """Request payload for POST /api/concepts."""

    key: str = Field(..., description="Concept key; whitespace dropped, lowercased")
    label: str = Field(..., description="Display name")
    description: str | None = Field(None, description="Optional notes")
    active: bool = Field(True, description="Billed when true")
    amount: float = Field(0, ge=0, description="Initial monthly amount")


class UpdateConceptPayload(BaseModel):
    """Partial patch for PUT /api/concepts/{key}."""

    label: str | None = None
    description: str | None = None
    active: bool | None = None


class DuesConfigResponse(BaseModel):
    concepts: dict[str, float]
    total: float
    concepts_metadata: list[ConceptResponse]
    is_default: bool
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DueResponse(BaseModel):
    """Monthly due as exposed over the API."""

    id: int
    resident_id: str
    resident_name: str | None = None
    resident_email: str | None = None
    year: int
    month: int
    base_amount: float
    surcharge_amount: float
    total_amount: float
    surcharge_percent: float
    state: DueState
    due_date: datetime
    grace_date: datetime
    delinquency_days: int
    payment_session_id: str | None = None
    paid_at: datetime | None = None
    payment_method: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ResidentPayload(BaseModel):
    """Resident entry of a roster."""

    id: str = Field(..., min_length=1, description="Resident id in the directory")
    name: str | None = None
    email: str | None = None


class GeneratePayload(BaseModel):
    """Request payload for POST /api/dues/generate.

    When ``residents`` is omitted the roster is fetched from the directory.
    """

    year: int | None = None
    month: int | None = None
    residents: list[ResidentPayload] | None = None


class OpenSessionPayload(BaseModel):
    """Request payload for POST /api/payments/sessions."""

    resident_id: str = Field(..., min_length=1)
    name: str | None = None
    email: str | None = None


class ConfirmSessionPayload(BaseModel):
    payment_method: str = Field("card", max_length=50)


class CheckoutSessionResponse(BaseModel):
    id: str
    url: str | None = None
    provider: str

    model_config = ConfigDict(from_attributes=True)
