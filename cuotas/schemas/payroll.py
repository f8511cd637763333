"""Pydantic schemas for workers and payroll payments."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cuotas.models.payroll import PayrollState


class CreateWorkerPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    worker_type: str = Field(..., min_length=1, max_length=50, description="e.g. janitor")
    email: str | None = None


class WorkerResponse(BaseModel):
    id: int
    name: str
    worker_type: str
    email: str | None = None
    active: bool

    model_config = ConfigDict(from_attributes=True)


class PayWorkerPayload(BaseModel):
    """Request payload for POST /api/payroll/payments."""

    worker_id: int
    amount: float = Field(..., description="Positive amount")
    paid_by: str | None = Field(None, description="Administrator registering the payment")


class PayrollPaymentResponse(BaseModel):
    id: int
    worker_id: int
    worker: WorkerResponse | None = None
    year: int
    month: int
    amount: float
    state: PayrollState
    reference: str
    paid_by: str | None = None
    paid_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)
