"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers / Views)
and the Service layer.  DTOs are immutable (``frozen=True``).

Business-rule validation (quote breakdowns, payment amounts, message
content) is deliberately left to the domain code so it raises domain
exceptions; the DTOs only enforce types and shapes.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.orders.constants import AttachmentType, PaymentMethod, SenderRole
from modules.orders.details import AnyOrderDetails, ClientInfo

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class ActorDTO(BaseModel):
    """Who performs a mutation: recorded on history, quotes, payments, messages."""

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(min_length=1)
    display_name: str = ""
    role: SenderRole = SenderRole.ADMIN


SYSTEM_ACTOR = ActorDTO(actor_id="system", display_name="System", role=SenderRole.ADMIN)


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    ``details.order_type`` selects the order kind; it is fixed for the life
    of the order.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    client: ClientInfo
    details: AnyOrderDetails
    admin_notes: str = ""
    client_notes: str = ""
    documents: List[str] = Field(default_factory=list)

    @field_validator("client_id")
    @classmethod
    def client_id_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("client_id must not be blank.")
        return v.strip()


class UpdateOrderDTO(BaseModel):
    """Partial update of an editable order; ``None`` leaves a field unchanged."""

    model_config = ConfigDict(frozen=True)

    details: Optional[AnyOrderDetails] = None
    admin_notes: Optional[str] = None
    client_notes: Optional[str] = None
    documents: Optional[List[str]] = None


class BreakdownItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: str
    description: str = ""
    amount: Decimal


class CreateQuoteDTO(BaseModel):
    """Quote request; validity and currency fall back to the configured defaults."""

    model_config = ConfigDict(frozen=True)

    items: List[BreakdownItemDTO]
    discount: Decimal = Decimal("0")
    validity_days: Optional[int] = None
    currency: Optional[str] = None


class AddPaymentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    method: PaymentMethod
    reference: str = ""
    paid_at: Optional[datetime] = None
    receipt_url: str = ""


class CancelOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str = Field(min_length=1)
    refund_amount: Optional[Decimal] = None


class CreateMilestoneDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    description: str = ""
    due_date: Optional[date] = None


class AttachmentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AttachmentType
    url: str = Field(min_length=1)
    name: str = ""


class SendMessageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    attachments: List[AttachmentDTO] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderAnalyticsDTO(BaseModel):
    """Immutable DTO for the order analytics endpoint."""

    model_config = ConfigDict(frozen=True)

    total_orders: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    total_revenue: Decimal
    revenue_by_type: Dict[str, Decimal]
    average_order_value: Decimal
    conversion_rate: int
    cancellation_rate: int
