"""Kind-specific order details.

Every order carries exactly one details payload, chosen by its
``order_type`` column:

- ``event``: full event planning (venue, guests, services and staff wanted).
- ``service``: a direct booking of one service package.
- ``staff``: hiring one staff profile for a time window.
- ``offer``: redemption of a promotional offer.

Payloads are stored as JSON on the order and parsed back with
``parse_details``.  The model class is picked from the stored
``order_type``, never guessed from the shape of the payload.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Type, Union

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from pydantic import BaseModel, ConfigDict, Field, model_validator

from modules.orders.constants import DurationUnit, EventType, OrderType

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _default_currency() -> str:
    return settings.ORDER_DEFAULT_CURRENCY


# ---------------------------------------------------------------------------
# Embedded value objects
# ---------------------------------------------------------------------------


class ClientInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""


class Venue(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    address: str = ""
    city: str = ""


class BudgetRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_amount: Decimal = Field(ge=0)
    max_amount: Decimal = Field(ge=0)
    currency: str = Field(default_factory=_default_currency)

    @model_validator(mode="after")
    def min_not_above_max(self) -> BudgetRange:
        if self.min_amount > self.max_amount:
            raise ValueError("Budget minimum cannot exceed the maximum.")
        return self


class ServiceRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_id: str
    service_name: str
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)


class StaffRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    staff_profile_id: str
    staff_name: str
    role: str
    quantity: int = Field(default=1, ge=1)


class ServiceDuration(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=1)
    unit: DurationUnit


class BookingWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    hours: Decimal = Field(gt=0)


class AppliedService(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_id: str
    service_name: str


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class OrderDetails(BaseModel):
    """Common interface of every details variant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    order_type: str

    def summary(self) -> str:
        """One-line description; every registered variant overrides it (checked at import)."""
        raise NotImplementedError

    def display_date(self) -> Optional[date]:
        return None

    def location(self) -> Optional[str]:
        return None

    def items_count(self) -> int:
        return 1

    def to_payload(self) -> Dict[str, Any]:
        """JSON document stored on the order (the kind lives in its own column)."""
        return self.model_dump(mode="json", exclude={"order_type"})


class EventOrderDetails(OrderDetails):
    order_type: Literal["event"] = "event"

    event_type: EventType
    event_date: date
    event_time: str = Field(pattern=HHMM_PATTERN)
    venue: Venue
    guest_count: int = Field(ge=1)
    services_requested: List[ServiceRequest] = Field(default_factory=list)
    staff_requested: List[StaffRequest] = Field(default_factory=list)
    budget_range: Optional[BudgetRange] = None
    special_requirements: str = ""
    description: str = ""

    def summary(self) -> str:
        return (
            f"{EventType(self.event_type).label} • {self.guest_count} guests • "
            f"{len(self.services_requested)} services • {len(self.staff_requested)} staff"
        )

    def display_date(self) -> Optional[date]:
        return self.event_date

    def location(self) -> Optional[str]:
        return self.venue.name

    def items_count(self) -> int:
        return len(self.services_requested) + len(self.staff_requested)


class ServiceOrderDetails(OrderDetails):
    order_type: Literal["service"] = "service"

    service_id: str
    service_name: str
    category: str
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    package_features: List[str] = Field(default_factory=list)
    custom_requirements: str = ""
    service_date: Optional[date] = None
    duration: Optional[ServiceDuration] = None
    budget_range: Optional[BudgetRange] = None

    def summary(self) -> str:
        return f"{self.service_name} • {self.category}"

    def display_date(self) -> Optional[date]:
        return self.service_date


class StaffOrderDetails(OrderDetails):
    order_type: Literal["staff"] = "staff"

    staff_profile_id: str
    staff_name: str
    role: str
    skills: List[str] = Field(default_factory=list)
    booking_date: date
    booking_window: BookingWindow
    location_name: str = Field(min_length=1, alias="location")
    requirements: str = ""
    budget_range: Optional[BudgetRange] = None

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def summary(self) -> str:
        return f"{self.staff_name} • {self.role}"

    def display_date(self) -> Optional[date]:
        return self.booking_date

    def location(self) -> Optional[str]:
        return self.location_name

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"order_type"}, by_alias=True)


class OfferOrderDetails(OrderDetails):
    order_type: Literal["offer"] = "offer"

    offer_id: str
    offer_title: str
    offer_description: str = ""
    discount: str
    redemption_date: date
    applied_service: Optional[AppliedService] = None
    redemption_code: Optional[str] = None

    def summary(self) -> str:
        return f"{self.offer_title} • {self.discount} off"

    def display_date(self) -> Optional[date]:
        return self.redemption_date


DETAILS_MODELS: Dict[str, Type[OrderDetails]] = {
    OrderType.EVENT: EventOrderDetails,
    OrderType.SERVICE: ServiceOrderDetails,
    OrderType.STAFF: StaffOrderDetails,
    OrderType.OFFER: OfferOrderDetails,
}

_unregistered = set(OrderType.values) - set(DETAILS_MODELS)
if _unregistered:
    raise ImproperlyConfigured(
        f"Order types without a details model: {sorted(_unregistered)}"
    )

_missing_summary = sorted(
    model.__name__ for model in DETAILS_MODELS.values() if model.summary is OrderDetails.summary
)
if _missing_summary:
    raise ImproperlyConfigured(f"Details models without a summary: {_missing_summary}")

# Input union for API / DTO validation, discriminated on ``order_type``.
AnyOrderDetails = Annotated[
    Union[EventOrderDetails, ServiceOrderDetails, StaffOrderDetails, OfferOrderDetails],
    Field(discriminator="order_type"),
]


# ---------------------------------------------------------------------------
# Narrowing
# ---------------------------------------------------------------------------


def classify(order: Any) -> OrderType:
    """Return the kind of *order*, read from its ``order_type`` only."""
    return OrderType(order.order_type)


def parse_details(order_type: str, payload: Mapping[str, Any]) -> OrderDetails:
    """Parse a stored payload with the details model of *order_type*."""
    model = DETAILS_MODELS[OrderType(order_type)]
    data = dict(payload)
    data["order_type"] = str(OrderType(order_type))
    return model.model_validate(data)


def order_summary(order: Any) -> str:
    return order.details.summary()


def order_display_date(order: Any) -> Optional[date]:
    return order.details.display_date()
