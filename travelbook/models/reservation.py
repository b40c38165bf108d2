"""Pydantic models for reservation data."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class ServiceType(str, Enum):
    HOTEL = "hotel"
    VEHICLE = "vehicle"
    TOUR = "tour"
    TRAIN = "train"
    FLIGHT = "flight"
    RESTAURANT = "restaurant"
    EVENT = "event"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class RecordKind(str, Enum):
    """Which backend record shape a reservation came from."""

    SERVICE = "service"
    LEGACY_VEHICLE = "legacy_vehicle"
    LEGACY_TOUR = "legacy_tour"


# =============================================================================
# Helpers
# =============================================================================


def parse_booking_date(value: Any) -> date | None:
    """
    Parse a booking date from form input or backend JSON.

    Accepts date/datetime objects, "YYYY-MM-DD" and full ISO timestamps
    ("2024-01-01T00:00:00.000Z"). Empty values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


def amount_to_json(value: Decimal) -> int | float:
    """Render a Decimal amount as a JSON number."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# =============================================================================
# Value Objects
# =============================================================================


class Customer(BaseModel):
    """Customer contact captured at submission time."""

    name: str = ""
    email: str = ""
    phone: str = ""


class Period(BaseModel):
    """Booked time span. Point-in-time services collapse both dates."""

    check_in_date: date
    check_out_date: date

    @field_validator("check_in_date", "check_out_date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return parse_booking_date(v)

    @property
    def is_single_day(self) -> bool:
        return self.check_in_date == self.check_out_date


class IdentityVerification(BaseModel):
    """CNIC details for person-present bookings."""

    cnic_number: str
    cnic_photo_data_uri: str | None = None


# =============================================================================
# Reservation
# =============================================================================


class Reservation(BaseModel):
    """Canonical reservation, whatever endpoint it was stored through."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    service_id: str | None = None
    service_type: ServiceType
    record_kind: RecordKind = RecordKind.SERVICE
    service_name: str | None = None
    provider_id: str | None = None

    customer: Customer = Field(default_factory=Customer)
    period: Period
    party_size: int = Field(ge=1, default=1)
    rooms: int | None = None

    identity_verification: IdentityVerification | None = None
    special_requests: str = ""
    needs_driver: bool = False
    pickup_location: str | None = None
    vehicle_number: str | None = None

    total_amount: Decimal = Decimal("0")
    status: ReservationStatus = ReservationStatus.PENDING
    rejection_reason: str | None = None
    confirmation_number: str | None = None
    created_at: datetime | None = None

    @property
    def is_legacy_vehicle(self) -> bool:
        return self.record_kind == RecordKind.LEGACY_VEHICLE

    @property
    def is_terminal(self) -> bool:
        return self.status != ReservationStatus.PENDING


# =============================================================================
# Creation Payload
# =============================================================================


class ReservationRequest(BaseModel):
    """Canonical creation payload sent to the backend (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    service_id: str
    service_type: ServiceType
    customer_name: str
    customer_email: str
    customer_phone: str
    check_in_date: date
    check_out_date: date
    party_size: int = Field(ge=1, alias="guests")
    rooms: int | None = None
    cnic_number: str | None = None
    cnic_photo_data_uri: str | None = Field(default=None, alias="cnicPhoto")
    special_requests: str = ""
    needs_driver: bool | None = None
    pickup_location: str | None = None
    total_amount: Decimal

    @field_serializer("total_amount")
    def serialize_amount(self, v: Decimal) -> int | float:
        return amount_to_json(v)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict for the create reservation call."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Legacy Record Adapter
# =============================================================================

_DRIVER_MARKER = re.compile(r"\s*\|\s*Driver Required", re.IGNORECASE)
_PICKUP_MARKER = re.compile(r"\s*\|\s*Pickup:\s*([^|]*)", re.IGNORECASE)


def split_special_requests(text: str | None) -> tuple[str, bool, str | None]:
    """
    Pull the old "| Driver Required" / "| Pickup: X" suffixes out of free text.

    Returns:
        (remaining text, needs_driver, pickup_location)
    """
    if not text:
        return "", False, None

    needs_driver = bool(_DRIVER_MARKER.search(text))
    pickup_match = _PICKUP_MARKER.search(text)
    pickup = pickup_match.group(1).strip() if pickup_match else None

    remaining = _PICKUP_MARKER.sub("", _DRIVER_MARKER.sub("", text)).strip()
    return remaining, needs_driver, pickup or None


# older endpoints use approve/reject wording for the same states
STATUS_ALIASES = {
    "approved": ReservationStatus.CONFIRMED,
    "rejected": ReservationStatus.CANCELLED,
}


def parse_status(value: Any) -> ReservationStatus:
    """Map a backend status string onto ReservationStatus (case-insensitive)."""
    status = str(value or ReservationStatus.PENDING.value).strip().lower()
    return STATUS_ALIASES.get(status) or ReservationStatus(status)


def parse_amount(value: Any) -> Decimal:
    """Parse a backend amount; missing means 0, anything non-numeric is a ValueError."""
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def _ref_id(value: Any) -> str | None:
    """Id of a populated reference ({"_id": ...}) or a bare id string."""
    if isinstance(value, dict):
        ref = value.get("_id") or value.get("id")
        return str(ref) if ref is not None else None
    if value is None or value == "":
        return None
    return str(value)


def _detect_record_kind(raw: dict[str, Any], default: RecordKind | None) -> RecordKind:
    if raw.get("isLegacyVehicle"):
        return RecordKind.LEGACY_VEHICLE
    if raw.get("isTourReservation"):
        return RecordKind.LEGACY_TOUR
    return default or RecordKind.SERVICE


def _detect_service_type(
    raw: dict[str, Any],
    record_kind: RecordKind,
    default: ServiceType | None,
) -> ServiceType:
    service = raw.get("serviceId")
    declared = service.get("type") if isinstance(service, dict) else None
    declared = declared or raw.get("serviceType")
    if declared:
        return ServiceType(str(declared).lower())
    if record_kind == RecordKind.LEGACY_VEHICLE:
        return ServiceType.VEHICLE
    if record_kind == RecordKind.LEGACY_TOUR:
        return ServiceType.TOUR
    return default or ServiceType.HOTEL


def normalize_record(
    raw: dict[str, Any],
    default_service_type: ServiceType | None = None,
    default_record_kind: RecordKind | None = None,
) -> Reservation:
    """
    Normalize a backend reservation record into a Reservation.

    Handles unified service records as well as legacy vehicle and tour
    shapes. Records without a declared type fall back to
    ``default_service_type`` (the listing source's type), then to hotel.

    Raises:
        ValueError: (pydantic.ValidationError) if required fields are unusable
    """
    record_kind = _detect_record_kind(raw, default_record_kind)
    service_type = _detect_service_type(raw, record_kind, default_service_type)

    service = raw.get("serviceId")
    service_name = service.get("name") if isinstance(service, dict) else None
    service_id = (
        _ref_id(service)
        or _ref_id(raw.get("hotelId"))
        or _ref_id(raw.get("vehicleId"))
        or _ref_id(raw.get("tourId"))
    )

    check_in = raw.get("checkInDate") or raw.get("tourDate") or raw.get("pickupDate")
    check_out = raw.get("checkOutDate") or raw.get("returnDate") or check_in

    special, driver_from_text, pickup_from_text = split_special_requests(
        raw.get("specialRequests")
    )

    cnic_number = raw.get("cnicNumber")
    identity = (
        IdentityVerification(
            cnic_number=cnic_number,
            cnic_photo_data_uri=raw.get("cnicPhoto"),
        )
        if cnic_number
        else None
    )

    return Reservation(
        id=_ref_id(raw.get("_id") or raw.get("id")),
        service_id=service_id,
        service_type=service_type,
        record_kind=record_kind,
        service_name=service_name or raw.get("serviceName"),
        provider_id=_ref_id(raw.get("providerId")),
        customer=Customer(
            name=raw.get("customerName") or "",
            email=raw.get("customerEmail") or "",
            phone=raw.get("customerPhone") or "",
        ),
        period=Period(check_in_date=check_in, check_out_date=check_out),
        party_size=int(raw.get("guests") or raw.get("travelers") or raw.get("tickets") or 1),
        rooms=raw.get("rooms"),
        identity_verification=identity,
        special_requests=special,
        needs_driver=bool(raw.get("needDriver") or raw.get("needsDriver") or driver_from_text),
        pickup_location=raw.get("pickupLocation") or pickup_from_text,
        vehicle_number=raw.get("vehicleNumber"),
        total_amount=parse_amount(raw.get("totalAmount") or raw.get("totalPrice")),
        status=parse_status(raw.get("status")),
        rejection_reason=raw.get("rejectionReason"),
        confirmation_number=raw.get("confirmationNumber") or raw.get("transactionId"),
        created_at=raw.get("createdAt"),
    )
