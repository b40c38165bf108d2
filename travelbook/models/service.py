"""Service catalog records and per-type booking profiles."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from travelbook.models.reservation import ServiceType


class RateVariant(str, Enum):
    """Which multiplicands a service type's price uses."""

    PER_DAY = "per_day"
    PER_PERSON = "per_person"
    PER_PERSON_PER_DAY = "per_person_per_day"
    PER_ROOM_PER_DAY = "per_room_per_day"


class ServiceOffering(BaseModel):
    """A bookable service as returned by the catalog endpoints."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    type: ServiceType | None = None
    price: Decimal | None = None
    provider_id: str | None = Field(default=None, alias="providerId")

    @field_validator("type", mode="before")
    @classmethod
    def lowercase_type(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @field_validator("provider_id", mode="before")
    @classmethod
    def provider_ref(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return v.get("_id") or v.get("id")
        return v

    def field(self, name: str) -> Any:
        """Read a type-specific catalog field (capacity, seats, ...)."""
        return (self.model_extra or {}).get(name)


@dataclass(frozen=True)
class ServiceTypeProfile:
    """Booking rules for one service type."""

    service_type: ServiceType
    rate_variant: RateVariant
    requires_identity: bool
    single_day: bool
    capacity_fields: tuple[str, ...]
    create_path_setting: str
    requires_pickup_location: bool = False
    period_label: str = "check-in and check-out dates"

    def declared_capacity(self, service: ServiceOffering, default: int) -> int:
        """First positive capacity the service declares, else ``default``."""
        for name in self.capacity_fields:
            value = service.field(name)
            try:
                capacity = int(value)
            except (TypeError, ValueError):
                continue
            if capacity > 0:
                return capacity
        return default


PROFILES: dict[ServiceType, ServiceTypeProfile] = {
    ServiceType.HOTEL: ServiceTypeProfile(
        service_type=ServiceType.HOTEL,
        rate_variant=RateVariant.PER_ROOM_PER_DAY,
        requires_identity=True,
        single_day=False,
        capacity_fields=("maxGuests", "capacity"),
        create_path_setting="create_hotel_reservation_path",
    ),
    ServiceType.VEHICLE: ServiceTypeProfile(
        service_type=ServiceType.VEHICLE,
        rate_variant=RateVariant.PER_DAY,
        requires_identity=True,
        single_day=False,
        capacity_fields=("seatingCapacity", "numberOfSeats", "capacity"),
        create_path_setting="create_reservation_path",
        requires_pickup_location=True,
        period_label="pickup and return dates",
    ),
    ServiceType.TOUR: ServiceTypeProfile(
        service_type=ServiceType.TOUR,
        rate_variant=RateVariant.PER_PERSON,
        requires_identity=True,
        single_day=True,
        capacity_fields=("maxGroupSize", "capacity"),
        create_path_setting="create_tour_reservation_path",
        period_label="a tour date",
    ),
    ServiceType.TRAIN: ServiceTypeProfile(
        service_type=ServiceType.TRAIN,
        rate_variant=RateVariant.PER_PERSON,
        requires_identity=False,
        single_day=True,
        capacity_fields=("availableSeats", "numberOfSeats", "capacity"),
        create_path_setting="create_reservation_path",
        period_label="a travel date",
    ),
    ServiceType.FLIGHT: ServiceTypeProfile(
        service_type=ServiceType.FLIGHT,
        rate_variant=RateVariant.PER_PERSON,
        requires_identity=False,
        single_day=True,
        capacity_fields=("availableSeats", "capacity"),
        create_path_setting="create_reservation_path",
        period_label="a departure date",
    ),
    ServiceType.RESTAURANT: ServiceTypeProfile(
        service_type=ServiceType.RESTAURANT,
        rate_variant=RateVariant.PER_PERSON,
        requires_identity=True,
        single_day=True,
        capacity_fields=("capacity",),
        create_path_setting="create_restaurant_reservation_path",
        period_label="a reservation date",
    ),
    ServiceType.EVENT: ServiceTypeProfile(
        service_type=ServiceType.EVENT,
        rate_variant=RateVariant.PER_PERSON_PER_DAY,
        requires_identity=True,
        single_day=True,
        capacity_fields=("maxAttendees", "capacity"),
        create_path_setting="create_reservation_path",
        period_label="event dates",
    ),
}


def get_profile(service_type: ServiceType | str) -> ServiceTypeProfile:
    """Look up the booking profile for a service type."""
    return PROFILES[ServiceType(service_type)]
