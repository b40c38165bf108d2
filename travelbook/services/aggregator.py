"""Booking aggregator - one list of reservations from many endpoints."""

import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, Iterator

from travelbook.config import BackendSettings
from travelbook.exceptions import PartialFetchFailure, TravelbookError, ValidationError
from travelbook.models.reservation import (
    RecordKind,
    Reservation,
    ReservationStatus,
    ServiceType,
    normalize_record,
)
from travelbook.services.backend_client import TravelBackendClient
from travelbook.utils.logger import get_logger

logger = get_logger(__name__)

ConfirmCallback = Callable[[Reservation], bool | Awaitable[bool]]


# =============================================================================
# Filters
# =============================================================================


class BookingTab(str, Enum):
    ALL = "all"
    UPCOMING = "upcoming"
    PAST = "past"
    CANCELLED = "cancelled"


class SortKey(str, Enum):
    CREATED_AT = "created_at"
    CHECK_IN = "check_in"


def matches_tab(reservation: Reservation, tab: BookingTab, today: date) -> bool:
    """Whether a reservation belongs on the given tab."""
    if tab == BookingTab.UPCOMING:
        return (
            reservation.period.check_in_date >= today
            and reservation.status != ReservationStatus.CANCELLED
        )
    if tab == BookingTab.PAST:
        return (
            reservation.period.check_out_date < today
            or reservation.status == ReservationStatus.COMPLETED
        )
    if tab == BookingTab.CANCELLED:
        return reservation.status == ReservationStatus.CANCELLED
    return True


def filter_bookings(
    records: list[Reservation],
    service_type: ServiceType | str | None = None,
    tab: BookingTab | str = BookingTab.ALL,
    today: date | None = None,
) -> list[Reservation]:
    """
    Apply the service-type filter, then the tab filter.

    ``service_type`` of None or "all" keeps every type.
    """
    today = today or date.today()
    tab = BookingTab(tab)

    if service_type and service_type != "all":
        wanted = ServiceType(service_type)
        records = [r for r in records if r.service_type == wanted]

    return [r for r in records if matches_tab(r, tab, today)]


def can_delete(reservation: Reservation, today: date | None = None) -> bool:
    """Only finished bookings may be deleted: cancelled, completed or past checkout."""
    today = today or date.today()
    return (
        reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED)
        or reservation.period.check_out_date < today
    )


# =============================================================================
# Data Models
# =============================================================================


@dataclass(frozen=True)
class ListingSource:
    """One listing endpoint and how to read its records."""

    name: str
    path: str
    default_service_type: ServiceType | None = None
    record_kind: RecordKind | None = None
    params: dict | None = None


@dataclass
class BookingList:
    """Merged reservations plus notices about sources that failed."""

    records: list[Reservation] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)
    skipped_records: int = 0

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Reservation]:
        return iter(self.records)

    @property
    def failure(self) -> PartialFetchFailure | None:
        if not self.failed_sources:
            return None
        return PartialFetchFailure(self.failed_sources)

    @property
    def notice(self) -> str | None:
        """Dismissible message when some sources could not be loaded."""
        failure = self.failure
        return failure.user_message if failure else None

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_sources)

    def get(self, reservation_id: str) -> Reservation | None:
        for record in self.records:
            if record.id == reservation_id:
                return record
        return None

    def filter(
        self,
        service_type: ServiceType | str | None = None,
        tab: BookingTab | str = BookingTab.ALL,
        today: date | None = None,
    ) -> list[Reservation]:
        return filter_bookings(self.records, service_type, tab, today)

    def sorted(
        self,
        key: SortKey | str = SortKey.CREATED_AT,
        newest_first: bool = True,
    ) -> list[Reservation]:
        key = SortKey(key)
        if key == SortKey.CHECK_IN:
            return sorted(
                self.records,
                key=lambda r: r.period.check_in_date,
                reverse=newest_first,
            )

        # records without a creation time go last
        dated = [r for r in self.records if r.created_at is not None]
        undated = [r for r in self.records if r.created_at is None]
        return sorted(dated, key=lambda r: r.created_at, reverse=newest_first) + undated

    def replace(self, updated: Reservation) -> None:
        """Swap in the new version of a reservation after a status change."""
        self.records = [updated if r.id == updated.id else r for r in self.records]

    def remove(self, reservation_id: str) -> None:
        self.records = [r for r in self.records if r.id != reservation_id]


# =============================================================================
# Booking Aggregator
# =============================================================================


class BookingAggregator:
    """
    Fetches reservations from every listing endpoint in parallel.

    Each source is isolated: one failing request only adds a notice and
    never drops the records of the others. Sources are merged in their
    declared order and de-duplicated by id (first source wins).
    """

    def __init__(
        self,
        backend: TravelBackendClient,
        settings: BackendSettings | None = None,
    ):
        self.backend = backend
        self.settings = settings or backend.settings

    # =========================================================================
    # Sources
    # =========================================================================

    def customer_sources(self) -> list[ListingSource]:
        """Endpoints behind the customer's "My Bookings" view."""
        return [
            ListingSource(
                name="hotel reservations",
                path=self.settings.customer_hotel_reservations_path,
                default_service_type=ServiceType.HOTEL,
            ),
            ListingSource(
                name="service reservations",
                path=self.settings.customer_service_reservations_path,
            ),
            ListingSource(
                name="tour reservations",
                path=self.settings.customer_tour_reservations_path,
                default_service_type=ServiceType.TOUR,
                record_kind=RecordKind.LEGACY_TOUR,
            ),
        ]

    def provider_sources(self, service_type: ServiceType | str | None = None) -> list[ListingSource]:
        """Endpoints behind the provider's "Reservation Requests" view."""
        wanted = ServiceType(service_type) if service_type and service_type != "all" else None

        params = None
        if wanted == ServiceType.VEHICLE:
            params = {"type": "vehicle"}
        elif wanted is not None:
            params = {"type": "service"}

        sources = [
            ListingSource(
                name="service reservations",
                path=self.settings.provider_service_reservations_path,
                params=params,
            ),
        ]
        if wanted in (None, ServiceType.VEHICLE):
            sources.append(
                ListingSource(
                    name="vehicle reservations",
                    path=self.settings.provider_vehicle_reservations_path,
                    default_service_type=ServiceType.VEHICLE,
                    record_kind=RecordKind.LEGACY_VEHICLE,
                )
            )
        return sources

    # =========================================================================
    # Fetching
    # =========================================================================

    async def fetch_customer_bookings(self) -> BookingList:
        """Everything the logged-in customer has booked."""
        return await self.fetch_all(self.customer_sources())

    async def fetch_provider_requests(
        self,
        service_type: ServiceType | str | None = None,
    ) -> BookingList:
        """Reservations made against the logged-in provider's services."""
        bookings = await self.fetch_all(self.provider_sources(service_type))
        if service_type and service_type != "all":
            bookings.records = filter_bookings(bookings.records, service_type)
        return bookings

    async def fetch_all(self, sources: list[ListingSource]) -> BookingList:
        """Fan out to every source and merge whatever came back."""
        results = await asyncio.gather(
            *(self.backend.list_reservations(s.path, params=s.params) for s in sources),
            return_exceptions=True,
        )

        bookings = BookingList()
        seen: set[str] = set()

        for source, result in zip(sources, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "booking_source_failed",
                    source=source.name,
                    error=getattr(result, "user_message", str(result)),
                )
                bookings.failed_sources.append(source.name)
                continue

            for raw in result:
                try:
                    reservation = normalize_record(
                        raw,
                        default_service_type=source.default_service_type,
                        default_record_kind=source.record_kind,
                    )
                except (ValueError, TypeError) as e:
                    logger.warning(
                        "booking_record_skipped",
                        source=source.name,
                        error=str(e),
                    )
                    bookings.skipped_records += 1
                    continue

                if reservation.id is not None:
                    if reservation.id in seen:
                        continue
                    seen.add(reservation.id)
                bookings.records.append(reservation)

        logger.info(
            "bookings_merged",
            count=len(bookings.records),
            failed_sources=bookings.failed_sources,
            skipped=bookings.skipped_records,
        )
        return bookings

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete(
        self,
        bookings: BookingList,
        reservation: Reservation,
        confirm: ConfirmCallback,
        today: date | None = None,
    ) -> bool:
        """
        Permanently delete a finished booking.

        Args:
            bookings: List to update after a successful delete
            reservation: Booking to delete
            confirm: Asked before anything is sent; returning False aborts
            today: Reference date for the "past checkout" rule

        Returns:
            True if deleted, False if the user declined

        Raises:
            ValidationError: Booking is still pending/confirmed and upcoming
            BackendError / NetworkError: Delete failed; the list is unchanged
        """
        if not can_delete(reservation, today):
            raise ValidationError(
                "Only cancelled, completed or past bookings can be deleted",
                field="status",
            )
        if not reservation.id:
            raise ValidationError("Booking has no id", field="id")

        answer = confirm(reservation)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.debug("booking_delete_declined", reservation_id=reservation.id)
            return False

        try:
            await self.backend.delete_reservation(reservation.id)
        except TravelbookError as e:
            logger.error("booking_delete_failed", reservation_id=reservation.id, error=e.user_message)
            raise

        bookings.remove(reservation.id)
        logger.info("booking_deleted", reservation_id=reservation.id)
        return True
