"""Reservation request builder - validate a booking form and submit it."""

import base64
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from travelbook.config import BookingSettings, get_settings
from travelbook.exceptions import GENERIC_FAILURE_MESSAGE, TravelbookError, ValidationError
from travelbook.models.reservation import (
    Reservation,
    ReservationRequest,
    ServiceType,
    normalize_record,
    parse_booking_date,
)
from travelbook.models.service import ServiceOffering, ServiceTypeProfile, get_profile
from travelbook.services.backend_client import TravelBackendClient
from travelbook.services.pricing import quote
from travelbook.services.session import Session
from travelbook.utils.logger import booking_context, get_logger, mask_sensitive

logger = get_logger(__name__)

DATA_URI_IMAGE_PREFIX = "data:image/"


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class BookingForm:
    """Raw booking form input, as entered by the customer."""

    service_type: ServiceType
    service_id: str
    check_in_date: date | str | None = None
    check_out_date: date | str | None = None
    customer_phone: str = ""
    party_size: int | str = 1
    rooms: int | str | None = None
    cnic_number: str = ""
    cnic_photo_data_uri: str | None = None
    special_requests: str = ""
    needs_driver: bool = False
    pickup_location: str = ""

    def clear(self) -> None:
        """Reset everything the customer typed, keeping the booked service."""
        self.check_in_date = None
        self.check_out_date = None
        self.customer_phone = ""
        self.party_size = 1
        self.rooms = None
        self.cnic_number = ""
        self.cnic_photo_data_uri = None
        self.special_requests = ""
        self.needs_driver = False
        self.pickup_location = ""


@dataclass
class BookingCreated:
    """Backend accepted the reservation."""

    reservation: Reservation
    confirmation_number: str | None = None
    success: bool = field(default=True, init=False)


@dataclass
class BookingFailed:
    """Backend or network failure; nothing should be assumed persisted."""

    error_message: str
    error: TravelbookError | None = None
    success: bool = field(default=False, init=False)


BookingOutcome = BookingCreated | BookingFailed


# =============================================================================
# Helpers
# =============================================================================


def encode_cnic_photo(
    content: bytes,
    content_type: str = "image/jpeg",
    max_bytes: int | None = None,
) -> str:
    """
    Convert an uploaded CNIC image into a data URI for the payload.

    Raises:
        ValidationError: If the file is not an image or exceeds ``max_bytes``
    """
    if not content_type.startswith("image/"):
        raise ValidationError("CNIC photo must be an image", field="cnic_photo")
    if max_bytes is not None and len(content) > max_bytes:
        raise ValidationError(
            f"CNIC photo must be smaller than {max_bytes // (1024 * 1024)} MB",
            field="cnic_photo",
        )
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def _data_uri_size(data_uri: str) -> int:
    """Approximate decoded size of a base64 data URI."""
    _, _, payload = data_uri.partition(",")
    return len(payload) * 3 // 4


def _parse_count(value: int | str | None, label: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Please enter a valid number of {label}", field=label)


# =============================================================================
# Reservation Request Builder
# =============================================================================


class ReservationRequestBuilder:
    """
    Turns a booking form into one canonical reservation and submits it.

    Validation runs entirely client side and stops at the first problem:

    1. logged-in customer (AuthRequired)
    2. dates present and in order (single-day services default to today),
       then a pickup location for vehicles
    3. phone number
    4. CNIC number and photo for person-present service types
    5. party size within the service's capacity

    Only when all checks pass is the create call issued.
    """

    def __init__(
        self,
        backend: TravelBackendClient,
        session: Session,
        settings: BookingSettings | None = None,
    ):
        """
        Initialize the builder.

        Args:
            backend: Backend client used for the create call
            session: Current login session
            settings: Booking rules (from config if not provided)
        """
        self.backend = backend
        self.session = session
        self.settings = settings or get_settings().booking
        self._submitting = False

    @property
    def is_submitting(self) -> bool:
        """True while a create call is in flight; the submit control stays disabled."""
        return self._submitting

    # =========================================================================
    # Validation
    # =========================================================================

    def _resolve_period(
        self,
        form: BookingForm,
        profile: ServiceTypeProfile,
        today: date,
    ) -> tuple[date, date]:
        try:
            check_in = parse_booking_date(form.check_in_date)
            check_out = parse_booking_date(form.check_out_date)
        except ValueError:
            raise ValidationError("Please enter valid dates", field="period")

        if profile.single_day:
            check_in = check_in or check_out or today
            check_out = check_out or check_in

        if check_in is None or check_out is None:
            raise ValidationError(f"Please select {profile.period_label}", field="period")
        if check_out < check_in:
            raise ValidationError(
                "Check-out date cannot be before check-in date",
                field="period",
            )
        return check_in, check_out

    def _check_identity(self, form: BookingForm) -> None:
        if not form.cnic_number.strip():
            raise ValidationError("Please enter your CNIC number", field="cnic_number")
        if not form.cnic_photo_data_uri:
            raise ValidationError("Please upload your CNIC photo", field="cnic_photo")
        if not form.cnic_photo_data_uri.startswith(DATA_URI_IMAGE_PREFIX):
            raise ValidationError("CNIC photo must be an image", field="cnic_photo")

        max_bytes = self.settings.max_cnic_photo_bytes
        if max_bytes and _data_uri_size(form.cnic_photo_data_uri) > max_bytes:
            raise ValidationError(
                f"CNIC photo must be smaller than {max_bytes // (1024 * 1024)} MB",
                field="cnic_photo",
            )

    def _check_party_size(
        self,
        form: BookingForm,
        profile: ServiceTypeProfile,
        service: ServiceOffering,
    ) -> int:
        party_size = _parse_count(form.party_size, "guests")
        if party_size is None or party_size < 1:
            raise ValidationError("At least one guest is required", field="party_size")

        capacity = profile.declared_capacity(service, self.settings.default_capacity)
        if party_size > capacity:
            raise ValidationError(
                f"Maximum {capacity} guests allowed for this {profile.service_type.value}",
                field="party_size",
            )
        return party_size

    def build(
        self,
        form: BookingForm,
        service: ServiceOffering,
        today: date | None = None,
    ) -> ReservationRequest:
        """
        Validate the form and assemble the creation payload.

        Raises:
            AuthRequired: No logged-in customer
            ValidationError: First failing check, in the documented order
        """
        user = self.session.require_user()
        profile = get_profile(form.service_type)
        today = today or date.today()

        check_in, check_out = self._resolve_period(form, profile, today)

        if profile.requires_pickup_location and not form.pickup_location.strip():
            raise ValidationError("Please enter pickup location", field="pickup_location")

        phone = form.customer_phone.strip() or user.phone.strip()
        if not phone:
            raise ValidationError("Please enter your phone number", field="customer_phone")

        if profile.requires_identity:
            self._check_identity(form)

        party_size = self._check_party_size(form, profile, service)
        rooms = _parse_count(form.rooms, "rooms")
        if rooms is not None and rooms < 1:
            raise ValidationError("At least one room is required", field="rooms")

        total = quote(
            profile,
            service.price,
            start_date=check_in,
            end_date=check_out,
            party_size=party_size,
            rooms=rooms,
            needs_driver=form.needs_driver,
            driver_fee_per_day=Decimal(self.settings.driver_fee_per_day),
        )

        is_vehicle = form.service_type == ServiceType.VEHICLE

        return ReservationRequest(
            service_id=form.service_id,
            service_type=form.service_type,
            customer_name=user.name,
            customer_email=user.email,
            customer_phone=phone,
            check_in_date=check_in,
            check_out_date=check_out,
            party_size=party_size,
            rooms=rooms,
            cnic_number=form.cnic_number.strip() if profile.requires_identity else None,
            cnic_photo_data_uri=form.cnic_photo_data_uri if profile.requires_identity else None,
            special_requests=form.special_requests.strip(),
            needs_driver=form.needs_driver if is_vehicle else None,
            pickup_location=form.pickup_location.strip() if is_vehicle else None,
            total_amount=total,
        )

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(
        self,
        form: BookingForm,
        service: ServiceOffering,
        today: date | None = None,
    ) -> BookingOutcome:
        """
        Validate and submit a booking.

        AuthRequired and ValidationError are raised before any backend call.
        Backend and network failures come back as BookingFailed with the form
        left untouched; on success the form is cleared.
        """
        if self._submitting:
            raise ValidationError("Your booking is already being submitted", field="submit")

        request = self.build(form, service, today=today)
        profile = get_profile(form.service_type)
        path = getattr(self.backend.settings, profile.create_path_setting)

        with booking_context(service_type=form.service_type.value, service_id=form.service_id):
            logger.info(
                "booking_submit",
                party_size=request.party_size,
                total=str(request.total_amount),
                cnic=mask_sensitive(request.cnic_number),
            )

            self._submitting = True
            try:
                record = await self.backend.create_reservation(path, request.to_payload())
            except TravelbookError as e:
                logger.error("booking_failed", error=e.user_message)
                return BookingFailed(
                    error_message=e.user_message or GENERIC_FAILURE_MESSAGE,
                    error=e,
                )
            finally:
                self._submitting = False

            reservation = self._to_reservation(request, record, service)
            form.clear()

            logger.info(
                "booking_created",
                reservation_id=reservation.id,
                confirmation_number=reservation.confirmation_number,
            )
        return BookingCreated(
            reservation=reservation,
            confirmation_number=reservation.confirmation_number,
        )

    @staticmethod
    def _to_reservation(
        request: ReservationRequest,
        record: dict,
        service: ServiceOffering,
    ) -> Reservation:
        """Reservation as persisted, falling back to what was submitted."""
        submitted = request.to_payload()
        submitted["serviceName"] = service.name
        merged = {**submitted, **{k: v for k, v in record.items() if v is not None}}
        # the submitted total is authoritative for display
        merged["totalAmount"] = submitted["totalAmount"]

        try:
            return normalize_record(merged, default_service_type=request.service_type)
        except ValueError as e:
            logger.warning(
                "booking_record_unreadable",
                reservation_id=record.get("_id") or record.get("id"),
                error=str(e),
            )

        # the booking exists on the backend; keep its id and confirmation number
        for key in ("_id", "id", "confirmationNumber", "transactionId"):
            if record.get(key) is not None:
                submitted[key] = record[key]
        return normalize_record(submitted, default_service_type=request.service_type)
