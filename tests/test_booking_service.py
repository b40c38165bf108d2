"""Tests for the reservation request builder."""

import base64
from datetime import date
from unittest.mock import AsyncMock

import pytest

from travelbook.config import BookingSettings
from travelbook.exceptions import AuthRequired, BackendError, NetworkError, ValidationError
from travelbook.models.reservation import ServiceType
from travelbook.models.service import ServiceOffering
from travelbook.models.user import UserProfile
from travelbook.services.backend_client import TravelBackendClient
from travelbook.services.booking_service import (
    BookingCreated,
    BookingFailed,
    BookingForm,
    ReservationRequestBuilder,
    encode_cnic_photo,
)
from travelbook.services.session import Session

TODAY = date(2024, 6, 1)
PHOTO = "data:image/jpeg;base64,QUJDRA=="


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def customer():
    return UserProfile(id="u1", name="Ayesha Khan", email="ayesha@example.com", phone="")


@pytest.fixture
def session(customer):
    return Session(user=customer, token="test-token")


@pytest.fixture
def backend():
    client = TravelBackendClient(base_url="http://localhost:5000")
    client.create_reservation = AsyncMock(
        return_value={"_id": "res1", "confirmationNumber": "TB-1001", "status": "pending"}
    )
    return client


@pytest.fixture
def builder(backend, session):
    return ReservationRequestBuilder(backend, session, settings=BookingSettings())


@pytest.fixture
def hotel():
    return ServiceOffering.model_validate(
        {"_id": "h1", "name": "Serena", "type": "hotel", "price": 10000, "maxGuests": 4}
    )


@pytest.fixture
def hotel_form():
    return BookingForm(
        service_type=ServiceType.HOTEL,
        service_id="h1",
        check_in_date="2024-06-10",
        check_out_date="2024-06-12",
        customer_phone="03001234567",
        party_size=2,
        rooms=2,
        cnic_number="35202-1234567-1",
        cnic_photo_data_uri=PHOTO,
    )


@pytest.fixture
def vehicle():
    return ServiceOffering.model_validate(
        {"_id": "v1", "name": "Corolla", "type": "vehicle", "price": 5000, "seatingCapacity": 4}
    )


@pytest.fixture
def vehicle_form():
    return BookingForm(
        service_type=ServiceType.VEHICLE,
        service_id="v1",
        check_in_date="2024-01-01",
        check_out_date="2024-01-03",
        customer_phone="03001234567",
        party_size=2,
        cnic_number="35202-1234567-1",
        cnic_photo_data_uri=PHOTO,
        needs_driver=True,
        pickup_location="Lahore Airport",
    )


# =============================================================================
# Validation Tests
# =============================================================================


@pytest.mark.asyncio
async def test_unauthenticated_submit_makes_no_call(backend, hotel, hotel_form):
    """Test that a logged-out customer is stopped before the network."""
    builder = ReservationRequestBuilder(backend, Session(), settings=BookingSettings())

    with pytest.raises(AuthRequired):
        await builder.submit(hotel_form, hotel, today=TODAY)

    backend.create_reservation.assert_not_called()


def test_dates_checked_before_phone(builder, hotel, hotel_form):
    """Test that validation stops at the first failing check."""
    hotel_form.check_in_date = None
    hotel_form.customer_phone = ""

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "period"


def test_check_out_before_check_in(builder, hotel, hotel_form):
    hotel_form.check_in_date = "2024-06-12"
    hotel_form.check_out_date = "2024-06-10"

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert "before" in exc_info.value.user_message


def test_unparseable_date(builder, hotel, hotel_form):
    hotel_form.check_in_date = "next tuesday"

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "period"


def test_single_day_service_defaults_to_today(builder):
    """Test that a tour without a date is booked for today."""
    tour = ServiceOffering.model_validate({"_id": "t1", "type": "tour", "price": 3000})
    form = BookingForm(
        service_type=ServiceType.TOUR,
        service_id="t1",
        customer_phone="03001234567",
        party_size=3,
        cnic_number="35202-1234567-1",
        cnic_photo_data_uri=PHOTO,
    )

    request = builder.build(form, tour, today=TODAY)

    assert request.check_in_date == TODAY
    assert request.check_out_date == TODAY
    assert request.total_amount == 9000


def test_vehicle_requires_pickup_location(builder, vehicle, vehicle_form):
    vehicle_form.pickup_location = "  "

    with pytest.raises(ValidationError) as exc_info:
        builder.build(vehicle_form, vehicle, today=TODAY)

    assert exc_info.value.field == "pickup_location"


def test_phone_falls_back_to_profile(builder, hotel, hotel_form, customer):
    customer.phone = "03110000000"
    hotel_form.customer_phone = ""

    request = builder.build(hotel_form, hotel, today=TODAY)

    assert request.customer_phone == "03110000000"


def test_missing_phone(builder, hotel, hotel_form):
    hotel_form.customer_phone = ""

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "customer_phone"


def test_missing_cnic_number(builder, hotel, hotel_form):
    hotel_form.cnic_number = ""

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "cnic_number"


def test_cnic_photo_must_be_image(builder, hotel, hotel_form):
    hotel_form.cnic_photo_data_uri = "data:application/pdf;base64,JVBERi0="

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "cnic_photo"


def test_cnic_photo_size_cap(backend, session, hotel, hotel_form):
    builder = ReservationRequestBuilder(
        backend, session, settings=BookingSettings(max_cnic_photo_bytes=16)
    )
    hotel_form.cnic_photo_data_uri = encode_cnic_photo(b"x" * 64)

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "cnic_photo"


def test_train_needs_no_identity(builder):
    train = ServiceOffering.model_validate(
        {"_id": "tr1", "type": "train", "price": 1200, "availableSeats": 50}
    )
    form = BookingForm(
        service_type=ServiceType.TRAIN,
        service_id="tr1",
        check_in_date="2024-06-05",
        customer_phone="03001234567",
        party_size=2,
        cnic_number="35202-1234567-1",
    )

    request = builder.build(form, train, today=TODAY)

    assert request.cnic_number is None
    assert "cnicNumber" not in request.to_payload()
    assert request.total_amount == 2400


def test_party_size_over_capacity(builder, hotel, hotel_form):
    hotel_form.party_size = 5

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert "Maximum 4 guests" in exc_info.value.user_message


def test_default_capacity_when_undeclared(builder, hotel_form):
    hotel = ServiceOffering.model_validate({"_id": "h2", "type": "hotel", "price": 100})
    hotel_form.party_size = 1000

    request = builder.build(hotel_form, hotel, today=TODAY)
    assert request.party_size == 1000

    hotel_form.party_size = 1001
    with pytest.raises(ValidationError):
        builder.build(hotel_form, hotel, today=TODAY)


def test_party_size_not_a_number(builder, hotel, hotel_form):
    hotel_form.party_size = "two"

    with pytest.raises(ValidationError) as exc_info:
        builder.build(hotel_form, hotel, today=TODAY)

    assert exc_info.value.field == "guests"


def test_hotel_total_uses_rooms_and_nights(builder, hotel, hotel_form):
    request = builder.build(hotel_form, hotel, today=TODAY)

    assert request.total_amount == 40000


def test_vehicle_payload(builder, vehicle, vehicle_form):
    """Test the driver fee and vehicle fields reach the payload."""
    payload = builder.build(vehicle_form, vehicle, today=TODAY).to_payload()

    assert payload["totalAmount"] == 1410000
    assert payload["needsDriver"] is True
    assert payload["pickupLocation"] == "Lahore Airport"
    assert payload["checkInDate"] == "2024-01-01"
    assert payload["guests"] == 2
    assert payload["cnicPhoto"] == PHOTO


# =============================================================================
# Submission Tests
# =============================================================================


@pytest.mark.asyncio
async def test_submit_success_clears_form(builder, backend, hotel, hotel_form):
    outcome = await builder.submit(hotel_form, hotel, today=TODAY)

    assert isinstance(outcome, BookingCreated)
    assert outcome.success is True
    assert outcome.confirmation_number == "TB-1001"
    assert outcome.reservation.id == "res1"
    assert outcome.reservation.service_type == ServiceType.HOTEL
    assert outcome.reservation.service_name == "Serena"
    assert outcome.reservation.total_amount == 40000

    path, payload = backend.create_reservation.call_args.args
    assert path == "/api/hotelreservation/reservation"
    assert payload["serviceId"] == "h1"
    assert payload["customerEmail"] == "ayesha@example.com"

    assert hotel_form.check_in_date is None
    assert hotel_form.cnic_number == ""
    assert hotel_form.service_id == "h1"


@pytest.mark.asyncio
async def test_submit_null_fields_in_response_keep_submitted_values(builder, backend, hotel, hotel_form):
    """Test that nulls echoed by the backend do not override the submitted booking."""
    backend.create_reservation.return_value = {
        "_id": "res2",
        "confirmationNumber": "TB-2002",
        "checkInDate": None,
        "checkOutDate": None,
    }

    outcome = await builder.submit(hotel_form, hotel, today=TODAY)

    assert isinstance(outcome, BookingCreated)
    assert outcome.reservation.period.check_in_date == date(2024, 6, 10)
    assert outcome.reservation.id == "res2"
    assert hotel_form.check_in_date is None


@pytest.mark.asyncio
async def test_submit_unreadable_response_still_reports_created(builder, backend, hotel, hotel_form):
    """Test that a persisted booking is reported as created even if its echo is unreadable."""
    backend.create_reservation.return_value = {
        "_id": "res3",
        "confirmationNumber": "TB-3003",
        "guests": "many",
        "status": "archived",
    }

    outcome = await builder.submit(hotel_form, hotel, today=TODAY)

    assert isinstance(outcome, BookingCreated)
    assert outcome.confirmation_number == "TB-3003"
    assert outcome.reservation.id == "res3"
    assert outcome.reservation.party_size == 2
    assert outcome.reservation.total_amount == 40000
    assert hotel_form.cnic_number == ""


@pytest.mark.asyncio
async def test_submit_backend_failure_keeps_form(builder, backend, hotel, hotel_form):
    backend.create_reservation.side_effect = BackendError("Hotel is fully booked", status_code=400)

    outcome = await builder.submit(hotel_form, hotel, today=TODAY)

    assert isinstance(outcome, BookingFailed)
    assert outcome.success is False
    assert outcome.error_message == "Hotel is fully booked"
    assert hotel_form.check_in_date == "2024-06-10"
    assert builder.is_submitting is False


@pytest.mark.asyncio
async def test_submit_network_failure(builder, backend, hotel, hotel_form):
    backend.create_reservation.side_effect = NetworkError()

    outcome = await builder.submit(hotel_form, hotel, today=TODAY)

    assert isinstance(outcome, BookingFailed)
    assert "connection" in outcome.error_message


@pytest.mark.asyncio
async def test_double_submit_refused(builder, backend, hotel, hotel_form):
    """Test that a second submit during an in-flight one is refused."""

    async def create(path, payload):
        assert builder.is_submitting
        with pytest.raises(ValidationError):
            await builder.submit(hotel_form, hotel, today=TODAY)
        return {"_id": "res1"}

    backend.create_reservation.side_effect = create

    outcome = await builder.submit(hotel_form, hotel, today=TODAY)

    assert outcome.success is True
    assert backend.create_reservation.call_count == 1


@pytest.mark.asyncio
async def test_vehicle_uses_unified_endpoint(builder, backend, vehicle, vehicle_form):
    await builder.submit(vehicle_form, vehicle, today=TODAY)

    path, _ = backend.create_reservation.call_args.args
    assert path == "/api/reservations"


# =============================================================================
# Photo Encoding Tests
# =============================================================================


def test_encode_cnic_photo():
    uri = encode_cnic_photo(b"ABCD", content_type="image/png")

    assert uri.startswith("data:image/png;base64,")
    assert base64.b64decode(uri.split(",", 1)[1]) == b"ABCD"


def test_encode_cnic_photo_rejects_non_image():
    with pytest.raises(ValidationError):
        encode_cnic_photo(b"%PDF", content_type="application/pdf")


def test_encode_cnic_photo_rejects_large_file():
    with pytest.raises(ValidationError):
        encode_cnic_photo(b"x" * 2048, max_bytes=1024)
