"""Reservation status transitions for the provider/admin approval workflow."""

from datetime import date
from typing import TYPE_CHECKING

from travelbook.exceptions import InvalidTransition, PermissionDenied, ValidationError
from travelbook.models.reservation import Reservation, ReservationStatus, normalize_record
from travelbook.services.backend_client import TravelBackendClient
from travelbook.services.session import Session
from travelbook.utils.logger import booking_context, get_logger

if TYPE_CHECKING:
    from travelbook.services.aggregator import BookingList

logger = get_logger(__name__)

# completed is derived from the checkout date, never set by a transition
TRANSITIONS: dict[ReservationStatus, set[ReservationStatus]] = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: set(),
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.COMPLETED: set(),
}


def assert_transition(current: ReservationStatus, target: ReservationStatus) -> None:
    """Raise InvalidTransition unless ``current -> target`` is allowed."""
    if target not in TRANSITIONS.get(current, set()):
        raise InvalidTransition(current.value, target.value)


def effective_status(reservation: Reservation, today: date | None = None) -> ReservationStatus:
    """Status as shown to users: confirmed stays become completed after checkout."""
    today = today or date.today()
    if (
        reservation.status == ReservationStatus.CONFIRMED
        and reservation.period.check_out_date < today
    ):
        return ReservationStatus.COMPLETED
    return reservation.status


class ReservationStateMachine:
    """
    Approve or reject pending reservations.

    Legacy vehicle records and unified service records share this one
    interface; the backend client routes on ``record_kind``. Preconditions
    are checked locally before the backend round-trip, and nothing local is
    changed unless the backend confirms the transition.
    """

    def __init__(self, backend: TravelBackendClient, session: Session):
        self.backend = backend
        self.session = session

    async def approve(
        self,
        reservation: Reservation,
        bookings: "BookingList | None" = None,
    ) -> Reservation:
        """
        Confirm a pending reservation.

        Args:
            reservation: Reservation to confirm
            bookings: Optional BookingList to reconcile after success

        Returns:
            The confirmed reservation
        """
        return await self._transition(reservation, ReservationStatus.CONFIRMED, None, bookings)

    async def reject(
        self,
        reservation: Reservation,
        rejection_reason: str,
        bookings: "BookingList | None" = None,
    ) -> Reservation:
        """
        Cancel a pending reservation with a reason shown to the customer.

        Raises:
            ValidationError: Empty reason (no backend call is made)
        """
        reason = (rejection_reason or "").strip()
        if not reason:
            raise ValidationError(
                "Please provide a reason for rejection",
                field="rejection_reason",
            )
        return await self._transition(reservation, ReservationStatus.CANCELLED, reason, bookings)

    async def _transition(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        reason: str | None,
        bookings: "BookingList | None",
    ) -> Reservation:
        user = self.session.require_user()
        if not user.can_manage(reservation.provider_id):
            raise PermissionDenied()
        if not reservation.id:
            raise ValidationError("Reservation has no id", field="id")

        assert_transition(reservation.status, target)

        with booking_context(
            reservation_id=reservation.id,
            record_kind=reservation.record_kind.value,
        ):
            record = await self.backend.update_reservation_status(
                reservation.id,
                target,
                rejection_reason=reason,
                record_kind=reservation.record_kind,
            )

            updated = reservation.model_copy(update={"status": target, "rejection_reason": reason})
            if record and record.get("status"):
                # full records replace ours, partial ones only confirm the status
                try:
                    updated = normalize_record(
                        record,
                        default_service_type=reservation.service_type,
                        default_record_kind=reservation.record_kind,
                    )
                except ValueError as e:
                    logger.debug("status_update_record_partial", error=str(e))

            logger.info("reservation_status_changed", status=target.value)

        if bookings is not None:
            bookings.replace(updated)
        return updated
