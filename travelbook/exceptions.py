"""Error taxonomy for the booking core."""

from typing import Any

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class TravelbookError(Exception):
    """Base exception for all booking core errors."""

    default_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.user_message = message or self.default_message


class ValidationError(TravelbookError):
    """Client-detected problem with the input; no backend call was made."""

    default_message = "Please check the booking details."

    def __init__(self, message: str | None = None, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidTransition(ValidationError):
    """Reservation status change not allowed from the current status."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Reservation cannot move from {current} to {target}",
            field="status",
        )
        self.current = current
        self.target = target


class AuthRequired(TravelbookError):
    """No authenticated user, or the backend rejected the credentials."""

    default_message = "You need to login to continue."


class PermissionDenied(TravelbookError):
    """Authenticated user lacks the provider/admin role for this action."""

    default_message = "You are not allowed to manage this reservation."


class BackendError(TravelbookError):
    """Backend answered with a non-2xx status or `success: false`."""

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class NetworkError(TravelbookError):
    """Request never completed (connection, timeout, DNS)."""

    default_message = "Could not reach the booking server. Please check your connection."


class PartialFetchFailure(TravelbookError):
    """Some listing sources failed. Attached to the merged result, not raised."""

    def __init__(self, failed_sources: list[str]):
        super().__init__(
            f"Some bookings could not be loaded ({', '.join(failed_sources)}). "
            "Showing the bookings that were found."
        )
        self.failed_sources = failed_sources
