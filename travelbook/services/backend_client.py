"""Async client for the travel booking REST backend."""

from typing import Any

import httpx
from pydantic import BaseModel

from travelbook.config import BackendSettings
from travelbook.exceptions import (
    GENERIC_FAILURE_MESSAGE,
    AuthRequired,
    BackendError,
    NetworkError,
)
from travelbook.models.reservation import RecordKind, ReservationStatus
from travelbook.models.service import ServiceOffering
from travelbook.utils.logger import get_logger, mask_sensitive

logger = get_logger(__name__)


# =============================================================================
# API Response Models
# =============================================================================


class ApiEnvelope(BaseModel):
    """Standard `{success, data, message}` response wrapper."""

    success: bool = True
    data: Any = None
    message: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "ApiEnvelope":
        """
        Wrap a decoded response body.

        Legacy endpoints answer with a bare array or object instead of an
        envelope; both are treated as successful payloads.
        """
        if isinstance(data, dict) and "success" in data:
            return cls(
                success=bool(data.get("success")),
                data=data.get("data"),
                message=data.get("message"),
            )
        return cls(success=True, data=data)


def extract_message(body: Any, fallback: str = GENERIC_FAILURE_MESSAGE) -> str:
    """Pull a human-readable message out of an error body."""
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return fallback


# =============================================================================
# Backend Client
# =============================================================================


class TravelBackendClient:
    """
    Async client for the booking backend.

    Usage:
        async with TravelBackendClient(base_url, token=token) as client:
            records = await client.list_reservations("/reservations/customer")
            await client.update_reservation_status(reservation_id, "confirmed")
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: int = 30,
        settings: BackendSettings | None = None,
    ):
        """
        Initialize backend client.

        Args:
            base_url: API base URL (e.g., http://localhost:5000)
            token: Bearer token of the logged-in user
            timeout: Request timeout in seconds
            settings: Endpoint paths (defaults used when not provided)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.settings = settings or BackendSettings(base_url=base_url)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TravelBackendClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, raise if not initialized."""
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with TravelBackendClient(...)' context."
            )
        return self._client

    def set_token(self, token: str | None) -> None:
        """Swap the bearer token (login/logout)."""
        self.token = token

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiEnvelope:
        """
        Send one request and unwrap the response envelope.

        Raises:
            AuthRequired: On HTTP 401
            BackendError: On non-2xx, `success: false` or an unreadable body
            NetworkError: If the request never completed
        """
        url = f"{self.base_url}{path}"

        logger.debug(
            "backend_request",
            method=method,
            path=path,
            token=mask_sensitive(self.token),
        )

        try:
            response = await self.client.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            try:
                body = e.response.json()
            except ValueError:
                body = None
            message = extract_message(body)

            logger.warning("backend_http_error", method=method, path=path, status=status)

            if status == 401:
                raise AuthRequired(extract_message(body, AuthRequired.default_message)) from e
            raise BackendError(message, status_code=status, response=body) from e

        except httpx.RequestError as e:
            logger.error("backend_network_error", method=method, path=path, error=str(e))
            raise NetworkError() from e

        except ValueError as e:
            logger.error("backend_invalid_response", method=method, path=path)
            raise BackendError("Invalid response from server") from e

        envelope = ApiEnvelope.from_json(data)
        if not envelope.success:
            logger.warning(
                "backend_operation_failed",
                method=method,
                path=path,
                message=envelope.message,
            )
            raise BackendError(
                envelope.message or GENERIC_FAILURE_MESSAGE,
                status_code=response.status_code,
                response=data,
            )

        return envelope

    # =========================================================================
    # Reservations
    # =========================================================================

    async def create_reservation(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create a reservation.

        Args:
            path: Creation endpoint for the service type
            payload: Canonical camelCase reservation payload

        Returns:
            The persisted reservation record (may be empty if the backend
            returned none)
        """
        logger.info(
            "backend_create_reservation",
            path=path,
            service_id=payload.get("serviceId"),
            cnic=mask_sensitive(payload.get("cnicNumber")),
        )

        envelope = await self._send("POST", path, json=payload)
        return envelope.data if isinstance(envelope.data, dict) else {}

    async def list_reservations(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        List reservations from one listing endpoint.

        Returns:
            Raw reservation records
        """
        envelope = await self._send("GET", path, params=params)
        data = envelope.data

        if isinstance(data, dict):
            data = data.get("reservations") or data.get("data") or []
        records = data if isinstance(data, list) else []

        logger.debug("backend_reservations_found", path=path, count=len(records))
        return records

    async def update_reservation_status(
        self,
        reservation_id: str,
        status: ReservationStatus | str,
        rejection_reason: str | None = None,
        record_kind: RecordKind = RecordKind.SERVICE,
    ) -> dict[str, Any] | None:
        """
        Set a reservation's status.

        Legacy vehicle records live behind their own status endpoint.

        Returns:
            Updated record if the backend returned one
        """
        if record_kind == RecordKind.LEGACY_VEHICLE:
            template = self.settings.legacy_vehicle_status_path
        else:
            template = self.settings.reservation_status_path
        path = template.format(reservation_id=reservation_id)

        body: dict[str, Any] = {"status": ReservationStatus(status).value}
        if rejection_reason:
            body["rejectionReason"] = rejection_reason

        logger.info(
            "backend_update_status",
            reservation_id=reservation_id,
            status=body["status"],
            record_kind=record_kind.value,
        )

        envelope = await self._send("PUT", path, json=body)
        return envelope.data if isinstance(envelope.data, dict) else None

    async def delete_reservation(self, reservation_id: str) -> None:
        """Permanently delete a reservation."""
        path = self.settings.delete_reservation_path.format(reservation_id=reservation_id)
        logger.info("backend_delete_reservation", reservation_id=reservation_id)
        await self._send("DELETE", path)

    # =========================================================================
    # Service Catalog
    # =========================================================================

    async def get_service_details(self, service_id: str) -> ServiceOffering:
        """
        Get a bookable service.

        Tries the unified services API first, then the legacy vehicle API.

        Raises:
            BackendError / NetworkError: If neither lookup succeeds
        """
        path = self.settings.service_details_path.format(service_id=service_id)
        try:
            envelope = await self._send("GET", path)
            if isinstance(envelope.data, dict):
                return ServiceOffering.model_validate(envelope.data)
        except BackendError as e:
            logger.info(
                "service_lookup_fallback",
                service_id=service_id,
                status=e.status_code,
            )

        path = self.settings.legacy_vehicle_details_path.format(service_id=service_id)
        envelope = await self._send("GET", path)
        if not isinstance(envelope.data, dict):
            raise BackendError("Service not found")

        vehicle = envelope.data
        return ServiceOffering.model_validate(
            {
                **vehicle,
                "name": f"{vehicle.get('brand', '')} {vehicle.get('model', '')}".strip(),
                "type": "vehicle",
                "vehicleType": vehicle.get("type"),
                "seatingCapacity": vehicle.get("capacity"),
            }
        )
