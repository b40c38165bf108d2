"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Find .env file
# =============================================================================

def find_env_file() -> str:
    """Find the .env file relative to project root."""
    candidates = [
        "config/.env",
        ".env",
        Path(__file__).parent.parent / "config" / ".env",
    ]

    for candidate in candidates:
        path = Path(candidate)
        if path.exists():
            return str(path)

    return ".env"  # Default


ENV_FILE = find_env_file()


# =============================================================================
# Settings Classes
# =============================================================================


class BackendSettings(BaseSettings):
    """Travel booking REST backend settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="TRAVELBOOK_BACKEND_",
        extra="ignore",
    )

    base_url: str = "http://localhost:5000"
    timeout_seconds: int = 30

    # Creation endpoints
    create_reservation_path: str = "/api/reservations"
    create_hotel_reservation_path: str = "/api/hotelreservation/reservation"
    create_restaurant_reservation_path: str = "/api/restaurantReservation/create"
    create_tour_reservation_path: str = "/api/tours"

    # Customer listing endpoints
    customer_hotel_reservations_path: str = "/hotel-reservations/user"
    customer_service_reservations_path: str = "/reservations/customer"
    customer_tour_reservations_path: str = "/tour-reservations/customer"

    # Provider listing endpoints
    provider_service_reservations_path: str = "/api/reservations/provider"
    provider_vehicle_reservations_path: str = "/api/vehiclereservation/provider"

    # Mutations
    reservation_status_path: str = "/api/reservations/{reservation_id}/status"
    legacy_vehicle_status_path: str = "/api/vehiclereservation/{reservation_id}/status"
    delete_reservation_path: str = "/reservations/{reservation_id}"

    # Service catalog lookups
    service_details_path: str = "/api/services/details/{service_id}"
    legacy_vehicle_details_path: str = "/vehicle/{service_id}"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class BookingSettings(BaseSettings):
    """Booking form rules."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="BOOKING_",
        extra="ignore",
    )

    default_capacity: int = 1000
    driver_fee_per_day: int = 700000
    max_cnic_photo_bytes: int = 5 * 1024 * 1024

    @field_validator("default_capacity")
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Default capacity must be at least 1")
        return v


class SessionSettings(BaseSettings):
    """Login session timeout settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="SESSION_",
        extra="ignore",
    )

    timeout_seconds: int = 60 * 60
    warning_seconds: int = 5 * 60
    check_interval_seconds: int = 60

    @field_validator("warning_seconds")
    @classmethod
    def validate_warning(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Session warning lead time cannot be negative")
        return v


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


class Settings(BaseSettings):
    """Main settings container with lazy loading."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache for sub-settings
    _backend: BackendSettings | None = None
    _booking: BookingSettings | None = None
    _session: SessionSettings | None = None
    _app: AppSettings | None = None

    @property
    def backend(self) -> BackendSettings:
        if self._backend is None:
            self._backend = BackendSettings()
        return self._backend

    @property
    def booking(self) -> BookingSettings:
        if self._booking is None:
            self._booking = BookingSettings()
        return self._booking

    @property
    def session(self) -> SessionSettings:
        if self._session is None:
            self._session = SessionSettings()
        return self._session

    @property
    def app(self) -> AppSettings:
        if self._app is None:
            self._app = AppSettings()
        return self._app

    # Convenience accessors
    @property
    def backend_base_url(self) -> str:
        return self.backend.base_url

    @property
    def default_capacity(self) -> int:
        return self.booking.default_capacity

    @property
    def driver_fee_per_day(self) -> int:
        return self.booking.driver_fee_per_day


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
