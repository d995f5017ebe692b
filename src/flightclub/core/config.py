"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: FLIGHTCLUB_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FLIGHTCLUB_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="flightclub.db", description="SQLite database name")

    # Scheduler
    poll_interval_seconds: float = Field(default=5.0, gt=0, description="Due-task poll interval")
    max_concurrent_tasks: int = Field(default=5, ge=1, description="Concurrent scheduled executions")
    task_timeout_seconds: float = Field(
        default=600.0, gt=0, description="Wall-clock limit for one scheduled execution"
    )

    # HTTP
    http_timeout_seconds: float = Field(default=100.0, gt=0, description="Per-request HTTP timeout")

    # Reservation (YodelPass)
    reservation_api_url: str = Field(
        default="https://api.yodelpass.com",
        description="Booking service base URL",
    )
    reservation_max_attempts: int = Field(default=100, ge=1, description="Cart attempts before giving up")
    reservation_retry_delay_seconds: float = Field(
        default=5.0, ge=0, description="Delay between cart attempts"
    )
    reservation_catalog_item_id: int = Field(default=11584, description="Catalog item to reserve")
    reservation_place_id: int = Field(default=10672, description="Place of the catalog item")
    reservation_source_scope_id: int = Field(default=14, description="Source scope sent with the cart")
    vehicle_make_model: str = Field(default="Lamborghini Gallardo", description="Vehicle make/model")
    vehicle_license_plate: str = Field(default="CHGTHS", description="Vehicle license plate")
    vehicle_state: str = Field(default="BC", description="Vehicle registration state/province")

    # Executors
    enable_notifications: bool = Field(default=False, description="Register the Notification executor")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
