"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="TRUCKWATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Truck Delivery Tracking API"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    data_root: Path = Field(default=Path("data"), description="Root directory for cached documents.")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Telemetry provider (Motive)
    motive_base_url: str = Field(
        default="https://api.gomotive.com/v1",
        description="Base URL for the telemetry provider REST API.",
    )
    motive_api_key: Optional[str] = Field(default=None, description="Telemetry provider API key.")
    motive_fleet_id: Optional[str] = Field(
        default=None,
        description="Optional fleet identifier; enables the fleet-scoped locations endpoint.",
    )
    motive_timeout_seconds: float = Field(default=20.0, gt=0.0)
    motive_min_request_interval_seconds: float = Field(default=2.0, ge=0.0)
    motive_page_size: int = Field(default=25, ge=1)
    motive_max_pages: int = Field(default=50, ge=1)
    motive_max_empty_pages: int = Field(default=2, ge=1)
    motive_max_individual_vehicles: int = Field(default=20, ge=1)
    motive_individual_delay_seconds: float = Field(default=0.1, ge=0.0)
    vehicle_refresh_minutes: int = Field(
        default=5,
        ge=0,
        description="Background telemetry poll interval in minutes; 0 disables polling.",
    )

    # Mapping provider (Mapbox)
    mapbox_base_url: str = Field(default="https://api.mapbox.com")
    mapbox_access_token: Optional[str] = Field(default=None, description="Mapbox access token.")
    mapbox_timeout_seconds: float = Field(default=15.0, gt=0.0)
    mapbox_monthly_limit: int = Field(default=100_000, ge=1, description="Monthly request ceiling (free tier).")
    usage_warning_ratio: float = Field(default=0.8, gt=0.0, le=1.0)

    # Distance calculation
    distance_cache_max_age_minutes: int = Field(default=120, ge=1)
    distance_cache_drift_degrees: float = Field(default=0.001, gt=0.0)
    calculation_interval_minutes: int = Field(default=30, ge=1)
    calculation_item_delay_seconds: float = Field(default=0.25, ge=0.0)
    auto_calculate: bool = True

    # Status and risk policy
    stale_after_minutes: int = Field(default=30, ge=1)
    delivery_buffer_minutes: int = Field(default=30, ge=0)
    at_risk_high_threshold_minutes: int = Field(default=60, ge=0)
    reference_timezone: str = Field(
        default="America/New_York",
        description="Timezone used for appointment arithmetic and ETA display.",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
