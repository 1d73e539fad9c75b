"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()


class TelemetryConfig(BaseModel):
    """Retention bounds and maintenance cadence for the in-memory store."""

    request_capacity: int = Field(default=1000, gt=0, description="Raw request samples kept")
    health_capacity: int = Field(default=5000, gt=0, description="Health samples kept")
    snapshot_capacity: int = Field(
        default=1440, gt=0, description="System snapshots kept (24h at one per minute)"
    )
    snapshot_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval between system snapshots"
    )
    cleanup_interval_seconds: float = Field(
        default=3600.0, gt=0.0, description="Interval between retention sweeps"
    )
    retention_hours: float = Field(
        default=24.0, gt=0.0, description="Samples older than this are pruned"
    )
    auto_start: bool = Field(
        default=True, description="Start maintenance tasks with the dashboard service"
    )


class SeedService(BaseModel):
    """A service registered at startup."""

    name: str = Field(min_length=1)
    url: str
    description: str = ""


class HealthCheckConfig(BaseModel):
    """Outbound probing and request proxy settings."""

    probe_timeout_seconds: float = Field(default=5.0, gt=0.0, description="Health probe timeout")
    proxy_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for ad-hoc proxied requests"
    )
    poll_interval_seconds: float = Field(
        default=30.0, gt=0.0, description="Interval between health polls of all services"
    )
    seed_services: list[SeedService] = Field(default_factory=list)

    @field_validator("seed_services", mode="before")
    @classmethod
    def parse_seed_services(cls, v):
        # "name=url,name=url" from the environment
        if isinstance(v, str):
            services = []
            for item in filter(None, (part.strip() for part in v.split(","))):
                name, sep, url = item.partition("=")
                if not sep:
                    raise ValueError(f"Seed service must look like name=url, got {item!r}")
                services.append({"name": name.strip(), "url": url.strip()})
            return services
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    health: HealthCheckConfig = Field(default_factory=HealthCheckConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    telemetry_config = TelemetryConfig(
        request_capacity=int(os.getenv("TELEMETRY_REQUEST_CAPACITY", "1000")),
        health_capacity=int(os.getenv("TELEMETRY_HEALTH_CAPACITY", "5000")),
        snapshot_capacity=int(os.getenv("TELEMETRY_SNAPSHOT_CAPACITY", "1440")),
        snapshot_interval_seconds=float(os.getenv("SNAPSHOT_INTERVAL_SECONDS", "60.0")),
        cleanup_interval_seconds=float(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600.0")),
        retention_hours=float(os.getenv("RETENTION_HOURS", "24.0")),
        auto_start=_parse_bool(os.getenv("TELEMETRY_AUTO_START"), True),
    )

    health_config = HealthCheckConfig(
        probe_timeout_seconds=float(os.getenv("HEALTH_PROBE_TIMEOUT_SECONDS", "5.0")),
        proxy_timeout_seconds=float(os.getenv("PROXY_TIMEOUT_SECONDS", "10.0")),
        poll_interval_seconds=float(os.getenv("HEALTH_POLL_INTERVAL_SECONDS", "30.0")),
        seed_services=os.getenv("SEED_SERVICES", ""),  # type: ignore[arg-type]
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        telemetry=telemetry_config,
        health=health_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nTELEMETRY")
    print(
        "Capacities: "
        f"{config.telemetry.request_capacity} requests / "
        f"{config.telemetry.health_capacity} health checks / "
        f"{config.telemetry.snapshot_capacity} snapshots"
    )
    print(f"Snapshot Interval: {config.telemetry.snapshot_interval_seconds}s")
    print(f"Cleanup Interval: {config.telemetry.cleanup_interval_seconds}s")
    print(f"Retention: {config.telemetry.retention_hours}h")

    print("\nHEALTH CHECKS")
    print(f"Probe Timeout: {config.health.probe_timeout_seconds}s")
    print(f"Poll Interval: {config.health.poll_interval_seconds}s")
    print(f"Seed Services: {len(config.health.seed_services)}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
