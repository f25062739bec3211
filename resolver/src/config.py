"""
Weather resolver configuration using Pydantic Settings.

Provides centralized configuration for:
- Listen address and shutdown behaviour
- Postal code directory and weather provider endpoints
- Tracing (OTLP collector) and logging

Settings are read from the environment without a prefix so the deployment
variables (HTTP_PORT, OTEL_EXPORTER_OTLP_ENDPOINT, ...) apply unchanged.
"""

from functools import lru_cache
from typing import Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.runtime import parse_listen_address


class ResolverSettings(BaseSettings):
    """Resolver service settings loaded from environment variables."""

    # =========================================================================
    # Service Settings
    # =========================================================================

    service_name: str = Field(default="weather-resolver", description="Service name for traces and logs")
    app_version: str = Field(default="1.0.0", description="Service version")
    environment: str = Field(default="production", description="Environment: development|staging|production")

    http_port: str = Field(default=":8081", description="Listen address (':8081', '8081' or 'host:8081')")
    shutdown_grace_period: float = Field(
        default=10.0,
        description="Seconds in-flight requests get to finish on shutdown",
        gt=0,
    )

    # =========================================================================
    # Upstream APIs
    # =========================================================================

    location_api_url: str = Field(
        default="http://viacep.com.br/ws/{cep}/json/",
        description="Postal code directory URL template, {cep} is replaced by the code",
    )
    weather_api_url: str = Field(
        default="http://api.weatherapi.com/v1/current.json",
        description="Current weather endpoint",
    )
    request_timeout: float = Field(
        default=10.0,
        description="Timeout for each outbound request (seconds)",
        gt=0,
    )

    # =========================================================================
    # Monitoring and Observability
    # =========================================================================

    tracing_enabled: bool = Field(default=True, description="Export spans to the OTLP collector")
    otel_exporter_otlp_endpoint: str = Field(
        default="otel-collector:4317",
        description="OTLP/gRPC collector address",
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        description="Trace sampling rate for root spans",
        ge=0.0,
        le=1.0,
    )
    tracing_export_timeout: float = Field(
        default=1.0,
        description="Collector export timeout (seconds)",
        gt=0,
    )

    log_level: str = Field(default="INFO", description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL")
    log_format: str = Field(default="json", description="Log format: json|text")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: str) -> str:
        parse_listen_address(v)
        return v

    @field_validator("location_api_url")
    @classmethod
    def validate_location_api_url(cls, v: str) -> str:
        if "{cep}" not in v:
            raise ValueError("location_api_url must contain a {cep} placeholder")
        return v

    @property
    def listen_address(self) -> Tuple[str, int]:
        """Host and port parsed from HTTP_PORT."""
        return parse_listen_address(self.http_port)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


@lru_cache()
def get_settings() -> ResolverSettings:
    """
    Get cached settings instance.

    Returns:
        ResolverSettings: Cached settings instance
    """
    return ResolverSettings()
