"""Request, reading and response models for the postal code weather chain."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

KELVIN_OFFSET = 273


class PostalCodeRequest(BaseModel):
    """Gateway request body. A missing or null ``cep`` decodes to an empty string."""

    cep: StrictStr = Field(default="", description="Raw postal code as sent by the client")

    model_config = ConfigDict(frozen=True)

    @field_validator("cep", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class WeatherReading(BaseModel):
    """Current temperature reported by the weather provider."""

    temp_c: float = Field(..., description="Temperature in Celsius")

    model_config = ConfigDict(frozen=True)

    @property
    def temp_f(self) -> float:
        return self.temp_c * 9 / 5 + 32

    @property
    def temp_k(self) -> float:
        return self.temp_c + KELVIN_OFFSET


class AggregatedResponse(BaseModel):
    """Terminal response returned by both services."""

    city: str = Field(..., description="City resolved from the postal code")
    temp_C: float = Field(..., description="Temperature in Celsius")
    temp_F: float = Field(..., description="Temperature in Fahrenheit")
    temp_K: float = Field(..., description="Temperature in Kelvin")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_reading(cls, city: str, reading: WeatherReading) -> "AggregatedResponse":
        """Aggregate a reading, deriving Fahrenheit and Kelvin from Celsius."""
        return cls(
            city=city,
            temp_C=reading.temp_c,
            temp_F=reading.temp_f,
            temp_K=reading.temp_k,
        )


class ErrorResponse(BaseModel):
    """Error body returned for every taxonomy failure."""

    detail: str = Field(..., min_length=1)
    error: str = Field(..., description="Taxonomy kind code")


class ResolverState(str, Enum):
    """Lifecycle of one request inside the resolver service."""

    RECEIVED = "received"
    LOCATION_RESOLVING = "location_resolving"
    WEATHER_FETCHING = "weather_fetching"
    AGGREGATED = "aggregated"
    FAILED = "failed"


class GatewayState(str, Enum):
    """Lifecycle of one request inside the gateway service."""

    RECEIVED = "received"
    VALIDATED = "validated"
    FORWARDING = "forwarding"
    COMPLETED = "completed"
    FAILED = "failed"
