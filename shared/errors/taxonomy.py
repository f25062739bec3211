"""Error taxonomy shared by the gateway and resolver services.

Every failure inside a request is mapped to one of these kinds and raised
to the owning HTTP layer, which turns it into a status code. Nothing here
is retried.
"""

from typing import Any, Dict, Optional, Type


class WeatherServiceError(Exception):
    """Base class for per-request failures."""

    code: str = "weather_service_error"
    status_code: int = 400

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail()
        super().__init__(self.detail)

    @classmethod
    def default_detail(cls) -> str:
        return cls.code.replace("_", " ")

    def to_payload(self) -> Dict[str, str]:
        """Serialize to the error body returned by both services."""
        return {"detail": self.detail, "error": self.code}


class MalformedInput(WeatherServiceError):
    """Request body could not be decoded."""

    code = "malformed_input"
    status_code = 400


class InvalidPostalCode(MalformedInput):
    """Postal code does not have exactly eight digits."""

    code = "invalid_zipcode"
    status_code = 422

    @classmethod
    def default_detail(cls) -> str:
        return "invalid zipcode"


class MissingCredential(WeatherServiceError):
    code = "missing_credential"
    status_code = 400

    @classmethod
    def default_detail(cls) -> str:
        return "api_key is required"


class ResolutionFailed(WeatherServiceError):
    """Postal code lookup returned no locality or could not be performed."""

    code = "resolution_failed"
    status_code = 400

    @classmethod
    def default_detail(cls) -> str:
        return "can not find zipcode"


class WeatherFailed(WeatherServiceError):
    """Weather lookup failed or the provider rejected the credential."""

    code = "weather_failed"
    status_code = 400

    @classmethod
    def default_detail(cls) -> str:
        return "error getting weather, invalid API key"


class DownstreamUnavailable(WeatherServiceError):
    """Peer service could not be reached or answered something unusable."""

    code = "downstream_unavailable"
    status_code = 400

    @classmethod
    def default_detail(cls) -> str:
        return "weather resolver unavailable"


class MethodNotAllowed(WeatherServiceError):
    code = "method_not_allowed"
    status_code = 405

    @classmethod
    def default_detail(cls) -> str:
        return "Method not allowed"


_ERRORS_BY_CODE: Dict[str, Type[WeatherServiceError]] = {
    cls.code: cls
    for cls in (
        MalformedInput,
        InvalidPostalCode,
        MissingCredential,
        ResolutionFailed,
        WeatherFailed,
        DownstreamUnavailable,
        MethodNotAllowed,
    )
}


def error_from_payload(payload: Any) -> Optional[WeatherServiceError]:
    """Rebuild a taxonomy error from an error body sent by a peer service.

    Args:
        payload: Decoded JSON body of a failed response

    Returns:
        The matching error instance, or None if the body is not an error body
        this taxonomy knows about
    """
    if not isinstance(payload, dict):
        return None

    code = payload.get("error")
    error_cls = _ERRORS_BY_CODE.get(code) if isinstance(code, str) else None
    if error_cls is None:
        return None

    detail = payload.get("detail")
    return error_cls(detail if isinstance(detail, str) and detail else None)
