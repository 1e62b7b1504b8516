from __future__ import annotations


class AppError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400, details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found", details: dict | None = None) -> None:
        super().__init__(code="not_found", message=message, status_code=404, details=details)


class NotAuthenticated(AppError):
    def __init__(self, message: str = "Authentication required", details: dict | None = None) -> None:
        super().__init__(code="not_authenticated", message=message, status_code=401, details=details)


class ValidationAppError(AppError):
    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        super().__init__(code="validation_error", message=message, status_code=422, details=details)


class RemoteFailure(AppError):
    """A store or network round-trip failed; the operation did not apply."""

    def __init__(self, message: str = "Remote store call failed", details: dict | None = None) -> None:
        super().__init__(code="remote_failure", message=message, status_code=502, details=details)


class DirectionsFailure(AppError):
    def __init__(self, message: str = "Directions request failed", details: dict | None = None) -> None:
        super().__init__(code="directions_failure", message=message, status_code=502, details=details)


class GeolocationError(AppError):
    def __init__(self, message: str = "Unable to determine location", details: dict | None = None) -> None:
        super().__init__(code="geolocation_error", message=message, status_code=422, details=details)
