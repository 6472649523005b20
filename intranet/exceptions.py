"""Domain exceptions mapped to the JSON error envelope.

Every error a service raises carries a machine-readable ``code`` and the
HTTP status it should surface as. ``error_handlers`` turns them into
``{"error": {"code", "message", "details"}}``.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    code = "APP_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details: Dict[str, Any] = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class InvalidParamsError(AppError):
    code = "INVALID_PARAMS"
    status_code = 400


class AuthenticationError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Invalid credentials", **kwargs: Any):
        super().__init__(message, **kwargs)


class PermissionDeniedError(AppError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "Not enough permissions", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str = "Resource", **kwargs: Any):
        super().__init__(f"{resource} not found", **kwargs)


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409


class ReservationConflictError(ConflictError):
    code = "RESERVATION_CONFLICT"

    def __init__(self, room_id: int, conflicts: list):
        super().__init__(
            "Meeting room is already reserved for that time range",
            details={"roomId": room_id, "conflicts": conflicts},
        )


class InvalidStateTransitionError(AppError):
    code = "INVALID_STATE_TRANSITION"
    status_code = 400

    def __init__(self, message: str, current_status: str):
        super().__init__(message, details={"currentStatus": current_status})


class ServiceUnavailableError(AppError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503


class FileTooLargeError(AppError):
    code = "FILE_TOO_LARGE"
    status_code = 400


class InvalidFileTypeError(AppError):
    code = "INVALID_FILE_TYPE"
    status_code = 400
