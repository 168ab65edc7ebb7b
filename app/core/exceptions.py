"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    error_code = "InternalServerError"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    error_code = "NotFound"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class DoctorNotAvailableException(NotFoundException):
    """Doctor missing, inactive or not in the requested department."""

    error_code = "DoctorNotAvailable"

    def __init__(self, message: str = "Doctor not found or not available in this department"):
        """Initialize with 404 status code."""
        super().__init__(message)


class UnauthorizedException(AppException):
    """Missing or invalid caller identity."""

    error_code = "Unauthenticated"

    def __init__(self, message: str = "User not authenticated"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    error_code = "Forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    error_code = "BadRequest"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ValidationException(BadRequestException):
    """Malformed request shape or values."""

    error_code = "ValidationError"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 400 status code."""
        super().__init__(message)


class InvalidCancellationReasonException(BadRequestException):
    """Doctor cancellation note is too short."""

    error_code = "InvalidCancellationReason"

    def __init__(
        self,
        message: str = "Please provide a brief cancellation reason (min 3 characters)",
    ):
        """Initialize with 400 status code."""
        super().__init__(message)


class ConflictException(AppException):
    """Conflict exception."""

    error_code = "Conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class SlotTakenException(ConflictException):
    """The doctor already has an appointment at this start instant."""

    error_code = "SlotTaken"

    def __init__(self, message: str = "Time slot is already booked"):
        """Initialize with 409 status code."""
        super().__init__(message)


class InvalidTransitionException(ConflictException):
    """Appointment status change not allowed from its current state."""

    error_code = "InvalidTransition"

    def __init__(self, message: str = "Appointment is already finalized"):
        """Initialize with 409 status code."""
        super().__init__(message)
