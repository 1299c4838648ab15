class RideServiceError(Exception):
    """Base error for the fare and trip services.

    `status_code` is the HTTP status the API views answer with.
    """

    status_code = 400
    default_message = "Ride service error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class InvalidVehicleType(RideServiceError):
    default_message = "Invalid or inactive vehicle type"


class BookingNotFound(RideServiceError):
    status_code = 404
    default_message = "Ride booking not found"


class BreakdownNotFound(RideServiceError):
    status_code = 404
    default_message = "Fare breakdown not found for booking"


class MissingTripStart(RideServiceError):
    default_message = "Trip start time not found. Cannot calculate duration."


class InvalidState(RideServiceError):
    status_code = 409
    default_message = "Booking is not in a valid state for this action"


class NotAssigned(RideServiceError):
    status_code = 403
    default_message = "You are not assigned to this booking"


class TransientStoreError(RideServiceError):
    """Retryable store failure (lock timeout, deadlock, dropped connection)."""

    status_code = 503
    default_message = "Service temporarily unavailable. Please try again later."


class PersistenceFailure(RideServiceError):
    """A write still failed after the retry budget was spent."""

    status_code = 503
    default_message = "Unable to save booking data. Please try again later."
