"""
Reservation Errors

Expected failures of the reservation engine. Each carries the HTTP status
and error code the API exception handler renders; anything raised that is
not one of these is an internal fault.
"""

from shared.domain.exceptions import DomainError


class ReservationError(DomainError):
    """Base class for reservation engine failures"""


class ReservationNotFound(ReservationError):
    """Reservation, item or unit is absent or not visible in its current status"""

    status_code = 404
    code = 'not_found'
    default_message = 'Booking not found'


class InvalidReservationState(ReservationError):
    """Action attempted from a status that does not allow it"""

    status_code = 409
    code = 'invalid_state'
    default_message = 'Action not allowed in the current status'

    def __init__(self, message: str | None = None, *, current_status: str | None = None, **details):
        self.current_status = current_status
        if current_status is not None:
            details['current_status'] = current_status
        super().__init__(message, **details)


class ReservationConflict(ReservationError):
    """Requested interval overlaps a live reservation of the same bike"""

    status_code = 409
    code = 'conflict'
    default_message = 'One or more bikes are no longer available for the selected time'


class ReservationValidationError(ReservationError):
    """Malformed interval, policy or request parameters"""

    status_code = 400
    code = 'validation_error'
    default_message = 'Invalid booking request'


class NotBookable(ReservationValidationError):
    """Bike cannot be booked with the requested duration (missing price, not in service)"""

    code = 'not_bookable'
    default_message = 'Bike is not bookable for the requested duration'


class DependencyFailure(ReservationError):
    """Payment or waiver collaborator unavailable or refused the request"""

    status_code = 502
    code = 'dependency_failure'
    default_message = 'Payment gateway error'

    def __init__(self, message: str | None = None, *, dependency: str = 'payment_gateway', declined: bool = False, **details):
        self.dependency = dependency
        self.declined = declined
        if declined:
            self.status_code = 402
            self.code = 'payment_declined'
        super().__init__(message, dependency=dependency, **details)
