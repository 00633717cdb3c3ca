class FleetError(Exception):
    """Base class for errors raised by the booking engine."""

    status_code = 500


class ValidationError(FleetError):
    """Malformed or out-of-range input."""

    status_code = 400


class NotFound(FleetError):
    status_code = 404


class Conflict(FleetError):
    """The requested window overlaps an existing booking of the vehicle."""

    status_code = 409


class StorageError(FleetError):
    status_code = 500
