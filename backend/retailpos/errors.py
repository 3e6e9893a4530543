# Overview: Service-layer error taxonomy shared by the core and the route layer.

"""
Every failure raised by a service carries a human-readable message, an
optional ``details`` dict, and the HTTP status the route layer should use.

Errors raised inside ``concurrency.atomic`` roll the unit of work back before
they reach the caller; nothing partial is ever committed.
"""


class ServiceError(Exception):
    """Base class for failures surfaced to callers of the core."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class NotFoundError(ServiceError):
    """Referenced contract, payment, item or customer does not exist."""

    status_code = 404


class InvalidStateError(ServiceError):
    """Operation attempted against a record that is not in the required state."""

    status_code = 409


class CapacityExhaustedError(ServiceError):
    """No available quantity left to reserve or sell."""

    status_code = 409


class ValidationError(ServiceError):
    """400-level input problem."""

    status_code = 400


class StorageError(ServiceError):
    """Underlying transaction or commit failure."""

    status_code = 500
