class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """Unknown test, assignment, order or ad."""


class ConfigurationError(ServiceError):
    """An active test has no variants to assign."""


class ValidationError(ServiceError):
    """Missing or invalid input, rejected before any write."""
