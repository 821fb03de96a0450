class DomainError(Exception):
    """Base exception class for all domain-specific exceptions."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundError(DomainError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: object) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message)


class ValidationError(DomainError):
    """Exception raised when validation fails."""


class ConflictError(DomainError):
    """Exception raised when a write would duplicate an existing record."""


class PersistenceError(DomainError):
    """The store rejected or failed an operation.

    The message is a fixed, human-readable prefix such as
    ``"Failed to create progress history"``; the driver error stays on
    ``__cause__`` so it reaches the logs but never the client.
    """
