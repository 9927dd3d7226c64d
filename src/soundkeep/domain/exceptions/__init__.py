"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so handlers can read it without parsing
    # str(exception). Don't raise this directly - always pick a specific subclass so callers
    # (and the FastAPI exception handlers) can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when a referenced entity is absent or not visible to the caller.

    A track in a library the principal may not see is reported exactly like a
    track that does not exist, so callers cannot probe for hidden ids.

    HTTP Status: 404
    """

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidPathError(DomainException):
    """A file reference escapes its directory or is malformed.

    HTTP Status: 400
    """

    def __init__(self, message: str = "invalid path", path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class NotReadyError(DomainException):
    """An artifact was requested before a finished job exists for it.

    HTTP Status: 404 (with error="not_ready")
    """

    def __init__(self, resource_key: str) -> None:
        super().__init__(f"Artifact {resource_key} is not ready")
        self.resource_key = resource_key


class ProducerFailure(DomainException):
    """The external producer (transcoder, scanner) failed.

    Recorded on the job row by the worker, never raised into a request handler.
    """

    pass


class StorageUnavailableError(DomainException):
    """The job store failed for a reason other than a not-yet-created table.

    HTTP Status: 503
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503
    """

    pass


class AuthenticationError(DomainException):
    """No authenticated principal was supplied by the gateway.

    HTTP Status: 401
    """

    pass


class AuthorizationError(DomainException):
    """Principal is authenticated but not allowed to perform the action.

    HTTP Status: 403
    """

    pass


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "InvalidPathError",
    "NotReadyError",
    "ProducerFailure",
    "StorageUnavailableError",
]
