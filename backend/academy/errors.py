"""Error taxonomy raised by the service layer.

Every error derives from `ServiceError`, itself a `ValueError`, so
callers that only care about "the operation was rejected" can catch one
type while the HTTP layer maps each subclass to its own status code.
"""

from typing import Optional


class ServiceError(ValueError):
    """Base class for failures signalled by services."""


class NotFoundError(ServiceError):
    """A referenced entity id does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found with id: {entity_id}")


class DuplicateUsernameError(ServiceError):
    def __init__(self, username: str):
        self.username = username
        super().__init__("Username already exists")


class DuplicateEmailError(ServiceError):
    """An email is already taken within `scope` (user, student or teacher)."""

    def __init__(self, email: str, scope: str = "user"):
        self.email = email
        self.scope = scope
        if scope == "user":
            message = "Email already exists"
        else:
            message = f"{scope.capitalize()} with this email already exists"
        super().__init__(message)


class ConstraintViolationError(ServiceError):
    """The store rejected a write, typically a unique-key race."""

    def __init__(self, message: str = "constraint violation", original: Optional[Exception] = None):
        self.original = original
        super().__init__(message)


class ValidationError(ServiceError):
    """Entity fields failed validation before reaching the store."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")
