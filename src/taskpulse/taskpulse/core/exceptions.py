class DomainError(Exception):
    """Base exception for business rule violations."""

    default_message = "Business rule violated"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    default_message = "Validation error"


class PermissionDenied(DomainError):
    """Raised when a user lacks permission for an action."""

    default_message = "Insufficient permissions to perform this action"


class RecordNotFound(DomainError):
    default_message = "Resource not found"


class NotAssignedError(DomainError):
    default_message = "User is not assigned to this task"


class AlreadyActiveError(DomainError):
    default_message = "Time tracking is already active for this user on this task"


class NoActiveSessionError(DomainError):
    default_message = "No active time tracking session for this user on this task"


class AlreadyAssignedError(DomainError):
    default_message = "User is already assigned to this task"


class LastAssigneeError(DomainError):
    default_message = "Cannot remove the last assignee from task"


class DuplicateRecordError(DomainError):
    default_message = "Record already exists"


class ConcurrentModificationError(DomainError):
    """Raised when a record was changed by someone else since it was loaded."""

    default_message = "Record was modified concurrently, reload and retry"
