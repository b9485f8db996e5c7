class GodownError(Exception):
    """Base exception for the godown allocation and transfer system."""

    default_message = "An error occurred in the godown allocation system"

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(GodownError):
    """Exception raised for configuration errors."""

    default_message = "Configuration error"


class ValidationError(GodownError):
    """Exception raised for malformed or missing input, before any write."""

    default_message = "Validation error"


class NotFoundError(ValidationError):
    """Exception raised when a referenced godown, local body or transfer is absent."""

    default_message = "Resource not found"


class ConflictError(GodownError):
    """Exception raised when a write collides with data owned by another godown."""

    default_message = "Conflict with existing data"


class InvalidStateError(GodownError):
    """Exception raised when a transfer is not in a state that allows the action."""

    default_message = "Invalid transfer state"


class StorageError(GodownError):
    """Exception raised when the underlying data store fails."""

    default_message = "Storage error"
