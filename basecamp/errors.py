"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class AuthorizationError(AppError):
    """Raised when the caller could not be authenticated."""

    def __init__(self, message="Authentication failed."):
        """Initialize the error."""
        super().__init__(message, 401)


class AccessDenied(AppError):
    """Raised when a user does not have permission to act on a resource."""

    def __init__(self, message="You do not have permission to do that."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class ConflictError(AppError):
    """Raised when a request conflicts with the current state of a resource."""

    def __init__(self, message="The request conflicts with the current state."):
        """Initialize the error."""
        super().__init__(message, 409)


class StoreError(AppError):
    """Raised when a write to the backing store fails."""

    def __init__(self, message="Something went wrong. Please try again."):
        """Initialize the error."""
        super().__init__(message, 503)
