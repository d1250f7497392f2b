from typing import Optional


class CoreError(Exception):
    """Base class for every error raised by the academic core."""

    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotProvisionedError(CoreError):
    """
    No academic session has ever been configured for this school.

    This is a setup problem, not a transient failure, and must not be retried.
    """

    default_message = "No academic session has been set up yet. Create an academic session to continue."


class ValidationFailure(CoreError):
    """A required selection or value is missing. Raised before any network call."""

    default_message = "Invalid request"


class MigrationNotConfirmedError(ValidationFailure):
    default_message = "Moving to the next session cannot be undone and must be confirmed"


class TermProgressionError(CoreError):
    default_message = "The third term cannot be advanced. Move to the next session instead."


class RemoteRejection(CoreError):
    """The remote API refused the request. `message` is the server's own text."""

    default_message = "The request was rejected by the server"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportFailure(CoreError):
    default_message = "Unable to reach the school API. Please try again later."
