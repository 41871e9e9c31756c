"""Domain error taxonomy.

Services raise these; the API layer maps each one to an HTTP status in
``app.api.error_handlers``.  Nothing here knows about HTTP.
"""


class DomainError(Exception):
    """Base class for expected, caller-visible failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed input (rating out of range, report reason length, ...)."""


class NotFoundError(DomainError):
    """Material, comment, report or notification absent or not visible."""


class DuplicateReportError(DomainError):
    """The reporter already reported this exact target."""


class AuthorizationError(DomainError):
    """The principal is not allowed to perform the operation."""


class ConcurrentUpdateError(DomainError):
    """A material changed between read and write more times than we retry."""
