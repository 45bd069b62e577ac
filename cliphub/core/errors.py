"""
Error taxonomy shared by every layer.

Each error carries the HTTP status it maps to, so the API layer can
translate any of them uniformly without knowing where it was raised.
Core code raises these; infrastructure code either raises these directly
or subclasses them for backend-specific failures.
"""


class ClipHubError(Exception):
    """Base class for all application errors."""
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ClipHubError):
    """Required input is missing or malformed."""
    status_code = 400


class NotFoundError(ClipHubError):
    """A referenced clip or user does not exist."""
    status_code = 404


class ClipNotFoundError(NotFoundError):
    """Raised when a clip record is absent for the given (id, owner)."""

    def __init__(self, clip_id: str, owner_id: str) -> None:
        super().__init__(f"Clip {clip_id} not found for owner {owner_id}")
        self.clip_id = clip_id
        self.owner_id = owner_id


class UserNotFoundError(NotFoundError):
    """Raised when no user record exists for a handle."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class ConflictError(ClipHubError):
    """
    A write lost a race.

    Raised for duplicate creates and for conditional replaces whose
    version token no longer matches the stored record.
    """
    status_code = 409


class ConfigurationError(ClipHubError):
    """Required backend configuration is absent."""
    status_code = 500


class BackendUnavailableError(ClipHubError):
    """
    A backing store could not be reached.

    The message should say which store and what to check, so operators
    can tell "storage unreachable" apart from other failures.
    """
    status_code = 500
