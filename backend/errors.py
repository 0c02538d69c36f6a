"""
Error taxonomy for the hydration core.

`ValidationError` subclasses `ValueError` so the HTTP layer can keep
mapping `ValueError` to a 400 like every other bad input. The other two
never leave `HydrationService`: persistence failures are reported through
the notifier and the `saved` flag, corrupt records are replaced by defaults.
"""


class HydrationError(Exception):
    """Base class for all hydration tracker errors."""


class ValidationError(HydrationError, ValueError):
    """Rejected user input. No state was changed."""


class PersistenceError(HydrationError):
    """The durable write (or delete) did not go through."""


class DeserializationError(HydrationError):
    """The persisted record could not be parsed into a HydrationState."""
