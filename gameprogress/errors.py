"""Error taxonomy for game progress.

Four kinds, each with one handling rule:
- ValidationError: malformed board content, snapshot, or attempt. Fatal
  to the operation, surfaced to the caller, never retried.
- TransientStoreError: a store call timed out or failed in a way worth
  retrying. Retried by sync.retry; when retries run out, the coordinator
  reports a failed outcome instead of raising (gameplay keeps going).
- InvalidRowError: a stored row failed strict validation. Caught by the
  coordinator, which deletes the row during cleanup.
- InvariantViolation: more than one canonical row survived cleanup.
  Logged and attached to the cleanup report, never raised.

Tier 1 leaf module: no imports.

Usage:
    from gameprogress.errors import TransientStoreError, ValidationError
"""


class GameProgressError(Exception):
    """Base class for every error this package raises."""


class ValidationError(GameProgressError):
    """Board content, snapshot, or attempt data is malformed."""


class TransientStoreError(GameProgressError):
    """A progress store call failed in a retryable way."""


class InvalidRowError(GameProgressError):
    """A stored progress row is unusable and should be deleted."""


class InvariantViolation(GameProgressError):
    """More than one canonical row exists for a key after cleanup."""
