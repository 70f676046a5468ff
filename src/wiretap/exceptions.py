"""Exception hierarchy for wiretap.

All exceptions inherit from :class:`WiretapError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`wiretap.exit_codes`.
The top-level error handler in :func:`wiretap.app.main` catches
``WiretapError`` and exits with the appropriate code.

Only :class:`FingerprintError` is allowed to fail a user-visible send.
Store, transport and decode errors are raised by the low-level adapters and
caught, logged and degraded by the cache manager and the multiplexer.

Subclass hierarchy::

    WiretapError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- NotFoundError       (exit 4)
    +-- TransportError      (exit 6)
    |   +-- ExecuteError    (exit 6)
    +-- FingerprintError    (exit 7)
    +-- StoreError          (exit 8)
    |   +-- StoreUnavailable (exit 8)
    +-- MessageDecodeError  (exit 1)
    +-- ConfigError         (exit 1)
"""

from wiretap.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_FINGERPRINT_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_STORE_ERROR,
)


class WiretapError(Exception):
    """Base exception for all wiretap errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(WiretapError):
    """Raised for invalid CLI arguments such as a malformed ``-H`` value."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(WiretapError):
    """Raised when a fingerprint has no cached state in either tier."""

    exit_code = EXIT_NOT_FOUND


class TransportError(WiretapError):
    """Raised on network-level failures talking to the inspector server."""

    exit_code = EXIT_CONNECTION_ERROR


class ExecuteError(TransportError):
    """Raised by the execute-request collaborator when a send fails.

    The send workflow catches this and records ``str(exc)`` in
    :attr:`~wiretap.models.ResponseState.error`; it never crosses the cache
    boundary.
    """


class FingerprintError(WiretapError):
    """Raised when the platform hash primitive is unavailable.

    Fatal to the calling send operation.
    """

    exit_code = EXIT_FINGERPRINT_ERROR


class StoreError(WiretapError):
    """Raised when a durable store operation fails (I/O, quota, aborted transaction)."""

    exit_code = EXIT_STORE_ERROR


class StoreUnavailable(StoreError):
    """Raised when the durable store cannot be opened at all."""


class MessageDecodeError(WiretapError):
    """Raised when an inbound live-update message is not a ``{topic, payload}`` object."""


class ConfigError(WiretapError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
