"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~wiretap.exceptions.WiretapError` subclass.

Example::

    $ wiretap show deadbeef
    $ echo $?
    4   # EXIT_NOT_FOUND -- no cached response for that fingerprint
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The requested cache entry does not exist."""

EXIT_CONNECTION_ERROR = 6
"""The inspector server or live-update socket could not be reached."""

EXIT_FINGERPRINT_ERROR = 7
"""The request fingerprint could not be computed."""

EXIT_STORE_ERROR = 8
"""The durable response store could not be opened or written."""
