"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~swcache.exceptions.SwcacheError` subclass.
Deployment scripts can inspect the exit code of ``swcache install`` to
decide whether a new version may be promoted.

Example::

    $ swcache install
    $ echo $?
    3   # EXIT_SEED_FAILURE -- a manifest resource could not be fetched
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SEED_FAILURE = 3
"""Installation aborted because the asset manifest could not be seeded."""

EXIT_STORE_ERROR = 4
"""The persistent cache store could not be read or written."""

EXIT_LIFECYCLE_ERROR = 5
"""An engine instance was asked to make an invalid lifecycle transition."""

EXIT_NETWORK_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
