"""Exception hierarchy for swcache.

All exceptions inherit from :class:`SwcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`swcache.exit_codes`.
The top-level error handler in :func:`swcache.app.main` catches
``SwcacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Only :class:`SeedError` is meant to cross the engine boundary during normal
operation. :class:`NetworkError` is raised by the network adapter and
always converted to a synthesized response by the strategies.

Subclass hierarchy::

    SwcacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- SeedError           (exit 3)
    +-- StoreError          (exit 4)
    +-- LifecycleError      (exit 5)
    +-- NetworkError        (exit 6)
"""

from swcache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_ERROR,
    EXIT_NETWORK_ERROR,
    EXIT_SEED_FAILURE,
    EXIT_STORE_ERROR,
)


class SwcacheError(Exception):
    """Base exception for all swcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`swcache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SwcacheError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(SwcacheError):
    """Raised for configuration problems (invalid JSON, bad manifest, unreadable files)."""

    exit_code = EXIT_GENERIC_FAILURE


class SeedError(SwcacheError):
    """Raised when a namespace cannot be seeded with the full asset manifest.

    Args:
        message: Human-readable error description.
        url: The manifest resource that failed, when known.
    """

    exit_code = EXIT_SEED_FAILURE

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class StoreError(SwcacheError):
    """Raised when the underlying :mod:`diskcache` store fails."""

    exit_code = EXIT_STORE_ERROR


class LifecycleError(SwcacheError):
    """Raised on an invalid lifecycle transition (e.g. activating a redundant instance)."""

    exit_code = EXIT_LIFECYCLE_ERROR


class NetworkError(SwcacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_NETWORK_ERROR
