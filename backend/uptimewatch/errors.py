"""Error taxonomy shared by the API layer and the monitoring core.

A probe that cannot reach its target is not an error: it is a ``down``
outcome. Everything here is a fault of configuration, storage, delivery
or access.
"""


class UptimeError(Exception):
    """Base class for all uptimewatch errors."""


class ConfigError(UptimeError):
    """A check definition cannot be probed (bad hostname, path, method...)."""


class StorageError(UptimeError):
    """The persistence gateway is unreachable or a write failed."""


class DispatchError(UptimeError):
    """An alert could not be delivered."""


class QuotaError(UptimeError):
    """The user already owns the maximum number of checks."""


class NotFoundError(UptimeError):
    """The requested record does not exist."""


class AuthError(UptimeError):
    """Missing, invalid or expired session token, or bad credentials."""


class ForbiddenError(UptimeError):
    """The authenticated user does not own the requested resource."""


class CheckInFlight(UptimeError):
    """Another evaluation of the same check is already running."""

    def __init__(self, check_id: str):
        super().__init__(f"Check {check_id} is already in flight")
        self.check_id = check_id


class InputError(UptimeError):
    """Request data is well-formed but not acceptable (duplicate phone, no fields...)."""
