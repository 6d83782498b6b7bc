"""
statshub errors

Every error carries the HTTP status it maps to on the request path. The
archival path logs them and moves on to the next cycle.
"""


class StatsHubError(Exception):
    """Base class for all statshub errors"""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(StatsHubError):
    """Malformed identifier, proof or body"""

    status_code = 400


class CounterOverflowError(ClientInputError):
    """A counter merge would leave the signed 64-bit range"""


class NotAuthenticatedError(StatsHubError):
    """No verifiable real identity for the caller"""

    status_code = 401


class ForbiddenError(StatsHubError):
    """Auth proof does not match the caller's identity"""

    status_code = 403


class StoreError(StatsHubError):
    """Aggregation store unreachable or failing"""

    status_code = 500
    retryable = True


class WarehouseError(StatsHubError):
    """Snapshot could not be appended to the warehouse"""

    status_code = 500
    retryable = True
