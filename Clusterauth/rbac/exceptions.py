class RbacError(Exception):
    """Base reconciliation engine exception."""


class PermissionValidationError(RbacError):
    """Raised when a grant is rejected at the permission store boundary."""


class UnknownTierError(RbacError):
    """Raised for a permission type tag missing from the catalog."""


class InvalidScopeError(RbacError):
    """Raised when a grant's namespace scope cannot be expanded for its tier."""


class TransportError(RbacError):
    """Raised when the cluster API is unreachable or times out. Retryable."""


class ClusterApiError(RbacError):
    """Raised when the cluster API rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReconciliationInProgress(RbacError):
    """Raised when a run for the same cluster is already in flight."""


class ClusterNotFound(RbacError):
    """Raised for an unknown cluster id."""
