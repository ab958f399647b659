"""Domain exceptions raised by the service layer.

They subclass ``ValueError`` so callers that only care about "the request
was not acceptable" can catch that; routers map each one to an HTTP status
through :func:`portal.deps.raise_for_domain_error`.
"""

from typing import Dict, List, Optional


class PortalError(ValueError):
    """Base class for expected, user-facing service failures."""


class NotFoundError(PortalError):
    pass


class PermissionDeniedError(PortalError):
    pass


class ReportLockedError(PortalError):
    """Raised when editing a report that has been submitted."""


class InvalidTransitionError(PortalError):
    def __init__(self, old_status: str, new_status: str, allowed: List[str]):
        self.old_status = old_status
        self.new_status = new_status
        self.allowed = allowed
        super().__init__(
            f"Cannot move report from '{old_status}' to '{new_status}'. "
            f"Allowed: {', '.join(allowed) if allowed else 'none'}"
        )


class ReportValidationError(PortalError):
    """Raised when a report fails its submission checks."""

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message or "Report is not ready to submit")
