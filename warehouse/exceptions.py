"""
Warehouse Exceptions

Errors raised by the batch load. Row-level fixups (dropped null keys,
undefined unit prices) are counted in stage statistics and never raised.
"""

from typing import Any, Dict, Optional


class WarehouseError(Exception):
    """Base exception for all warehouse errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RawStoreError(WarehouseError):
    """A raw extract is missing or unreadable"""


class ValidityWindowConflict(WarehouseError):
    """Two versions of the same business key share a start date"""

    def __init__(self, conflicts: list, key: str):
        self.conflicts = conflicts
        preview = ", ".join(str(c) for c in conflicts[:5])
        super().__init__(
            f"{len(conflicts)} {key} value(s) have versions with identical start dates: {preview}",
            details={"key": key, "conflicts": conflicts},
        )


class AssemblyError(WarehouseError):
    """Dimensional model could not be assembled consistently"""


class StageFailure(WarehouseError):
    """
    A pipeline stage failed; the whole batch run is aborted.

    Attributes:
        stage: Name of the failing stage
        key: Offending business key, when the cause identifies one
        cause: Underlying exception
    """

    def __init__(
        self,
        stage: str,
        cause: Exception,
        key: Optional[Any] = None,
    ):
        self.stage = stage
        self.cause = cause
        self.key = key
        message = f"Stage '{stage}' failed: {type(cause).__name__}: {cause}"
        if key is not None:
            message += f" (key={key})"
        details = {"stage": stage, "error_type": type(cause).__name__}
        if isinstance(cause, WarehouseError):
            details.update(cause.details)
        super().__init__(message, details=details)
