"""
Exception hierarchy for the segmentation engine.

Structured error types so callers (CLI, API) can tell a recoverable
data shortage apart from an internal defect.
"""

from typing import Dict, Any, Optional


class SegmentationError(Exception):
    """Base exception for all segmentation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InsufficientDataError(SegmentationError):
    """Raised when there are fewer eligible customers than requested clusters."""

    def __init__(self, required: int, available: int, message: Optional[str] = None):
        self.required = required
        self.available = available
        super().__init__(
            message or (
                f"Not enough data. Need at least {required} customers "
                f"with purchase data, found {available}."
            ),
            {'required': required, 'available': available}
        )


class DimensionMismatchError(SegmentationError):
    """Raised when two vectors of different lengths are compared."""

    def __init__(self, left: int, right: int):
        super().__init__(
            f"Vector dimensions differ: {left} != {right}",
            {'left': left, 'right': right}
        )


class EmptyClusterInputError(SegmentationError):
    """Raised when a centroid is requested for an empty set of points."""

    def __init__(self, message: str = "Cannot compute a centroid of zero points"):
        super().__init__(message)


class SegmentationNotFoundError(SegmentationError):
    """Raised when a read needs a stored segmentation and none exists."""
