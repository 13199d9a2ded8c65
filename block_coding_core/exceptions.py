"""
Flow-specific exceptions for the Block Coding Core.
"""

from typing import Optional, Any, Dict


class FlowError(Exception):
    """Base exception for all flow-related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConnectionRejectedError(FlowError):
    """Raised when an edge cannot be added to a flow."""

    def __init__(self, message: str, edge: Any = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.edge = edge


class DuplicateConnectionError(ConnectionRejectedError):
    """Raised when the same source/target pair is already connected."""
    pass


class CircularConnectionError(ConnectionRejectedError):
    """Raised when an edge would close a directed cycle."""
    pass


class BlockNotFoundError(FlowError):
    """Raised when an operation references a block that is not in the flow."""

    def __init__(self, message: str, block_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.block_id = block_id


class FlowFormatError(FlowError):
    """Raised when serialized flow data cannot be turned back into a Flow."""
    pass


class ValidationError(FlowError):
    """Describes a validation finding on a block or flow."""
    pass
