"""
Exception Hierarchy

Only InvalidConfigError is meant to reach callers of the pipeline; every
other error is converted to a fallback result at the orchestrator boundary.
"""

from typing import Optional, Dict, Any

from symbol_isolation.core.logging import symbol_id_var, stage_var


# =============================================================================
# Custom Exceptions
# =============================================================================

class IsolationBaseException(Exception):
    """Base exception for the symbol isolation pipeline."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        symbol_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.symbol_id = symbol_id or symbol_id_var.get()
        self.stage = stage or stage_var.get()
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "code": self.code,
            "symbol_id": self.symbol_id,
            "stage": self.stage,
            "details": self.details,
        }


class InvalidConfigError(IsolationBaseException, ValueError):
    """Raised when threshold values are out of range or inconsistent."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, code=400, **kwargs)
        if errors:
            self.details["errors"] = errors


class NoForegroundDetectedError(IsolationBaseException):
    """Raised when every pixel of an image is classified as background."""

    def __init__(self, message: str = "No foreground detected in image", **kwargs):
        super().__init__(message, code=422, **kwargs)


class DecodeFailureError(IsolationBaseException):
    """Raised when encoded bytes cannot be decoded into a raster image."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=415, **kwargs)


class AllocationFailureError(IsolationBaseException):
    """Raised when a pixel buffer cannot be allocated."""

    def __init__(self, message: str = "Out of memory while allocating pixel buffer", **kwargs):
        super().__init__(message, code=507, **kwargs)


class PipelineStageError(IsolationBaseException):
    """Raised when a pipeline stage fails unexpectedly."""

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, code=500, stage=stage, **kwargs)


class PipelineTimeoutError(IsolationBaseException):
    """Raised when a symbol exceeds its wall-clock budget."""

    def __init__(self, timeout_seconds: float, **kwargs):
        super().__init__(
            f"Isolation exceeded {timeout_seconds:.1f}s budget",
            code=504,
            **kwargs
        )
        self.details["timeout_seconds"] = timeout_seconds
