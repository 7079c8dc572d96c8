"""
Custom exceptions for TrackerBase.

Provides a hierarchy of exceptions that map to HTTP status codes
and include structured error information. The synchronous engines
never raise these for malformed rule data; they are used at the
parsing, pipeline runtime and HTTP boundaries.
"""

from typing import Any


class TrackerBaseException(Exception):
    """
    Base exception for all TrackerBase errors.

    All custom exceptions should inherit from this class.
    """

    # Default status code for base exception
    status_code = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# HTTP 400 - Bad Request Errors
# =============================================================================


class BadRequestError(TrackerBaseException):
    """Invalid request parameters or payload."""

    status_code = 400


class ExprSyntaxError(BadRequestError):
    """Expression text could not be parsed."""

    def __init__(self, text: str, error: str) -> None:
        super().__init__(
            message=f"Expression syntax error: {error}",
            code="EXPR_SYNTAX_ERROR",
            details={"text": text[:200], "error": error},
        )


class ExprGraphError(BadRequestError):
    """Expression cannot be represented as an editor graph."""

    def __init__(self, op: str) -> None:
        super().__init__(
            message=f"Operator '{op}' cannot be represented in the expression graph",
            code="EXPR_GRAPH_ERROR",
            details={"op": op},
        )


# =============================================================================
# HTTP 429 - Rate Limit Errors
# =============================================================================


class RateLimitError(TrackerBaseException):
    """Rate limit exceeded."""

    status_code = 429

    def __init__(self, retry_after: int | None = None) -> None:
        super().__init__(
            message="Rate limit exceeded. Please try again later.",
            code="RATE_LIMIT_EXCEEDED",
            details={"retry_after": retry_after},
        )


# =============================================================================
# HTTP 500 - Pipeline Runtime Errors
# =============================================================================


class PipelineRuntimeError(TrackerBaseException):
    """A pipeline node failed while executing."""

    status_code = 500

    def __init__(self, message: str, node_id: str | None = None) -> None:
        super().__init__(
            message=message,
            code="PIPELINE_RUNTIME_ERROR",
            details={"node_id": node_id},
        )
        self.node_id = node_id


class ConnectorError(PipelineRuntimeError):
    """External connector request failed or was refused."""

    def __init__(self, message: str, connector_id: str | None = None) -> None:
        super().__init__(message=message)
        self.code = "CONNECTOR_ERROR"
        self.details["connector_id"] = connector_id


class AIExtractionError(PipelineRuntimeError):
    """AI option extraction failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message)
        self.code = "AI_EXTRACTION_ERROR"
