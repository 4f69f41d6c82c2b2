"""
Structured Error Utilities

Provides standardized error bodies for API failures so the UI can tell a
caller error from a connectivity issue.

Error Response Format:
{
    "error": "invalid_argument" | "not_found" | "permission_denied" | "internal" | "invalid_parameter",
    "parameter": "sample_size",
    "message": "sample_size must be positive"
}
"""

from fastapi import HTTPException, status
from typing import Optional, Any


class ValidationErrorResponse:
    """Structured error response builder."""

    @staticmethod
    def error(code: str, message: str, parameter: Optional[str] = None) -> dict:
        """
        Create a generic error body.

        Args:
            code: Machine-readable error code
            message: Human-readable description
            parameter: Offending request parameter, if any

        Returns:
            Structured error dict
        """
        return {
            "error": code,
            "parameter": parameter,
            "message": message
        }

    @staticmethod
    def invalid_parameter(parameter: str, message: str, value: Optional[Any] = None) -> dict:
        """
        Create an invalid parameter error response.

        Args:
            parameter: Name of the invalid parameter
            message: Description of the validation error
            value: The invalid value (optional, for debugging)

        Returns:
            Structured error dict
        """
        response = {
            "error": "invalid_parameter",
            "parameter": parameter,
            "message": message
        }
        if value is not None:
            response["received_value"] = str(value)[:100]  # Truncate for safety
        return response


def raise_invalid_parameter(parameter: str, message: str, value: Optional[Any] = None):
    """
    Raise HTTPException with structured invalid parameter error.

    Raises:
        HTTPException with 422 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ValidationErrorResponse.invalid_parameter(parameter, message, value)
    )
