"""
Utils Package

Provides utility modules for:
- validation_errors: structured error bodies for HTTP responses
"""

from .validation_errors import (
    ValidationErrorResponse,
    raise_invalid_parameter,
)

__all__ = [
    'ValidationErrorResponse',
    'raise_invalid_parameter',
]
