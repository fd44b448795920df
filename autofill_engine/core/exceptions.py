"""Custom exceptions for the autofill engine."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Categories of classification-backend failures."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    QUOTA = "quota"
    PARSE = "parse"
    CONFIG = "config"
    UNKNOWN = "unknown"


class ClassificationBackendError(Exception):
    """
    Raised by a classifier transport when a request cannot be completed.

    Carries a category and free-form context so callers can log the failure
    without inspecting the transport.
    """

    category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, category: Optional[ErrorCategory] = None,
                 context: Optional[Dict[str, Any]] = None):
        self.message = message
        if category is not None:
            self.category = category
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "category": self.category.value,
            "context": self.context,
        }


class InsufficientCreditsError(ClassificationBackendError):
    """The hosted backend refused the request for lack of credits (HTTP 402)."""
    category = ErrorCategory.QUOTA


class ResponseParseError(ClassificationBackendError):
    """The backend answered with text that could not be recovered into results."""
    category = ErrorCategory.PARSE


class ClassifierNotConfiguredError(ClassificationBackendError):
    """No usable transport is configured (missing key, endpoint or token)."""
    category = ErrorCategory.CONFIG
