"""User-facing error formatting and structured error logging.

Converts internal exceptions into messages that are safe to show a brand
user or a passport visitor, and logs the full technical detail once.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from loomtrace.src.storage import SupplyChainStorageError
from loomtrace.src.supply_chain import SupplyChainError

logger = logging.getLogger(__name__)


@dataclass
class UserFriendlyError:
    """A structured error designed for end-user consumption.

    Attributes:
        message: Clear description for the user.
        suggestion: Actionable guidance.
        component: Originating area (storage, supply_chain, passport).
        error_code: Machine-readable identifier (e.g. "STOR_404").
        technical_detail: Debugging info for logs only -- never shown to users.
    """

    message: str
    suggestion: str
    component: str
    error_code: str
    technical_detail: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialize for API responses (excludes technical_detail)."""
        return {
            "message": self.message,
            "suggestion": self.suggestion,
            "component": self.component,
            "error_code": self.error_code,
        }


class ErrorFormatter:
    """Convert internal exceptions to user-friendly messages.

    All methods return a ``UserFriendlyError`` and never expose database
    details, stack traces, or IDs to the end user.
    """

    def format_storage_error(self, error: Exception) -> UserFriendlyError:
        """Format a data-storage error."""
        return self._format(error, component="storage", code_prefix="STOR")

    def format_validation_error(self, error: Exception) -> UserFriendlyError:
        """Format a form or supply chain rule violation."""
        return self._format(error, component="supply_chain", code_prefix="VAL")

    def format_lookup_error(self, error: Exception) -> UserFriendlyError:
        """Format a failure to load a public passport."""
        return self._format(error, component="passport", code_prefix="DPP")

    # ------------------------------------------------------------------

    def _format(
        self,
        error: Exception,
        *,
        component: str,
        code_prefix: str,
    ) -> UserFriendlyError:
        message, suggestion, code_suffix = _classify_error(error)
        return UserFriendlyError(
            message=message,
            suggestion=suggestion,
            component=component,
            error_code=f"{code_prefix}_{code_suffix}",
            technical_detail=repr(error),
        )


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, (SupplyChainStorageError, SupplyChainError)) and (
        "not found" in str(error).lower()
    )


def _classify_error(error: Exception) -> tuple[str, str, str]:
    """Map an exception to (message, suggestion, code_suffix)."""
    if isinstance(error, LookupError) or _is_not_found(error):
        if "product" in str(error).lower():
            message = "The requested product could not be found."
        else:
            message = "The requested resource was not found."
        return (message, "Check the link or QR code and try again.", "404")
    if isinstance(error, (ValidationError, SupplyChainError)):
        return (
            "There was an issue with your request.",
            "Check the highlighted fields and try again.",
            "400",
        )
    if isinstance(error, (TimeoutError, ConnectionError)):
        return (
            "The request took too long to complete or the connection was lost.",
            "Please try again in a moment.",
            "503",
        )
    if isinstance(error, (sqlite3.Error, SupplyChainStorageError)):
        return (
            "Our servers are experiencing issues.",
            "Please try again in a moment.",
            "500",
        )
    if isinstance(error, ValueError):
        return (
            "Invalid input was provided.",
            "Check the input values and try again.",
            "422",
        )
    return (
        "An unexpected error occurred.",
        "Please try again. If this keeps happening, contact support.",
        "999",
    )


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """Log an exception once, with its context, for monitoring."""
    logger.error(
        "%s: %s",
        type(error).__name__,
        error,
        exc_info=error,
        extra={"error_context": dict(context or {})},
    )
