"""
Billing Exception Hierarchy

Standard error codes for the subscription billing API.
All errors use the billing: prefix so clients can branch on error_code.
"""
from typing import Optional, Dict, Any


class BillingError(Exception):
    """
    Base exception for all billing errors.

    Carries a stable error code, a user-facing message and optional details
    that are returned verbatim in the API error body.
    """

    status_code = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ConfigError(BillingError):
    """
    Merchant configuration missing.

    Example:
    - PAYU_MERCHANT_KEY or PAYU_MERCHANT_SALT not set

    Raised before any payment form is generated.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("billing:config:missing_secret", message, details)


class ValidationError(BillingError):
    """
    Payment or callback fields are malformed or missing.

    Examples:
    - Empty email or first name after normalization
    - Callback without txnid, or no pending checkout in the session
    - Callback amount differs from the stored transaction amount
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("billing:request:invalid", message, details)


class SignatureMismatchError(BillingError):
    """
    Recomputed callback hash does not match the supplied one.

    The callback's claimed status is never trusted in this case.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("billing:callback:signature_mismatch", message, details)


class ReconciliationConflict(BillingError):
    """
    Stored transaction is in an unexpected state during reconciliation.

    Examples:
    - Activation touched no row and the row is not already paid
    - Pending transaction was deleted between redirect and callback
    """

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("billing:reconciliation:conflict", message, details)


class NotFoundError(BillingError):
    """Requested session, profile or subscription does not exist."""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("billing:not_found", message, details)
