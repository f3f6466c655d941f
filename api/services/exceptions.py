"""
Billing exceptions.

Services raise these; the app-level handler in main.py renders them as
{"success": false, "error": message, "code": code} with `status_code`.
"""


class BillingError(Exception):
    """Base exception for all commerce errors."""

    status_code = 400
    code = "BILLING_ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class AuthorizationError(BillingError):
    """Missing session or insufficient role. Never says which."""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(BillingError):
    code = "VALIDATION_ERROR"


class RateLimitError(BillingError):
    status_code = 429
    code = "RATE_LIMITED"


class ConflictError(BillingError):
    status_code = 409
    code = "CONFLICT"


class NotFoundError(BillingError):
    status_code = 404
    code = "NOT_FOUND"


class IntegrityViolationError(BillingError):
    """A destructive operation blocked because financial records reference it."""

    status_code = 409
    code = "INTEGRITY_VIOLATION"


class GatewayError(BillingError):
    """Razorpay call failed; `message` is the gateway's own description when it gave one."""

    status_code = 502
    code = "GATEWAY_ERROR"


class SignatureError(BillingError):
    code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Invalid Signature"):
        super().__init__(message)
