"""
Error taxonomy for the portal API.
Each error carries the HTTP status and JSON payload the routes answer with.
"""


class CaptivePortalError(Exception):
    """Base class; never carries internal details to the client."""
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def to_dict(self):
        return {"success": False, "error": self.message}


class ValidationError(CaptivePortalError):
    """Missing or malformed input; user-correctable."""
    status_code = 400
    public_message = "Invalid request"


class NotFoundError(CaptivePortalError):
    """No OTP or session; answered as a success:false payload, not an HTTP error."""
    status_code = 200
    public_message = "No OTP found"


class RateLimitError(CaptivePortalError):
    """Cooldown or hourly window exceeded."""
    status_code = 200
    public_message = "Too many requests. Please try again later."

    def __init__(self, message=None, retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self):
        data = super().to_dict()
        if self.retry_after is not None:
            data["retryAfter"] = self.retry_after
        return data


class QuotaExceededError(CaptivePortalError):
    """Too many devices authenticated for one email."""
    status_code = 403
    public_message = "Device limit reached for this email"


class DependencyFailure(CaptivePortalError):
    """Mail, firewall, lease file or database unreachable."""
    status_code = 500
    public_message = "Internal server error"
