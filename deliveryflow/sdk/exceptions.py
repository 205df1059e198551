# ==========================
# 📁 sdk/exceptions.py
# ==========================
from typing import Optional


class DeliveryFlowSDKError(Exception):
    """Base exception for deliveryflow SDK errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, error_body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_body = error_body

    def __str__(self):
        return f"{self.message} (Status: {self.status_code}, Body: {self.error_body if self.error_body else 'N/A'})"


class APIError(DeliveryFlowSDKError):
    """Raised for general API errors."""
    pass


class AuthenticationError(DeliveryFlowSDKError):
    def __init__(self, message: str = "Authentication failed. Check API key or credentials.", status_code: int = 401,
                 error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)


class NotFoundError(DeliveryFlowSDKError):
    def __init__(self, message: str = "Resource not found.", status_code: int = 404, error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)


class ConflictError(APIError):
    """Raised when the engine refuses a transition (409), e.g. a run already in progress."""

    def __init__(self, message: str = "Request conflicts with the current execution state.", status_code: int = 409,
                 error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)


class RequestTimeoutError(APIError):
    def __init__(self, message: str = "Request timed out.", status_code: int = 408, error_body: Optional[str] = None):
        super().__init__(message, status_code, error_body)
