from .client import DeliveryFlowClient
from .exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    DeliveryFlowSDKError,
    NotFoundError,
    RequestTimeoutError,
)

__all__ = [
    "DeliveryFlowClient",
    "APIError",
    "AuthenticationError",
    "ConflictError",
    "DeliveryFlowSDKError",
    "NotFoundError",
    "RequestTimeoutError",
]
