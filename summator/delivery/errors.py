"""Delivery pipeline error taxonomy."""

from typing import Optional


class DeliveryError(Exception):
    """Base class for delivery failures."""
    pass


class ConfigMissingError(DeliveryError):
    """Required delivery credentials are not configured."""
    pass


class SummarizationError(DeliveryError):
    """Summarization service call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class QuotaExceededError(SummarizationError):
    """Service reported rate or usage limiting (retryable)."""
    pass


class ModelNotFoundError(SummarizationError):
    """Requested model identifier could not be resolved."""
    pass


class NotificationError(DeliveryError):
    """Notification service call failed."""
    pass
