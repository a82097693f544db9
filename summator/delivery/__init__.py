"""
Transcript Delivery

Summarizes a finished transcript and sends the summary to a chat.

Key Components:
- GeminiClient: Summarization and model listing
- TelegramNotifier: Notification
- DeliveryPipeline: Single-flight orchestration with quota-aware retry
"""

from .errors import (
    DeliveryError,
    ConfigMissingError,
    SummarizationError,
    QuotaExceededError,
    ModelNotFoundError,
    NotificationError,
)
from .gemini import GeminiClient
from .telegram import TelegramNotifier
from .pipeline import DeliveryPipeline

__all__ = [
    "DeliveryError",
    "ConfigMissingError",
    "SummarizationError",
    "QuotaExceededError",
    "ModelNotFoundError",
    "NotificationError",
    "GeminiClient",
    "TelegramNotifier",
    "DeliveryPipeline",
]
