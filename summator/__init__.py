"""
Summator

Meeting caption capture and summary delivery.

Philosophy:
- Capture is lossy toward noise: better to miss a UI label than record it
- One line per utterance: growing, jittering and corrected captions collapse
- Delivery never fails loudly: every step lands in the debug log

Usage:
    from summator.common import load_config, LocalStore, RotatingLog
    from summator.capture import CaptureSession, MutationStream
    from summator.delivery import DeliveryPipeline
"""

__version__ = "0.1.0"
