"""
Summator Common Module

Shared infrastructure for the capture session and the delivery pipeline.
"""

from .config import SummatorConfig, load_config, save_config
from .storage import LocalStore
from .log_sink import RotatingLog

__all__ = [
    "SummatorConfig",
    "load_config",
    "save_config",
    "LocalStore",
    "RotatingLog",
]
