"""
Configuration Management for Summator

Loads configuration from ~/.summator/config.json and environment variables.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import List

# Default config paths
CONFIG_DIR = Path.home() / ".summator"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOCAL_STATE_PATH = CONFIG_DIR / "local_state.json"

DEFAULT_GEMINI_MODEL = "gemini-flash-latest"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TELEGRAM_BASE_URL = "https://api.telegram.org"


@dataclass
class GeminiConfig:
    """Summarization service configuration"""
    api_key: str = ""
    model: str = DEFAULT_GEMINI_MODEL
    base_url: str = DEFAULT_GEMINI_BASE_URL
    timeout: float = 60.0


@dataclass
class TelegramConfig:
    """Notification service configuration"""
    bot_token: str = ""
    chat_id: str = ""
    parse_mode: str = "Markdown"
    base_url: str = DEFAULT_TELEGRAM_BASE_URL
    timeout: float = 30.0


@dataclass
class CaptureConfig:
    """Caption capture configuration"""
    history_size: int = 10
    min_length: int = 5
    debounce_seconds: float = 0.2
    speaker: str = "Unknown"
    flush_on_stop: bool = False  # False: pending batch is not part of the stop result


@dataclass
class DeliveryConfig:
    """Delivery pipeline configuration"""
    max_retries: int = 3
    backoff_base: float = 2.0


@dataclass
class LogConfig:
    """Debug log buffer configuration"""
    max_chars: int = 10000


@dataclass
class ServerConfig:
    """Host server configuration"""
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class SummatorConfig:
    """Main Summator configuration"""
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    log: LogConfig = field(default_factory=LogConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)

    def missing_credentials(self) -> List[str]:
        """Names of required delivery settings that are empty after trimming"""
        required = {
            "gemini.api_key": self.gemini.api_key,
            "telegram.bot_token": self.telegram.bot_token,
            "telegram.chat_id": self.telegram.chat_id,
        }
        return [name for name, value in required.items() if not (value or "").strip()]


def _parse_gemini_config(data: dict) -> GeminiConfig:
    """Parse gemini section from config dict"""
    gemini_data = data.get("gemini", {})
    return GeminiConfig(
        api_key=gemini_data.get("api_key", ""),
        model=gemini_data.get("model", DEFAULT_GEMINI_MODEL),
        base_url=gemini_data.get("base_url", DEFAULT_GEMINI_BASE_URL),
        timeout=gemini_data.get("timeout", 60.0),
    )


def _parse_telegram_config(data: dict) -> TelegramConfig:
    """Parse telegram section from config dict"""
    telegram_data = data.get("telegram", {})
    return TelegramConfig(
        bot_token=telegram_data.get("bot_token", ""),
        chat_id=str(telegram_data.get("chat_id", "")),
        parse_mode=telegram_data.get("parse_mode", "Markdown"),
        base_url=telegram_data.get("base_url", DEFAULT_TELEGRAM_BASE_URL),
        timeout=telegram_data.get("timeout", 30.0),
    )


def _parse_capture_config(data: dict) -> CaptureConfig:
    """Parse capture section from config dict"""
    capture_data = data.get("capture", {})
    return CaptureConfig(
        history_size=capture_data.get("history_size", 10),
        min_length=capture_data.get("min_length", 5),
        debounce_seconds=capture_data.get("debounce_seconds", 0.2),
        speaker=capture_data.get("speaker", "Unknown"),
        flush_on_stop=capture_data.get("flush_on_stop", False),
    )


def _parse_delivery_config(data: dict) -> DeliveryConfig:
    """Parse delivery section from config dict"""
    delivery_data = data.get("delivery", {})
    return DeliveryConfig(
        max_retries=delivery_data.get("max_retries", 3),
        backoff_base=delivery_data.get("backoff_base", 2.0),
    )


def _parse_log_config(data: dict) -> LogConfig:
    """Parse log section from config dict"""
    log_data = data.get("log", {})
    return LogConfig(max_chars=log_data.get("max_chars", 10000))


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=server_data.get("port", 8765),
    )


def load_config() -> SummatorConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.summator/config.json)
    3. Default values
    """
    config = SummatorConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.gemini = _parse_gemini_config(data)
            config.telegram = _parse_telegram_config(data)
            config.capture = _parse_capture_config(data)
            config.delivery = _parse_delivery_config(data)
            config.log = _parse_log_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            print(f"[Config] Warning: Failed to load config file: {e}")

    # Credential env var overrides (track env-sourced keys)
    _env_secret_map = {
        "GOOGLE_API_KEY": (config.gemini, "api_key"),
        "GEMINI_API_KEY": (config.gemini, "api_key"),
        "TELEGRAM_BOT_TOKEN": (config.telegram, "bot_token"),
        "TELEGRAM_CHAT_ID": (config.telegram, "chat_id"),
    }
    for env_var, (section, attr) in _env_secret_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(section, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("GEMINI_MODEL"):
        config.gemini.model = os.getenv("GEMINI_MODEL")
    if os.getenv("SUMMATOR_DEBOUNCE"):
        config.capture.debounce_seconds = float(os.getenv("SUMMATOR_DEBOUNCE"))
    if os.getenv("SUMMATOR_MAX_RETRIES"):
        config.delivery.max_retries = int(os.getenv("SUMMATOR_MAX_RETRIES"))
    if os.getenv("SUMMATOR_HOST"):
        config.server.host = os.getenv("SUMMATOR_HOST")
    if os.getenv("SUMMATOR_PORT"):
        config.server.port = int(os.getenv("SUMMATOR_PORT"))

    return config


def save_config(config: SummatorConfig) -> None:
    """Save configuration to file.

    Credential fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    def _secret(attr: str, value: str) -> str:
        return "" if attr in env_sourced else value

    data = {
        "gemini": {
            "api_key": _secret("api_key", config.gemini.api_key),
            "model": config.gemini.model,
            "base_url": config.gemini.base_url,
            "timeout": config.gemini.timeout,
        },
        "telegram": {
            "bot_token": _secret("bot_token", config.telegram.bot_token),
            "chat_id": _secret("chat_id", config.telegram.chat_id),
            "parse_mode": config.telegram.parse_mode,
            "base_url": config.telegram.base_url,
            "timeout": config.telegram.timeout,
        },
        "capture": {
            "history_size": config.capture.history_size,
            "min_length": config.capture.min_length,
            "debounce_seconds": config.capture.debounce_seconds,
            "speaker": config.capture.speaker,
            "flush_on_stop": config.capture.flush_on_stop,
        },
        "delivery": {
            "max_retries": config.delivery.max_retries,
            "backoff_base": config.delivery.backoff_base,
        },
        "log": {
            "max_chars": config.log.max_chars,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
