"""
Telegram Notifier

Sends the finished summary to a Telegram chat via the Bot API
``sendMessage`` method.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..common.config import TelegramConfig, DEFAULT_TELEGRAM_BASE_URL
from .errors import NotificationError

logger = logging.getLogger("summator.delivery.telegram")


class TelegramNotifier:
    """
    Telegram Bot API client for a single destination chat.

    Raises NotificationError on transport failure, a non-2xx status, or a
    response whose ``ok`` flag is false.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        parse_mode: Optional[str] = "Markdown",
        base_url: str = DEFAULT_TELEGRAM_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize notifier.

        Args:
            bot_token: Bot token issued by BotFather
            chat_id: Destination chat identifier
            parse_mode: Telegram parse mode, or None for plain text
            base_url: Bot API root
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._bot_token = bot_token.strip()
        self.chat_id = str(chat_id).strip()
        self.parse_mode = parse_mode
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: TelegramConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "TelegramNotifier":
        return cls(
            bot_token=config.bot_token,
            chat_id=config.chat_id,
            parse_mode=config.parse_mode or None,
            base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
        )

    def build_payload(self, text: str) -> Dict[str, Any]:
        payload = {"chat_id": self.chat_id, "text": text}
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode
        return payload

    async def send(self, text: str) -> Dict[str, Any]:
        """
        Send a message to the configured chat.

        Args:
            text: Message body

        Returns:
            Decoded Bot API response
        """
        url = f"{self.base_url}/bot{self._bot_token}/sendMessage"

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=self.build_payload(text))
        except httpx.HTTPError as e:
            # str(e) may embed the URL, which carries the token
            raise NotificationError(f"Telegram Network error: {type(e).__name__}") from e

        if not response.is_success:
            raise NotificationError(f"Telegram Network {response.status_code}")

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise NotificationError("Telegram API: invalid JSON response") from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description", "unknown error") if isinstance(data, dict) else "unknown error"
            raise NotificationError(f"Telegram API: {description}")

        logger.debug("Telegram message delivered to chat %s", self.chat_id)
        return data
