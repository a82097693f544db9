"""
Delivery Pipeline

Sends a finished transcript through two external services:
1. Gemini summarization, retried with exponential backoff on quota errors
2. Telegram notification with the summary (single attempt)

Every step is written to the rotating debug log. The pipeline is
single-flight: a call arriving while another is running returns a busy
status immediately and leaves the log untouched. Failures never propagate
to the caller; they are logged as CRITICAL ERROR and returned as an error
status.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..common.config import SummatorConfig, load_config
from ..common.log_sink import RotatingLog
from .errors import (
    ConfigMissingError,
    ModelNotFoundError,
    NotificationError,
    QuotaExceededError,
)
from .gemini import GeminiClient
from .telegram import TelegramNotifier

logger = logging.getLogger("summator.delivery.pipeline")

BUSY_STATUS = "Already processing... please wait."
CONFIG_MISSING_STATUS = "Error: Config missing. Please check settings."
SUMMARIZING_STATUS = "Sending to Gemini..."
NOTIFYING_STATUS = "Sending to Telegram..."
SUCCESS_STATUS = "Summary sent to Telegram."


class Summarizer(Protocol):
    model: str

    async def summarize(self, transcript: str) -> str: ...

    async def list_models(self) -> List[str]: ...


class Notifier(Protocol):
    chat_id: str

    async def send(self, text: str) -> Dict[str, Any]: ...


StatusCallback = Callable[[str], None]
SleepFn = Callable[[float], Awaitable[Any]]


class DeliveryPipeline:
    """
    Summarize-then-notify orchestration.

    Configuration is re-read on every delivery so that credentials saved
    after startup take effect without a restart.
    """

    def __init__(
        self,
        log: RotatingLog,
        config_loader: Callable[[], SummatorConfig] = load_config,
        summarizer_factory: Optional[Callable[[SummatorConfig], Summarizer]] = None,
        notifier_factory: Optional[Callable[[SummatorConfig], Notifier]] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """
        Initialize pipeline.

        Args:
            log: Debug log sink
            config_loader: Returns the current configuration
            summarizer_factory: Builds the summarization client (default: GeminiClient)
            notifier_factory: Builds the notification client (default: TelegramNotifier)
            sleep: Awaitable delay used between retries
        """
        self._log = log
        self._config_loader = config_loader
        self._summarizer_factory = summarizer_factory or (lambda c: GeminiClient.from_config(c.gemini))
        self._notifier_factory = notifier_factory or (lambda c: TelegramNotifier.from_config(c.telegram))
        self._sleep = sleep
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def deliver(self, transcript: str, on_status: Optional[StatusCallback] = None) -> str:
        """
        Summarize a transcript and send the summary.

        Args:
            transcript: Newline-delimited transcript text
            on_status: Called with each intermediate status string

        Returns:
            Final status string (success, config error, error, or busy)
        """
        if self._processing:
            return BUSY_STATUS

        self._processing = True
        try:
            return await self._run(transcript, on_status)
        finally:
            self._processing = False

    async def _run(self, transcript: str, on_status: Optional[StatusCallback]) -> str:
        def report(status: str) -> None:
            if on_status is not None:
                on_status(status)

        try:
            self._log.append("Starting summarization...")

            config = self._config_loader()
            missing = config.missing_credentials()
            if missing:
                raise ConfigMissingError(", ".join(missing))

            self._log.append(f"Transcript length: {len(transcript)}")
            report(SUMMARIZING_STATUS)

            summarizer = self._summarizer_factory(config)
            self._log.append(f"Sending to Gemini ({summarizer.model})...")
            summary = await self.summarize_with_retry(
                summarizer,
                transcript,
                max_retries=config.delivery.max_retries,
                backoff_base=config.delivery.backoff_base,
            )
            self._log.append(f"Gemini success. Summary length: {len(summary)}")

            report(NOTIFYING_STATUS)
            notifier = self._notifier_factory(config)
            self._log.append(f"Sending to Telegram ({notifier.chat_id})...")
            try:
                await notifier.send(summary)
            except NotificationError as e:
                self._log.append(f"Telegram Request Failed: {e}")
                raise
            self._log.append("Telegram sent successfully!")

            report(SUCCESS_STATUS)
            return SUCCESS_STATUS

        except ConfigMissingError as e:
            self._log.append(CONFIG_MISSING_STATUS)
            logger.warning("Missing delivery settings: %s", e)
            report(CONFIG_MISSING_STATUS)
            return CONFIG_MISSING_STATUS

        except Exception as e:
            self._log.append(f"CRITICAL ERROR: {e}")
            logger.exception("Delivery failed")
            return f"Error: {e}"

    async def summarize_with_retry(
        self,
        summarizer: Summarizer,
        transcript: str,
        max_retries: int = 3,
        backoff_base: float = 2.0,
    ) -> str:
        """
        Call the summarizer, retrying quota errors with exponential backoff.

        Attempt ``i`` (0-based) that hits a quota error waits
        ``backoff_base ** (i + 1)`` seconds before the next attempt, for at
        most ``max_retries`` retries. Other errors are never retried.

        Raises:
            QuotaExceededError: Quota still exceeded after the last attempt
            ModelNotFoundError: After logging the available models
            SummarizationError: Any other summarization failure
        """
        retries = max(max_retries, 0)

        def log_retry(retry_state: RetryCallState) -> None:
            self._log.append(
                f"Quota hit (429). Retrying in {retry_state.next_action.sleep:g}s... "
                f"(Attempt {retry_state.attempt_number}/{retries})"
            )

        # attempt n (1-based) waits multiplier * base ** (n - 1) == base ** n
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(QuotaExceededError),
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=backoff_base, exp_base=backoff_base),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                try:
                    return await summarizer.summarize(transcript)
                except ModelNotFoundError:
                    self._log.append(f"Model 404 Error ({summarizer.model}). Listing models...")
                    await self._log_available_models(summarizer)
                    raise

    async def _log_available_models(self, summarizer: Summarizer) -> None:
        # Diagnostic only: nothing raised here may replace the 404
        try:
            names = await summarizer.list_models()
        except Exception as e:
            self._log.append(f"Failed to list models: {e}")
            return

        if names:
            self._log.append("AVAILABLE MODELS: " + ", ".join(names))
        else:
            self._log.append("Could not list models: empty model list")
