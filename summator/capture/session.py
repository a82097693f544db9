"""
Capture Session

Recording lifecycle for caption capture.

Pipeline while recording:
1. Mutation stream delivers change notifications
2. Batcher coalesces them into debounced batches
3. Noise filter drops UI chrome and fragments too short to be speech
4. Line merger deduplicates into the transcript

Stop boundary: by default ``stop()`` discards nodes still waiting behind the
debounce timer, so the returned transcript is exactly what had been merged
when ``stop()`` was called. With ``flush_on_stop`` the pending nodes are
drained synchronously first.
"""

import logging
from functools import partial
from enum import Enum
from typing import List, Optional, Protocol

from ..common.config import CaptureConfig
from .batcher import MutationBatcher
from .merger import LineMerger, TranscriptLine
from .noise_filter import NoiseFilter
from .nodes import CaptionNode, Mutation
from .stream import MutationStream

logger = logging.getLogger("summator.capture.session")


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class RecordingIndicator(Protocol):
    """Visible "recording" marker owned by the host"""

    def show(self) -> None: ...

    def hide(self) -> None: ...


class NullIndicator:
    def show(self) -> None:
        pass

    def hide(self) -> None:
        pass


class CaptureSession:
    """
    Idle/Recording state machine around filter, merger and batcher.

    A fresh merger and batcher are created on every start, so a batch still
    draining from a stopped session can never write into the next one.
    """

    def __init__(
        self,
        stream: MutationStream,
        config: Optional[CaptureConfig] = None,
        indicator: Optional[RecordingIndicator] = None,
        noise_filter: Optional[NoiseFilter] = None,
    ):
        """
        Initialize capture session.

        Args:
            stream: Source of UI change notifications
            config: Capture settings (default: CaptureConfig())
            indicator: Recording indicator (default: no-op)
            noise_filter: Fragment filter (default: built from config.min_length)
        """
        self._stream = stream
        self._config = config or CaptureConfig()
        self._indicator = indicator or NullIndicator()
        self._filter = noise_filter or NoiseFilter(min_length=self._config.min_length)
        self._state = SessionState.IDLE
        self._merger: Optional[LineMerger] = None  # created by start()
        self._batcher: Optional[MutationBatcher] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state == SessionState.RECORDING

    @property
    def lines(self) -> List[TranscriptLine]:
        return self._merger.lines if self._merger is not None else []

    @property
    def window(self) -> List[str]:
        return self._merger.window if self._merger is not None else []

    @property
    def batcher(self) -> Optional[MutationBatcher]:
        return self._batcher

    def transcript(self) -> str:
        return self._merger.render() if self._merger is not None else ""

    def start(self) -> bool:
        """
        Begin recording with an empty transcript.

        Returns:
            True if the session transitioned, False if already recording
        """
        if self.is_recording:
            return False

        merger = LineMerger(history_size=self._config.history_size)
        batcher = MutationBatcher(
            handler=partial(self._process_batch, merger),
            delay=self._config.debounce_seconds,
        )

        self._merger = merger
        self._batcher = batcher
        self._state = SessionState.RECORDING
        self._indicator.show()
        self._stream.observe(self._on_mutations)
        logger.info("Capture session started")
        return True

    def stop(self) -> str:
        """
        Stop recording and return the transcript.

        When already idle nothing changes and the last transcript (empty if
        no session ever ran) is returned.

        Returns:
            Newline-delimited "[speaker]: text" lines
        """
        if not self.is_recording:
            return self.transcript()

        self._state = SessionState.IDLE
        self._stream.disconnect()
        self._indicator.hide()

        if self._batcher is not None:
            if self._config.flush_on_stop:
                self._batcher.flush()
            else:
                discarded = self._batcher.close()
                if discarded:
                    logger.info("Discarded %d pending nodes at stop", discarded)

        transcript = self.transcript()
        logger.info("Capture session stopped (%d lines)", len(self._merger))
        return transcript

    def _on_mutations(self, mutations: List[Mutation]) -> None:
        if not self.is_recording or self._batcher is None:
            return
        self._batcher.feed(mutations)

    def _process_batch(self, merger: LineMerger, nodes: List[CaptionNode]) -> None:
        for node in nodes:
            try:
                self._extract(node, merger)
            except Exception as e:
                logger.debug("Ignoring malformed node: %s", e)

    def _extract(self, node: Optional[CaptionNode], merger: LineMerger) -> None:
        if node is None or not node.tag:
            return

        text = node.text
        if not text or not self._filter.should_keep(text, node.tag):
            return

        merger.merge(self._config.speaker, text.strip())
