"""
Line Merger

Turns a stream of filtered caption fragments into an ordered transcript.
Live captions re-render constantly: the same sentence arrives many times,
growing character by character, occasionally shrinking back to a stale
prefix, and sometimes corrected in place. The merger keeps a small window of
recent line texts and decides for each fragment whether it is a duplicate,
a growth or correction of the last line, or a new line.

Decision order (cheapest and most conclusive first):
1. Exact match against the window -> drop
2. Contained in a window entry -> drop
3. Against the last line:
   a. case-insensitive prefix growth -> replace last
   b. fuzzy match (edit distance) -> replace last
   c. stale prefix (jitter) -> drop
4. Otherwise -> append
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, List, Optional

DEFAULT_HISTORY_SIZE = 10
DEFAULT_SPEAKER = "Unknown"

# is_similar bounds
MAX_SIMILARITY_LENGTH = 200
MAX_LENGTH_DIFF_RATIO = 0.5
SIMILARITY_THRESHOLD = 0.2


@dataclass
class TranscriptLine:
    """One speaker-tagged transcript line"""
    speaker: str
    text: str

    def render(self) -> str:
        return f"[{self.speaker}]: {self.text}"


class MergeAction(str, Enum):
    DROPPED = "dropped"
    REPLACED = "replaced"
    APPENDED = "appended"


@dataclass
class MergeResult:
    """Outcome of merging one fragment"""
    action: MergeAction
    index: Optional[int] = None  # transcript index touched (None when dropped)


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit costs"""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + (ca != cb),  # substitution
            ))
        previous = current
    return previous[-1]


def is_similar(a: str, b: str) -> bool:
    """
    Fuzzy match for in-place caption corrections.

    Long strings and strings of very different length are never similar,
    which bounds the quadratic distance computation.
    """
    if len(a) > MAX_SIMILARITY_LENGTH or len(b) > MAX_SIMILARITY_LENGTH:
        return False

    shorter = min(len(a), len(b))
    if abs(len(a) - len(b)) > shorter * MAX_LENGTH_DIFF_RATIO:
        return False

    return edit_distance(a, b) < SIMILARITY_THRESHOLD * max(len(a), len(b))


class LineMerger:
    """
    Owns a transcript and the recent-line window that mirrors its tail.

    The window holds raw (untagged) texts of the last ``history_size``
    distinct lines; its last entry is always the text of the transcript's
    last line.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        if history_size < 1:
            raise ValueError(f"history_size must be positive, got {history_size}")
        self._history_size = history_size
        self._lines: List[TranscriptLine] = []
        self._window: Deque[str] = deque(maxlen=history_size)

    @property
    def history_size(self) -> int:
        return self._history_size

    @property
    def lines(self) -> List[TranscriptLine]:
        return list(self._lines)

    @property
    def window(self) -> List[str]:
        return list(self._window)

    def __len__(self) -> int:
        return len(self._lines)

    def reset(self) -> None:
        self._lines.clear()
        self._window.clear()

    def render(self) -> str:
        """Transcript as newline-delimited tagged lines"""
        return "\n".join(line.render() for line in self._lines)

    def merge(self, speaker: str, text: str) -> MergeResult:
        """
        Merge one filtered fragment into the transcript.

        Args:
            speaker: Speaker tag for a new line
            text: Trimmed, non-empty fragment text

        Returns:
            MergeResult describing what happened
        """
        if text in self._window:
            return MergeResult(MergeAction.DROPPED)

        if any(text in line for line in self._window):
            return MergeResult(MergeAction.DROPPED)

        if self._window:
            last = self._window[-1]

            # "Hello" -> "Hello world"
            if text.lower().startswith(last.lower()):
                return self._replace_last(text)

            # "the cat is red" -> "the car is red"
            if is_similar(last, text):
                return self._replace_last(text)

            # "Hello world" -> "Hello"
            if last.lower().startswith(text.lower()):
                return MergeResult(MergeAction.DROPPED)

        self._lines.append(TranscriptLine(speaker=speaker or DEFAULT_SPEAKER, text=text))
        self._window.append(text)
        return MergeResult(MergeAction.APPENDED, len(self._lines) - 1)

    def _replace_last(self, text: str) -> MergeResult:
        index = len(self._lines) - 1
        self._lines[index].text = text
        self._window[-1] = text
        return MergeResult(MergeAction.REPLACED, index)
