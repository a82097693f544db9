"""
Noise Filter

Pure keep/drop predicate for caption fragments. Rejects non-content tags,
fragments too short to be speech, and labels of the meeting UI itself.
"""

from typing import FrozenSet, Iterable, Optional


IGNORED_TAGS: FrozenSet[str] = frozenset({
    "SCRIPT", "STYLE", "NOSCRIPT", "SVG", "PATH", "IMG", "VIDEO", "AUDIO",
    "IFRAME", "LINK", "META", "BUTTON", "INPUT", "SELECT", "TEXTAREA",
})

NOISE_PHRASES: FrozenSet[str] = frozenset({
    "You", "Meeting details", "People", "Chat", "Activities",
    "Turn on captions", "Turn off captions", "Present now",
    "More options", "Leave call", "Mute", "Unmute",
    "Camera", "Microphone", "Raise hand", "Stop recording",
    "Вы", "Детали встречи", "Люди", "Чат", "Действия",
    "Включить субтитры",
})

MIN_TEXT_LENGTH = 5


class NoiseFilter:
    """
    Decides whether a fragment is worth passing to the line merger.

    Checks run cheapest first:
    1. Tag denylist
    2. Minimum trimmed length
    3. Exact match against known UI phrases
    """

    def __init__(
        self,
        min_length: int = MIN_TEXT_LENGTH,
        ignored_tags: Optional[Iterable[str]] = None,
        noise_phrases: Optional[Iterable[str]] = None,
    ):
        self._min_length = min_length
        self._ignored_tags = (
            frozenset(t.upper() for t in ignored_tags) if ignored_tags is not None else IGNORED_TAGS
        )
        self._noise_phrases = (
            frozenset(noise_phrases) if noise_phrases is not None else NOISE_PHRASES
        )

    @property
    def min_length(self) -> int:
        return self._min_length

    def should_keep(self, text: Optional[str], tag: Optional[str]) -> bool:
        """
        Check if a fragment should be kept.

        Args:
            text: Fragment text (untrimmed)
            tag: Tag name of the node the fragment came from

        Returns:
            True if the fragment looks like caption content
        """
        if not tag or tag.upper() in self._ignored_tags:
            return False

        clean_text = (text or "").strip()
        if len(clean_text) < self._min_length:
            return False

        if clean_text in self._noise_phrases:
            return False

        return True


_default_filter = NoiseFilter()


def should_keep(text: Optional[str], tag: Optional[str]) -> bool:
    """Check a fragment against the default filter"""
    return _default_filter.should_keep(text, tag)
