"""
Mutation Stream

In-process event source for UI change notifications. The host pushes
mutation records in; at most one observer receives them. With no observer
attached, records are dropped without further work.
"""

import logging
from typing import Callable, Iterable, List, Optional

from .nodes import Mutation

logger = logging.getLogger("summator.capture.stream")

MutationCallback = Callable[[List[Mutation]], None]


class MutationStream:
    """Single-observer change notification source"""

    def __init__(self):
        self._observer: Optional[MutationCallback] = None

    @property
    def is_observed(self) -> bool:
        return self._observer is not None

    def observe(self, callback: MutationCallback) -> None:
        """Attach an observer, replacing any previous one"""
        if self._observer is not None and self._observer is not callback:
            logger.debug("Replacing existing mutation observer")
        self._observer = callback

    def disconnect(self) -> None:
        self._observer = None

    def emit(self, mutations: Iterable[Mutation]) -> bool:
        """
        Deliver a burst of mutation records.

        Returns:
            True if an observer received the records
        """
        observer = self._observer
        if observer is None:
            return False

        observer(list(mutations))
        return True
