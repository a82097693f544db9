"""
Caption Capture

Extracts a clean transcript from a continuously re-rendered caption area.

Key Components:
- NoiseFilter: Drops UI chrome and fragments too short to be speech
- LineMerger: Deduplicates growing/jittering/corrected fragments
- MutationBatcher: Debounces bursts of UI change notifications
- CaptureSession: Start/stop lifecycle returning the transcript
"""

from .nodes import CaptionNode, Mutation, MutationKind
from .noise_filter import NoiseFilter, should_keep
from .merger import LineMerger, MergeAction, MergeResult, TranscriptLine, is_similar
from .batcher import MutationBatcher
from .stream import MutationStream
from .session import CaptureSession, SessionState

__all__ = [
    "CaptionNode",
    "Mutation",
    "MutationKind",
    "NoiseFilter",
    "should_keep",
    "LineMerger",
    "MergeAction",
    "MergeResult",
    "TranscriptLine",
    "is_similar",
    "MutationBatcher",
    "MutationStream",
    "CaptureSession",
    "SessionState",
]
