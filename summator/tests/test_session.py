"""
Tests for Capture Session

Tests the Idle/Recording lifecycle and the stream -> batcher -> filter ->
merger path.
"""

import asyncio

import pytest
from unittest.mock import Mock

from summator.common.config import CaptureConfig
from summator.capture.nodes import CaptionNode, Mutation, MutationKind
from summator.capture.session import CaptureSession, SessionState
from summator.capture.stream import MutationStream


DELAY = 0.05
SETTLE = 0.3


def added(*nodes):
    return [Mutation(kind=MutationKind.CHILD_LIST, added_nodes=list(nodes))]


@pytest.fixture
def stream():
    return MutationStream()


@pytest.fixture
def indicator():
    return Mock()


@pytest.fixture
def session(stream, indicator):
    return CaptureSession(
        stream=stream,
        config=CaptureConfig(debounce_seconds=DELAY),
        indicator=indicator,
    )


class TestSessionLifecycle:
    """Tests for start/stop transitions"""

    def test_initially_idle(self, session, stream):
        assert session.state == SessionState.IDLE
        assert not stream.is_observed

    @pytest.mark.asyncio
    async def test_start_begins_recording(self, session, stream, indicator):
        assert session.start() is True

        assert session.is_recording
        assert stream.is_observed
        indicator.show.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, session, indicator):
        session.start()
        assert session.start() is False
        indicator.show.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_returns_to_idle(self, session, stream, indicator):
        session.start()
        session.stop()

        assert session.state == SessionState.IDLE
        assert not stream.is_observed
        indicator.hide.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_start_stays_idle(self, stream, indicator):
        session = CaptureSession(
            stream=stream,
            config=CaptureConfig(history_size=0, debounce_seconds=DELAY),
            indicator=indicator,
        )

        with pytest.raises(ValueError, match="history_size"):
            session.start()

        assert session.state == SessionState.IDLE
        assert not stream.is_observed
        indicator.show.assert_not_called()

    def test_stop_when_idle_returns_empty(self, session, indicator):
        assert session.stop() == ""
        indicator.hide.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_with_no_captions_returns_empty(self, session):
        session.start()
        assert session.stop() == ""

    def test_events_while_idle_are_not_delivered(self, session, stream):
        delivered = stream.emit(added(CaptionNode(text="Nobody is listening", tag="DIV")))

        assert delivered is False
        assert session.lines == []


class TestSessionCapture:
    """Tests for caption capture while recording"""

    @pytest.mark.asyncio
    async def test_captures_caption_lines(self, session, stream):
        session.start()
        stream.emit(added(CaptionNode(text="Good morning everyone", tag="DIV")))
        await asyncio.sleep(SETTLE)
        stream.emit(added(CaptionNode(text="Let's look at the budget", tag="DIV")))
        await asyncio.sleep(SETTLE)

        transcript = session.stop()

        assert transcript == (
            "[Unknown]: Good morning everyone\n"
            "[Unknown]: Let's look at the budget"
        )

    @pytest.mark.asyncio
    async def test_growing_caption_becomes_one_line(self, session, stream):
        session.start()
        node = CaptionNode(text="Hello", tag="SPAN")
        stream.emit(added(node))
        await asyncio.sleep(SETTLE)

        node.text = "Hello everyone, welcome"
        text_node = CaptionNode(text=node.text, parent=node)
        stream.emit([Mutation(kind=MutationKind.CHARACTER_DATA, target=text_node)])
        await asyncio.sleep(SETTLE)

        assert session.stop() == "[Unknown]: Hello everyone, welcome"

    @pytest.mark.asyncio
    async def test_node_text_read_at_drain_time(self, session, stream):
        session.start()
        node = CaptionNode(text="We need", tag="SPAN")
        stream.emit(added(node))
        node.text = "We need a decision today"
        stream.emit(added(node))
        await asyncio.sleep(SETTLE)

        assert [line.text for line in session.lines] == ["We need a decision today"]

    @pytest.mark.asyncio
    async def test_noise_is_filtered(self, session, stream):
        session.start()
        stream.emit(added(
            CaptionNode(text="Turn on captions", tag="DIV"),
            CaptionNode(text="Mute", tag="DIV"),
            CaptionNode(text="Press to talk now", tag="BUTTON"),
            CaptionNode(text="The actual speech", tag="DIV"),
        ))
        await asyncio.sleep(SETTLE)

        assert session.stop() == "[Unknown]: The actual speech"

    @pytest.mark.asyncio
    async def test_malformed_nodes_are_ignored(self, session, stream):
        session.start()
        broken = CaptionNode(text=12345, tag="DIV")
        stream.emit(added(broken, CaptionNode(text="Still captured fine", tag="DIV")))
        await asyncio.sleep(SETTLE)

        assert session.stop() == "[Unknown]: Still captured fine"

    @pytest.mark.asyncio
    async def test_custom_speaker(self, stream):
        session = CaptureSession(
            stream=stream,
            config=CaptureConfig(debounce_seconds=DELAY, speaker="Speaker 1"),
        )
        session.start()
        stream.emit(added(CaptionNode(text="Custom speaker line", tag="DIV")))
        await asyncio.sleep(SETTLE)

        assert session.stop() == "[Speaker 1]: Custom speaker line"

    @pytest.mark.asyncio
    async def test_start_clears_previous_transcript(self, session, stream):
        session.start()
        stream.emit(added(CaptionNode(text="First meeting line", tag="DIV")))
        await asyncio.sleep(SETTLE)
        session.stop()

        session.start()
        assert session.lines == []
        assert session.window == []
        assert session.stop() == ""

    @pytest.mark.asyncio
    async def test_stop_when_idle_returns_last_transcript(self, session, stream):
        session.start()
        stream.emit(added(CaptionNode(text="Kept after stop", tag="DIV")))
        await asyncio.sleep(SETTLE)
        first = session.stop()

        assert session.stop() == first == "[Unknown]: Kept after stop"


class TestStopBoundary:
    """Tests for pending nodes at stop time"""

    @pytest.mark.asyncio
    async def test_pending_batch_excluded_by_default(self, session, stream):
        session.start()
        stream.emit(added(CaptionNode(text="Settled caption line", tag="DIV")))
        await asyncio.sleep(SETTLE)
        stream.emit(added(CaptionNode(text="Still waiting on the timer", tag="DIV")))

        transcript = session.stop()
        await asyncio.sleep(SETTLE)

        assert transcript == "[Unknown]: Settled caption line"
        assert session.batcher.pending_count == 0
        assert [line.text for line in session.lines] == ["Settled caption line"]

    @pytest.mark.asyncio
    async def test_pending_batch_included_with_flush_on_stop(self, stream):
        session = CaptureSession(
            stream=stream,
            config=CaptureConfig(debounce_seconds=DELAY, flush_on_stop=True),
        )
        session.start()
        stream.emit(added(CaptionNode(text="Settled caption line", tag="DIV")))
        await asyncio.sleep(SETTLE)
        stream.emit(added(CaptionNode(text="Still waiting on the timer", tag="DIV")))

        assert session.stop() == (
            "[Unknown]: Settled caption line\n"
            "[Unknown]: Still waiting on the timer"
        )

    @pytest.mark.asyncio
    async def test_events_after_stop_are_dropped(self, session, stream):
        session.start()
        session.stop()

        assert stream.emit(added(CaptionNode(text="Arrived too late", tag="DIV"))) is False
        await asyncio.sleep(SETTLE)
        assert session.lines == []
