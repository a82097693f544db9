"""
Tests for Mutation Batcher

Tests trailing-debounce coalescing of caption change notifications.
"""

import asyncio

import pytest

from summator.capture.batcher import MutationBatcher
from summator.capture.nodes import CaptionNode, Mutation, MutationKind


DELAY = 0.05
SETTLE = 0.3


class Recorder:
    """Collects drained batches"""

    def __init__(self):
        self.batches = []

    def __call__(self, nodes):
        self.batches.append(list(nodes))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def batcher(recorder):
    return MutationBatcher(handler=recorder, delay=DELAY)


class TestMutationContentNodes:
    """Tests for Mutation.content_nodes"""

    def test_child_list_keeps_elements_only(self):
        element = CaptionNode(text="Caption text", tag="DIV")
        text_node = CaptionNode(text="loose text")
        mutation = Mutation(kind=MutationKind.CHILD_LIST, added_nodes=[element, text_node])

        assert mutation.content_nodes() == [element]

    def test_character_data_queues_parent(self):
        parent = CaptionNode(text="Caption text", tag="SPAN")
        text_node = CaptionNode(text="Caption text", parent=parent)
        mutation = Mutation(kind=MutationKind.CHARACTER_DATA, target=text_node)

        assert mutation.content_nodes() == [parent]

    def test_character_data_without_parent(self):
        mutation = Mutation(kind=MutationKind.CHARACTER_DATA, target=CaptionNode(text="orphan"))
        assert mutation.content_nodes() == []

    def test_nodes_compare_by_identity(self):
        a = CaptionNode(text="same", tag="DIV")
        b = CaptionNode(text="same", tag="DIV")
        assert a != b
        assert len({a, b}) == 2


class TestMutationBatcher:
    """Tests for MutationBatcher"""

    @pytest.mark.asyncio
    async def test_nothing_drained_before_delay(self, batcher, recorder):
        batcher.add(CaptionNode(text="First caption", tag="DIV"))

        assert recorder.batches == []
        assert batcher.pending_count == 1
        assert batcher.timer_armed

    @pytest.mark.asyncio
    async def test_burst_drains_once(self, recorder):
        batcher = MutationBatcher(handler=recorder, delay=0.2)
        nodes = [CaptionNode(text=f"Caption {i}", tag="DIV") for i in range(5)]
        for node in nodes:
            batcher.add(node)
            await asyncio.sleep(0.01)

        assert recorder.batches == []

        await asyncio.sleep(0.6)

        assert recorder.batches == [nodes]
        assert batcher.pending_count == 0
        assert batcher.batches_drained == 1

    @pytest.mark.asyncio
    async def test_same_node_queued_once(self, batcher, recorder):
        node = CaptionNode(text="Caption", tag="DIV")
        batcher.add(node)
        batcher.add(node)
        batcher.add(node)

        assert batcher.pending_count == 1
        await asyncio.sleep(SETTLE)
        assert recorder.batches == [[node]]

    @pytest.mark.asyncio
    async def test_snapshot_preserves_insertion_order(self, batcher, recorder):
        a = CaptionNode(text="A caption", tag="DIV")
        b = CaptionNode(text="B caption", tag="DIV")
        c = CaptionNode(text="C caption", tag="DIV")
        for node in (b, a, c, a):
            batcher.add(node)

        await asyncio.sleep(SETTLE)
        assert recorder.batches == [[b, a, c]]

    @pytest.mark.asyncio
    async def test_separate_bursts_drain_separately(self, batcher, recorder):
        first = CaptionNode(text="First burst", tag="DIV")
        second = CaptionNode(text="Second burst", tag="DIV")

        batcher.add(first)
        await asyncio.sleep(SETTLE)
        batcher.add(second)
        await asyncio.sleep(SETTLE)

        assert recorder.batches == [[first], [second]]

    @pytest.mark.asyncio
    async def test_wait_idle_after_timer_fires(self, batcher, recorder):
        node = CaptionNode(text="Caption", tag="DIV")
        batcher.add(node)

        # Wait for the timer to fire
        while batcher.timer_armed:
            await asyncio.sleep(DELAY / 5)
        assert batcher.pending_count == 0

        await batcher.wait_idle()
        assert recorder.batches == [[node]]

    @pytest.mark.asyncio
    async def test_feed_translates_mutations(self, batcher, recorder):
        element = CaptionNode(text="Caption text", tag="DIV")
        parent = CaptionNode(text="Edited caption", tag="SPAN")
        text_node = CaptionNode(text="Edited caption", parent=parent)

        batcher.feed([
            Mutation(kind=MutationKind.CHILD_LIST, added_nodes=[element, CaptionNode(text="x")]),
            Mutation(kind=MutationKind.CHARACTER_DATA, target=text_node),
        ])

        await asyncio.sleep(SETTLE)
        assert recorder.batches == [[element, parent]]

    @pytest.mark.asyncio
    async def test_flush_drains_synchronously(self, batcher, recorder):
        node = CaptionNode(text="Caption", tag="DIV")
        batcher.add(node)

        assert batcher.flush() == 1
        assert recorder.batches == [[node]]
        assert not batcher.timer_armed

        await asyncio.sleep(SETTLE)
        assert recorder.batches == [[node]]

    @pytest.mark.asyncio
    async def test_flush_with_nothing_pending(self, batcher, recorder):
        assert batcher.flush() == 0
        assert recorder.batches == []

    @pytest.mark.asyncio
    async def test_close_discards_pending(self, batcher, recorder):
        batcher.add(CaptionNode(text="One caption", tag="DIV"))
        batcher.add(CaptionNode(text="Two caption", tag="DIV"))

        assert batcher.close() == 2
        await asyncio.sleep(SETTLE)

        assert recorder.batches == []
        assert batcher.pending_count == 0
