"""
Caption Nodes

Opaque references to rendered UI content and the change notifications that
carry them. A node's text is read when its batch drains, not when the change
is observed, so a node rewritten several times during a burst is extracted
once with its final text.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(eq=False)
class CaptionNode:
    """
    A piece of rendered UI.

    Equality and hashing are by identity: two nodes with the same text are
    still two nodes.
    """
    text: str = ""
    tag: Optional[str] = None  # None for bare text nodes
    parent: Optional["CaptionNode"] = None
    node_id: Optional[str] = None

    @property
    def is_element(self) -> bool:
        """Element nodes carry a tag; bare text nodes do not"""
        return bool(self.tag)


class MutationKind(str, Enum):
    """Kinds of change notification"""
    CHILD_LIST = "child_list"
    CHARACTER_DATA = "character_data"


@dataclass
class Mutation:
    """One change notification from the rendered UI"""
    kind: MutationKind
    added_nodes: List[CaptionNode] = field(default_factory=list)
    target: Optional[CaptionNode] = None

    def content_nodes(self) -> List[CaptionNode]:
        """
        Nodes whose content may have changed.

        child_list: added element nodes (bare text nodes are skipped).
        character_data: the parent element of the changed text node.
        """
        if self.kind == MutationKind.CHILD_LIST:
            return [node for node in self.added_nodes if node is not None and node.is_element]

        if self.kind == MutationKind.CHARACTER_DATA:
            if self.target is not None and self.target.parent is not None:
                return [self.target.parent]

        return []
