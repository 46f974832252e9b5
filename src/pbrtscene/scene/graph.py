"""
Arena-backed scene graph.

Nodes live in one list owned by the SceneGraph and refer to their parent
and children by integer NodeId, so the tree has no reference cycles and
ids stay valid for the lifetime of the graph.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .components import ComponentKind

NodeId = int


@dataclass(eq=False)
class Node:
    """A named node with at most one component per kind."""
    id: NodeId
    name: str
    parent: Optional[NodeId] = None
    children: List[NodeId] = field(default_factory=list)
    components: Dict[ComponentKind, Any] = field(default_factory=dict)

    def add_component(self, component: Any) -> None:
        """Attach ``component``, replacing any component of the same kind."""
        self.components[component.kind] = component

    def get_component(self, kind: ComponentKind) -> Optional[Any]:
        return self.components.get(kind)

    def has_component(self, kind: ComponentKind) -> bool:
        return kind in self.components

    def remove_component(self, kind: ComponentKind) -> Optional[Any]:
        return self.components.pop(kind, None)


class SceneGraph:
    """Owner of all nodes; the first node added is the root."""

    def __init__(self):
        self.nodes: List[Node] = []

    def add_node(self, name: str, parent: Optional[NodeId] = None) -> NodeId:
        if parent is not None and not (0 <= parent < len(self.nodes)):
            raise KeyError(f"no node with id {parent}")
        node_id = len(self.nodes)
        self.nodes.append(Node(node_id, name, parent))
        if parent is not None:
            self.nodes[parent].children.append(node_id)
        return node_id

    @property
    def root(self) -> Optional[Node]:
        return self.nodes[0] if self.nodes else None

    def node(self, node_id: NodeId) -> Node:
        return self.nodes[node_id]

    __getitem__ = node

    def children(self, node_id: NodeId) -> List[Node]:
        return [self.nodes[c] for c in self.nodes[node_id].children]

    def parent(self, node_id: NodeId) -> Optional[Node]:
        p = self.nodes[node_id].parent
        return None if p is None else self.nodes[p]

    def walk(self, start: NodeId = 0) -> Iterator[Tuple[Node, int]]:
        """Depth-first, pre-order traversal yielding (node, depth)."""
        if not self.nodes:
            return
        stack = [(start, 0)]
        while stack:
            node_id, depth = stack.pop()
            node = self.nodes[node_id]
            yield node, depth
            for child in reversed(node.children):
                stack.append((child, depth + 1))

    def find(self, kind: ComponentKind) -> List[Node]:
        """Nodes carrying a component of ``kind``, in traversal order."""
        return [n for n, _ in self.walk() if n.has_component(kind)]

    def find_by_name(self, name: str) -> List[Node]:
        return [n for n, _ in self.walk() if n.name == name]

    def path(self, node_id: NodeId) -> List[str]:
        """Node names from the root down to ``node_id``."""
        names = []
        current: Optional[NodeId] = node_id
        while current is not None:
            names.append(self.nodes[current].name)
            current = self.nodes[current].parent
        return names[::-1]

    def local_matrix(self, node_id: NodeId) -> np.ndarray:
        component = self.nodes[node_id].get_component(ComponentKind.TRANSFORM)
        if component is None:
            return np.identity(4)
        return component.matrix

    def world_matrix(self, node_id: NodeId) -> np.ndarray:
        """Product of the local matrices from the root down to ``node_id``."""
        m = np.identity(4)
        current: Optional[NodeId] = node_id
        while current is not None:
            m = self.local_matrix(current) @ m
            current = self.nodes[current].parent
        return m

    def format_tree(self, show_components: bool = True) -> str:
        lines = []
        for node, depth in self.walk():
            lines.append(f"{'  ' * depth}{node.name}")
            if show_components:
                for kind, component in node.components.items():
                    lines.append(f"{'  ' * depth}  - {kind.value}: {component.describe()}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)
