"""
Scene graph data model: nodes, components and resources.

SceneTarget and Scene live in ``pbrtscene.scene.target``.
"""

from .components import ComponentKind
from .graph import Node, NodeId, SceneGraph
from .resources import ResourceMaps

__all__ = ['ComponentKind', 'Node', 'NodeId', 'SceneGraph', 'ResourceMaps']
