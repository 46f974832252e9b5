"""
Scene-building target.

Turns engine events into a SceneGraph: one node per Attribute/Transform
block, shape, light and object instance, each holding its transform
relative to its parent node. Render settings and the camera are singleton
components on the root node. Resources are collected in declaration
order.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..errors import DiagnosticCollector
from ..runtime.state import ObjectDefinition, RenderOptions, RenderSetting, ScopeKind, ShapeStatement
from ..runtime.target import ParseTarget
from ..xform import FrameFromDirection, SingularMatrixError, Transform, TransformSet, Translation
from .components import (
    AcceleratorComponent,
    AnimationComponent,
    AreaLightComponent,
    CameraComponent,
    ComponentKind,
    CoordinateSystemComponent,
    FilmComponent,
    InstanceComponent,
    IntegratorComponent,
    LightComponent,
    MaterialComponent,
    PixelFilterComponent,
    SamplerComponent,
    SceneComponent,
    ShapeComponent,
    TransformComponent,
    up_axis_from,
)
from .graph import Node, NodeId, SceneGraph
from .resources import LightResource, Resource, ResourceMaps

logger = logging.getLogger(__name__)

_SETTING_COMPONENTS = (
    ("pixel_filter", PixelFilterComponent),
    ("film", FilmComponent),
    ("sampler", SamplerComponent),
    ("accelerator", AcceleratorComponent),
    ("integrator", IntegratorComponent),
)


@dataclass
class Scene:
    """A parsed scene: node graph, resources and the diagnostics raised on the way."""
    graph: SceneGraph
    resources: ResourceMaps
    objects: Dict[str, ObjectDefinition] = field(default_factory=dict)
    diagnostics: DiagnosticCollector = field(default_factory=DiagnosticCollector)
    source: Optional[str] = None

    @property
    def root(self) -> Node:
        return self.graph.nodes[0]

    @property
    def warnings(self):
        return self.diagnostics.warnings

    def component(self, kind: ComponentKind):
        """Component of ``kind`` on the root node."""
        return self.root.get_component(kind)

    def summary(self) -> dict:
        return {
            "source": self.source,
            "nodes": len(self.graph),
            "shape_nodes": len(self.graph.find(ComponentKind.SHAPE)),
            "light_nodes": len(self.graph.find(ComponentKind.LIGHT)),
            "instances": len(self.graph.find(ComponentKind.INSTANCE)),
            "objects": len(self.objects),
            "resources": self.resources.counts(),
            "warnings": self.diagnostics.warning_count,
        }


class SceneTarget(ParseTarget):
    """
    Builds a Scene from engine events.

    Usage:
        target = SceneTarget()
        scene = ExecutionEngine(target).run(directives)
    """

    def __init__(self):
        self.graph = SceneGraph()
        self.resources = ResourceMaps()
        self.objects: Dict[str, ObjectDefinition] = {}
        self.options = RenderOptions()
        self.source: Optional[str] = None
        # (node, world transform of that node)
        self._stack: List[Tuple[NodeId, Transform]] = []

    # --- events ---

    def begin(self, source):
        self.source = source
        root = self.graph.add_node("Scene")
        self._stack = [(root, Transform())]

    def render_setting(self, kind: str, setting: RenderSetting):
        setattr(self.options, kind, setting)

    def camera(self, setting: RenderSetting, camera_to_world: TransformSet):
        self.options.camera = setting
        self.options.camera_to_world = camera_to_world

    def world_begin(self, options: RenderOptions):
        self.options = options

    def declare_resource(self, resource: Resource):
        self.resources.add(resource)

    def begin_scope(self, kind: ScopeKind, ctm: TransformSet):
        node_id = self._add_child(kind.value, ctm)
        self._stack.append((node_id, ctm.start))

    def end_scope(self, kind: ScopeKind):
        self._stack.pop()

    def shape(self, statement: ShapeStatement):
        parent, parent_world = self._stack[-1]
        self._place_shape(statement, parent, parent_world)

    def light(self, light: LightResource, ctm: TransformSet):
        node_id = self._add_child(light.name, ctm)
        node = self.graph.node(node_id)
        placement = self._light_placement(light)
        if placement is not None:
            transform = node.get_component(ComponentKind.TRANSFORM)
            transform.matrix = transform.matrix @ placement
        node.add_component(LightComponent(light.id))

    def object_end(self, definition: ObjectDefinition):
        self.objects[definition.name] = definition

    def object_instance(self, definition: ObjectDefinition, ctm: TransformSet):
        node_id = self._add_child("Instance", ctm)
        self.graph.node(node_id).add_component(InstanceComponent(definition.name))
        # captured shapes hold transforms relative to ObjectBegin; the instance CTM sits above them
        for statement in definition.shapes:
            self._place_shape(statement, node_id, Transform())

    def finish(self) -> Scene:
        self._add_root_components()
        scene = Scene(self.graph, self.resources, dict(self.objects), source=self.source)
        logger.info("built scene with %d nodes and %d resources", len(self.graph), len(self.resources))
        return scene

    # --- helpers ---

    def _add_child(self, name: str, ctm: TransformSet, parent: Optional[NodeId] = None,
                   parent_world: Optional[Transform] = None) -> NodeId:
        if parent is None:
            parent, parent_world = self._stack[-1]
        node_id = self.graph.add_node(name, parent)
        node = self.graph.node(node_id)
        node.add_component(TransformComponent(parent_world.im @ ctm.start.m))
        return node_id

    def _place_shape(self, statement: ShapeStatement, parent: NodeId, parent_world: Transform):
        ctm = statement.transform
        name = "AreaLight" if statement.area_light is not None else statement.shape.name
        node_id = self._add_child(name, ctm, parent, parent_world)
        node = self.graph.node(node_id)
        node.add_component(ShapeComponent(
            statement.shape.id,
            reverse_orientation=statement.reverse_orientation,
            inside_medium=statement.inside_medium,
            outside_medium=statement.outside_medium,
        ))
        node.add_component(MaterialComponent(statement.material_id))
        if statement.area_light is not None:
            node.add_component(AreaLightComponent(statement.area_light.id))
        if ctm.is_animated:
            start, end = statement.times
            node.add_component(AnimationComponent(
                parent_world.im @ ctm.start.m, start,
                parent_world.im @ ctm.end.m, end,
            ))

    def _light_placement(self, light: LightResource) -> Optional[np.ndarray]:
        """
        Fold a light's from/to parameters into a node-local matrix.

        Point lights move to ``from``; spot and distant lights get a frame
        whose z axis points from ``from`` to ``to``. Folded parameters are
        removed from the light.
        """
        if light.type not in ("point", "spot", "distant"):
            return None
        origin = light.params.get_floats("from")
        origin = np.array(origin if len(origin) == 3 else (0.0, 0.0, 0.0))
        if light.type == "point":
            light.params.remove("from")
            return Translation(origin)

        to = light.params.get_floats("to")
        to = np.array(to if len(to) == 3 else (0.0, 0.0, 1.0))
        try:
            frame = FrameFromDirection(to - origin)
        except SingularMatrixError:
            return None
        light.params.remove("from")
        light.params.remove("to")
        return Translation(origin) @ frame

    def _add_root_components(self):
        root = self.graph.node(0)
        fullpath = str(Path(self.source).resolve()) if self.source else ""
        filename = Path(self.source).name if self.source else ""
        root.add_component(SceneComponent(filename, fullpath))

        camera_to_world = np.identity(4)
        if self.options.camera_to_world is not None:
            camera_to_world = self.options.camera_to_world.start.m
        root.add_component(CameraComponent(
            self.options.camera.type, self.options.camera.params, camera_to_world,
        ))
        for attr, cls in _SETTING_COMPONENTS:
            setting = getattr(self.options, attr)
            root.add_component(cls(setting.type, setting.params))
        root.add_component(CoordinateSystemComponent(up_axis_from(camera_to_world)))
