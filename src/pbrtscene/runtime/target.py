"""
Consumers of engine events.

The ExecutionEngine owns all parse-time state and reports its effects to
a ParseTarget. Targets only ever see resolved values: transforms are
already composed, names already looked up, resources already created.
"""

from typing import Any, List, Optional

from ..scene.resources import LightResource, Resource
from ..xform import TransformSet
from .state import ObjectDefinition, RenderOptions, RenderSetting, ScopeKind, ShapeStatement


class ParseTarget:
    """Base target; every event is a no-op."""

    def begin(self, source: Optional[str]) -> None:
        """Called once before the first directive."""

    def render_setting(self, kind: str, setting: RenderSetting) -> None:
        """Film, Sampler, Accelerator, Integrator or PixelFilter declared."""

    def camera(self, setting: RenderSetting, camera_to_world: TransformSet) -> None:
        """Camera declared with its camera-to-world transform."""

    def world_begin(self, options: RenderOptions) -> None:
        """Options block finished."""

    def begin_scope(self, kind: ScopeKind, ctm: TransformSet) -> None:
        """Attribute or Transform block opened (outside object definitions)."""

    def end_scope(self, kind: ScopeKind) -> None:
        """Block opened by the matching begin_scope closed."""

    def declare_resource(self, resource: Resource) -> None:
        """A resource was created; it is referenced by id afterwards."""

    def shape(self, statement: ShapeStatement) -> None:
        """A shape placed in the world."""

    def light(self, light: LightResource, ctm: TransformSet) -> None:
        """A light placed in the world."""

    def object_begin(self, name: str) -> None:
        """Start of an object definition; shapes are captured until object_end."""

    def object_end(self, definition: ObjectDefinition) -> None:
        """A complete object definition."""

    def object_instance(self, definition: ObjectDefinition, ctm: TransformSet) -> None:
        """An instance of ``definition`` placed at ``ctm``."""

    def world_end(self) -> None:
        """World block finished."""

    def finish(self) -> Any:
        """Called once after the last directive; returns the target's product."""
        return None


class MultiTarget(ParseTarget):
    """Forwards every event to several targets, in order."""

    def __init__(self, targets: List[ParseTarget]):
        self.targets = list(targets)

    def begin(self, source):
        for t in self.targets:
            t.begin(source)

    def render_setting(self, kind, setting):
        for t in self.targets:
            t.render_setting(kind, setting)

    def camera(self, setting, camera_to_world):
        for t in self.targets:
            t.camera(setting, camera_to_world)

    def world_begin(self, options):
        for t in self.targets:
            t.world_begin(options)

    def begin_scope(self, kind, ctm):
        for t in self.targets:
            t.begin_scope(kind, ctm)

    def end_scope(self, kind):
        for t in self.targets:
            t.end_scope(kind)

    def declare_resource(self, resource):
        for t in self.targets:
            t.declare_resource(resource)

    def shape(self, statement):
        for t in self.targets:
            t.shape(statement)

    def light(self, light, ctm):
        for t in self.targets:
            t.light(light, ctm)

    def object_begin(self, name):
        for t in self.targets:
            t.object_begin(name)

    def object_end(self, definition):
        for t in self.targets:
            t.object_end(definition)

    def object_instance(self, definition, ctm):
        for t in self.targets:
            t.object_instance(definition, ctm)

    def world_end(self):
        for t in self.targets:
            t.world_end()

    def finish(self) -> List[Any]:
        """Products of all targets, in order."""
        return [t.finish() for t in self.targets]


class StatisticsTarget(ParseTarget):
    """Counts what a scene declares, by type."""

    def __init__(self):
        self.shapes = {}
        self.lights = {}
        self.instances = 0
        self.objects = 0
        self.resources = {}

    def declare_resource(self, resource):
        self.resources[resource.kind] = self.resources.get(resource.kind, 0) + 1

    def shape(self, statement):
        self.shapes[statement.shape.type] = self.shapes.get(statement.shape.type, 0) + 1

    def light(self, light, ctm):
        self.lights[light.type] = self.lights.get(light.type, 0) + 1

    def object_end(self, definition):
        self.objects += 1

    def object_instance(self, definition, ctm):
        self.instances += 1
        for statement in definition.shapes:
            self.shapes[statement.shape.type] = self.shapes.get(statement.shape.type, 0) + 1

    def finish(self) -> dict:
        return {
            "shapes": dict(self.shapes),
            "lights": dict(self.lights),
            "objects": self.objects,
            "instances": self.instances,
            "resources": dict(self.resources),
        }
