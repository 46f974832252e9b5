"""
Engine state records: phases, scopes, graphics state, render options and
object definitions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..params import PropertyMap
from ..scene.resources import LightResource, ShapeResource
from ..tokens import SourceSpan
from ..xform import TransformSet


class Phase(Enum):
    """Block of the scene file the engine is in."""
    OPTIONS = "options"
    WORLD = "world"
    ENDED = "ended"


class ScopeKind(Enum):
    """Kind of block that pushed a transform stack entry."""
    ATTRIBUTE = "Attribute"
    TRANSFORM = "Transform"
    OBJECT = "Object"

    @property
    def begin_directive(self) -> str:
        return f"{self.value}Begin"

    @property
    def end_directive(self) -> str:
        return f"{self.value}End"


@dataclass
class RenderSetting:
    """Type name and parameters of a singleton render setting."""
    type: str
    params: PropertyMap = field(default_factory=PropertyMap)


@dataclass
class RenderOptions:
    """Settings gathered in the options block."""
    transform_start_time: float = 0.0
    transform_end_time: float = 1.0
    pixel_filter: RenderSetting = field(default_factory=lambda: RenderSetting("box"))
    film: RenderSetting = field(default_factory=lambda: RenderSetting("image"))
    sampler: RenderSetting = field(default_factory=lambda: RenderSetting("halton"))
    accelerator: RenderSetting = field(default_factory=lambda: RenderSetting("bvh"))
    integrator: RenderSetting = field(default_factory=lambda: RenderSetting("path"))
    camera: RenderSetting = field(default_factory=lambda: RenderSetting("perspective"))
    camera_to_world: Optional[TransformSet] = None


@dataclass
class GraphicsState:
    """Attribute state saved and restored by AttributeBegin/AttributeEnd."""
    material_id: Optional[str] = None
    named_materials: Dict[str, str] = field(default_factory=dict)
    textures: Dict[str, str] = field(default_factory=dict)
    area_light: Optional[LightResource] = None
    reverse_orientation: bool = False
    inside_medium: str = ""
    outside_medium: str = ""

    def copy(self) -> "GraphicsState":
        return GraphicsState(
            material_id=self.material_id,
            named_materials=dict(self.named_materials),
            textures=dict(self.textures),
            area_light=self.area_light,
            reverse_orientation=self.reverse_orientation,
            inside_medium=self.inside_medium,
            outside_medium=self.outside_medium,
        )


@dataclass
class ShapeStatement:
    """A Shape directive together with the state active when it was read."""
    shape: ShapeResource
    transform: TransformSet
    material_id: Optional[str] = None
    area_light: Optional[LightResource] = None
    reverse_orientation: bool = False
    times: Tuple[float, float] = (0.0, 1.0)
    inside_medium: str = ""
    outside_medium: str = ""
    span: Optional[SourceSpan] = None


@dataclass
class ObjectDefinition:
    """Shapes captured between ObjectBegin and ObjectEnd."""
    name: str
    shapes: List[ShapeStatement] = field(default_factory=list)
