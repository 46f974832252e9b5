"""
Node components.

A node carries at most one component of each ComponentKind. Components
reference resources by id; they never own resource data.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple

import numpy as np

from ..params import Property, PropertyMap
from ..quaternion import Decomposition, decompose


class ComponentKind(Enum):
    TRANSFORM = "transform"
    SHAPE = "shape"
    MATERIAL = "material"
    LIGHT = "light"
    AREA_LIGHT = "area_light"
    CAMERA = "camera"
    FILM = "film"
    SAMPLER = "sampler"
    INTEGRATOR = "integrator"
    ACCELERATOR = "accelerator"
    PIXEL_FILTER = "pixel_filter"
    ANIMATION = "animation"
    INSTANCE = "instance"
    COORDINATE_SYSTEM = "coordinate_system"
    SCENE = "scene"


def _fmt_vec(v) -> str:
    return "(" + ", ".join(f"{x:g}" for x in v) + ")"


@dataclass(eq=False)
class TransformComponent:
    """Local (parent-relative) transform of a node."""
    matrix: np.ndarray = field(default_factory=lambda: np.identity(4))
    kind: ClassVar[ComponentKind] = ComponentKind.TRANSFORM

    @property
    def decomposition(self) -> Decomposition:
        return decompose(self.matrix)

    @property
    def props(self) -> PropertyMap:
        """Position, Euler rotation (degrees) and scale, for display."""
        d = self.decomposition
        return PropertyMap([
            ("float position", Property.floats(d.translation)),
            ("float rotation", Property.floats(d.euler)),
            ("float scale", Property.floats(d.scale)),
        ])

    def describe(self) -> str:
        d = self.decomposition
        return (f"position={_fmt_vec(d.translation)} rotation={_fmt_vec(d.euler)} "
                f"scale={_fmt_vec(d.scale)}")


@dataclass(eq=False)
class ShapeComponent:
    shape_id: str
    reverse_orientation: bool = False
    inside_medium: str = ""
    outside_medium: str = ""
    kind: ClassVar[ComponentKind] = ComponentKind.SHAPE

    def describe(self) -> str:
        return f"shape={self.shape_id}" + (" reversed" if self.reverse_orientation else "")


@dataclass(eq=False)
class MaterialComponent:
    material_id: Optional[str] = None
    kind: ClassVar[ComponentKind] = ComponentKind.MATERIAL

    def describe(self) -> str:
        return f"material={self.material_id}"


@dataclass(eq=False)
class LightComponent:
    light_id: str
    kind: ClassVar[ComponentKind] = ComponentKind.LIGHT

    def describe(self) -> str:
        return f"light={self.light_id}"


@dataclass(eq=False)
class AreaLightComponent:
    light_id: str
    kind: ClassVar[ComponentKind] = ComponentKind.AREA_LIGHT

    def describe(self) -> str:
        return f"area_light={self.light_id}"


@dataclass(eq=False)
class RenderSettingComponent:
    """Base for the singleton render settings kept on the root node."""
    type: str
    params: PropertyMap = field(default_factory=PropertyMap)
    kind: ClassVar[ComponentKind]

    def describe(self) -> str:
        return f'"{self.type}" ({len(self.params)} params)'


@dataclass(eq=False)
class CameraComponent(RenderSettingComponent):
    camera_to_world: np.ndarray = field(default_factory=lambda: np.identity(4))
    kind: ClassVar[ComponentKind] = ComponentKind.CAMERA


@dataclass(eq=False)
class FilmComponent(RenderSettingComponent):
    kind: ClassVar[ComponentKind] = ComponentKind.FILM


@dataclass(eq=False)
class SamplerComponent(RenderSettingComponent):
    kind: ClassVar[ComponentKind] = ComponentKind.SAMPLER


@dataclass(eq=False)
class IntegratorComponent(RenderSettingComponent):
    kind: ClassVar[ComponentKind] = ComponentKind.INTEGRATOR


@dataclass(eq=False)
class AcceleratorComponent(RenderSettingComponent):
    kind: ClassVar[ComponentKind] = ComponentKind.ACCELERATOR


@dataclass(eq=False)
class PixelFilterComponent(RenderSettingComponent):
    kind: ClassVar[ComponentKind] = ComponentKind.PIXEL_FILTER


@dataclass(eq=False)
class AnimationComponent:
    """Start and end transforms of a moving node."""
    start_matrix: np.ndarray
    start_time: float
    end_matrix: np.ndarray
    end_time: float
    kind: ClassVar[ComponentKind] = ComponentKind.ANIMATION

    def describe(self) -> str:
        return f"t={self.start_time:g}..{self.end_time:g}"


@dataclass(eq=False)
class InstanceComponent:
    object_name: str
    kind: ClassVar[ComponentKind] = ComponentKind.INSTANCE

    def describe(self) -> str:
        return f'object "{self.object_name}"'


@dataclass(eq=False)
class CoordinateSystemComponent:
    """Scene up axis, snapped to the dominant axis of the camera up vector."""
    up: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    kind: ClassVar[ComponentKind] = ComponentKind.COORDINATE_SYSTEM

    @property
    def up_axis(self) -> str:
        axis = "XYZ"[max(range(3), key=lambda i: abs(self.up[i]))]
        sign = "-" if min(self.up) < 0 else "+"
        return sign + axis

    def describe(self) -> str:
        return f"up={self.up_axis}"


@dataclass(eq=False)
class SceneComponent:
    filename: str = ""
    fullpath: str = ""
    kind: ClassVar[ComponentKind] = ComponentKind.SCENE

    def describe(self) -> str:
        return self.fullpath or self.filename or "<string>"


def up_axis_from(camera_to_world: np.ndarray) -> Tuple[float, float, float]:
    """Camera up vector snapped to its dominant world axis."""
    up = np.asarray(camera_to_world, dtype=float)[:3, 1]
    i = int(np.argmax(np.abs(up)))
    snapped = [0.0, 0.0, 0.0]
    snapped[i] = 1.0 if up[i] >= 0.0 else -1.0
    return tuple(snapped)
