"""
Independently addressable scene resources.

Shapes, materials, textures, lights and other referenced assets are
declared once and referenced from graph nodes by their string id.
"""

import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterator, List, Optional

import numpy as np

from ..params import PropertyMap


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(eq=False)
class Resource:
    """Base for declared resources."""
    name: str
    type: str
    params: PropertyMap = field(default_factory=PropertyMap)
    id: str = field(default_factory=new_id)

    kind: ClassVar[str] = "resource"

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "type": self.type,
            "params": self.params.to_dict(),
        }


@dataclass(eq=False)
class ShapeResource(Resource):
    fullpath: Optional[str] = None      # resolved mesh file (plymesh)
    kind: ClassVar[str] = "shape"


@dataclass(eq=False)
class MaterialResource(Resource):
    kind: ClassVar[str] = "material"


@dataclass(eq=False)
class TextureResource(Resource):
    value_type: str = "spectrum"        # "spectrum" or "float"
    fullpath: Optional[str] = None      # resolved image file (imagemap)
    transform: np.ndarray = field(default_factory=lambda: np.identity(4))
    kind: ClassVar[str] = "texture"


@dataclass(eq=False)
class LightResource(Resource):
    kind: ClassVar[str] = "light"


@dataclass(eq=False)
class OtherResource(Resource):
    """Referenced file (lens, bsdf, spectrum data) or named medium."""
    fullpath: Optional[str] = None
    kind: ClassVar[str] = "other"


class ResourceMaps:
    """Declared resources, one ordered map per kind."""

    def __init__(self):
        self.shapes: Dict[str, ShapeResource] = {}
        self.materials: Dict[str, MaterialResource] = {}
        self.textures: Dict[str, TextureResource] = {}
        self.lights: Dict[str, LightResource] = {}
        self.others: Dict[str, OtherResource] = {}

    def _table(self, kind: str) -> Dict[str, Resource]:
        return {
            ShapeResource.kind: self.shapes,
            MaterialResource.kind: self.materials,
            TextureResource.kind: self.textures,
            LightResource.kind: self.lights,
            OtherResource.kind: self.others,
        }[kind]

    def add(self, resource: Resource) -> None:
        table = self._table(resource.kind)
        if resource.id in table:
            raise ValueError(f"{resource.kind} {resource.id} declared twice")
        table[resource.id] = resource

    def get(self, resource_id: str) -> Optional[Resource]:
        for table in (self.shapes, self.materials, self.textures, self.lights, self.others):
            if resource_id in table:
                return table[resource_id]
        return None

    def find_by_name(self, kind: str, name: str) -> List[Resource]:
        return [r for r in self._table(kind).values() if r.name == name]

    def __iter__(self) -> Iterator[Resource]:
        for table in (self.shapes, self.materials, self.textures, self.lights, self.others):
            yield from table.values()

    def __len__(self) -> int:
        return sum(len(t) for t in (self.shapes, self.materials, self.textures, self.lights, self.others))

    def counts(self) -> Dict[str, int]:
        return {
            "shapes": len(self.shapes),
            "materials": len(self.materials),
            "textures": len(self.textures),
            "lights": len(self.lights),
            "others": len(self.others),
        }
