"""
Directive execution engine.

The engine walks the parsed directive stream once, keeping all parse-time
state: the phase (options block / world block), the current transform
matrix (CTM) and its stack, the graphics-state stack, named coordinate
systems, object definitions and the working-directory stack. Each
directive is checked against the phase, applied to that state, and its
effect is reported to a ParseTarget as a fully resolved event.

Recoverable problems (unknown type names, undefined references, missing
asset files, degenerate matrices) are reported as warnings and the
directive is skipped. Phase violations and illegal nesting raise.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ParseOptions
from ..errors import (
    DiagnosticCollector,
    error_wrong_phase,
    error_world_begun,
    error_nested_object,
    error_unmatched_end,
    error_mismatched_end,
    error_instance_in_object,
    warning_unknown_type,
    warning_undefined_coordinate_system,
    warning_undefined_material,
    warning_material_without_type,
    warning_file_not_found,
    warning_degenerate_transform,
    warning_animated_area_light,
    warning_material_redefined,
    warning_texture_redefined,
    warning_object_redefined,
    warning_undefined_object,
    warning_no_world,
    warning_include_not_expanded,
    warning_unclosed_scopes,
)
from ..include import DirectoryStack
from ..params import Property, PropertyKind, PropertyMap
from ..parser import Directive
from ..scene.resources import (
    LightResource, MaterialResource, OtherResource, Resource, ShapeResource, TextureResource,
)
from ..tokens import UNKNOWN_SPAN
from ..xform import ActiveTransform, SingularMatrixError, Transform, TransformSet, from_column_major
from .state import (
    GraphicsState, ObjectDefinition, Phase, RenderOptions, RenderSetting, ScopeKind, ShapeStatement,
)
from .target import ParseTarget

logger = logging.getLogger(__name__)


OPTIONS_ONLY = frozenset({
    "Camera", "Film", "Sampler", "Integrator", "Accelerator", "PixelFilter", "TransformTimes",
})

WORLD_ONLY = frozenset({
    "Shape", "Material", "MakeNamedMaterial", "NamedMaterial", "Texture",
    "LightSource", "AreaLightSource", "ReverseOrientation",
    "AttributeBegin", "AttributeEnd", "ObjectBegin", "ObjectEnd", "ObjectInstance",
    "WorldEnd",
})

ANY_PHASE = frozenset({"WorkDirBegin", "WorkDirEnd", "Include"})

SHAPE_NAMES = {
    "trianglemesh": "Mesh",
    "plymesh": "Mesh",
    "sphere": "Sphere",
    "disk": "Disk",
    "cylinder": "Cylinder",
    "cone": "Cone",
    "paraboloid": "Paraboloid",
    "hyperboloid": "Hyperboloid",
    "loopsubdiv": "Subdiv",
    "bilinearmesh": "Mesh",
    "curve": "Curve",
}

LIGHT_TYPES = frozenset({"point", "spot", "goniometric", "projection", "distant", "infinite"})

AREA_LIGHT_TYPES = frozenset({"diffuse", "area"})

MATERIAL_TYPES = frozenset({
    # pbrt-v3
    "matte", "plastic", "metal", "glass", "mirror", "uber", "substrate", "disney",
    "translucent", "hair", "kdsubsurface", "subsurface", "fourier", "mix", "interface",
    # pbrt-v4
    "conductor", "dielectric", "thindielectric", "diffuse", "coateddiffuse",
    "coatedconductor", "diffusetransmission", "measured",
})

# Material type names that leave shapes without a material
UNBOUND_MATERIALS = ("", "none")

# Parameters naming asset files, resolved against the working directories
FILE_PARAMETERS = ("bsdffile", "lensfile", "mapname", "filename")

RENDER_SETTINGS = {
    "PixelFilter": "pixel_filter",
    "Film": "film",
    "Sampler": "sampler",
    "Accelerator": "accelerator",
    "Integrator": "integrator",
}

ACTIVE_TRANSFORMS = {
    "All": ActiveTransform.ALL,
    "StartTime": ActiveTransform.START,
    "EndTime": ActiveTransform.END,
}

DEFAULT_MATERIAL_TYPE = "matte"


def snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def upper_camel(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\-\s]+", name) if part)


class _Scope:
    """Transform stack entry."""

    __slots__ = ("kind", "ctm", "reported")

    def __init__(self, kind: ScopeKind, ctm: TransformSet, reported: bool):
        self.kind = kind
        self.ctm = ctm
        self.reported = reported


class ExecutionEngine:
    """
    Executes directives against a ParseTarget.

    Usage:
        engine = ExecutionEngine(SceneTarget(), options, source=text)
        scene = engine.run(directives)
    """

    def __init__(self, target: Optional[ParseTarget] = None,
                 options: Optional[ParseOptions] = None,
                 diagnostics: Optional[DiagnosticCollector] = None,
                 source: Optional[str] = None,
                 filename: Optional[str] = None,
                 base_dir: Optional[Path] = None):
        self.target = target if target is not None else ParseTarget()
        self.options = options or ParseOptions()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
        self.filename = filename
        self._lines = source.splitlines() if source is not None else []

        self.phase = Phase.OPTIONS
        self.ctm = TransformSet()
        self.scopes: List[_Scope] = []
        self.graphics = GraphicsState()
        self.graphics_stack: List[GraphicsState] = []
        self.named_coordinate_systems: Dict[str, TransformSet] = {}
        self.render_options = RenderOptions()
        self.objects: Dict[str, ObjectDefinition] = {}
        self.current_object: Optional[ObjectDefinition] = None
        self.named_media: Dict[str, str] = {}
        self.work_dirs = DirectoryStack([base_dir] if base_dir is not None else [])

        self._meshes: Dict[str, ShapeResource] = {}     # plymesh by full path
        self._files: Dict[str, Resource] = {}           # referenced files by full path
        self._current: Optional[Directive] = None
        self._started = False

    # =========================================================================
    # Driving
    # =========================================================================

    def run(self, directives: List[Directive]) -> Any:
        """Execute all directives and return the target's product."""
        self.begin()
        for directive in directives:
            self.execute(directive)
        return self.finish()

    def begin(self) -> None:
        if not self._started:
            self._started = True
            self.target.begin(self.filename)

    def execute(self, directive: Directive) -> None:
        """Check the phase of one directive and apply it."""
        self.begin()
        self._current = directive
        self._check_phase(directive)
        handler = getattr(self, "_execute_" + snake_case(directive.name))
        handler(directive)

    def finish(self) -> Any:
        """Close whatever the input left open and return the target's product."""
        self._current = None
        if self.phase == Phase.OPTIONS:
            self.diagnostics.add(warning_no_world())
        elif self.phase == Phase.WORLD:
            self._end_world()
        return self.target.finish()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _where(self):
        if self._current is None or self._current.span is None:
            return UNKNOWN_SPAN, None
        span = self._current.span
        line = span.start.line
        source_line = self._lines[line - 1] if 1 <= line <= len(self._lines) else None
        return span, source_line

    def _warn(self, factory, *args) -> None:
        span, line = self._where()
        self.diagnostics.add(factory(*args, span, line))

    def _fail(self, factory, *args):
        span, line = self._where()
        raise factory(*args, span, line)

    def _check_phase(self, d: Directive) -> None:
        if d.name in ANY_PHASE:
            return
        if self.phase == Phase.ENDED:
            self._fail(error_wrong_phase, d.name, "after WorldEnd")
        if d.name == "WorldBegin" and self.phase != Phase.OPTIONS:
            self._fail(error_world_begun)
        if d.name in OPTIONS_ONLY and self.phase != Phase.OPTIONS:
            self._fail(error_wrong_phase, d.name, "inside the world block")
        if d.name in WORLD_ONLY and self.phase != Phase.WORLD:
            self._fail(error_wrong_phase, d.name, "before WorldBegin")

    def _apply(self, make, replace: bool = False) -> None:
        """Compose (or replace) the CTM with ``make()``; degenerate transforms warn."""
        try:
            t = make()
        except SingularMatrixError:
            self._warn(warning_degenerate_transform, self._current.name)
            return
        if replace:
            self.ctm.replace(t)
        else:
            self.ctm.compose(t)

    def _resolve_file(self, name: str) -> Optional[str]:
        path = self.work_dirs.find(name)
        if path is None:
            self._warn(warning_file_not_found, name)
            return None
        return str(path)

    def _declare(self, resource: Resource) -> None:
        logger.debug("declare %s %s (%s)", resource.kind, resource.name, resource.type)
        self.target.declare_resource(resource)

    def _register_files(self, params: PropertyMap, skip=()) -> PropertyMap:
        """
        Resolve file-valued parameters against the working directories.

        Each file is declared once per full path; ``mapname`` images become
        texture resources, other files generic resources. Resolved
        parameters gain a ``"string <name>_fullpath"`` sibling.
        """
        params = params.copy()
        for param_type, name, prop in params.entries():
            if prop.kind != PropertyKind.STRINGS:
                continue
            if param_type == "spectrum":
                if not Path(prop.first()).suffix:
                    continue    # named spectrum, not a file
            elif name not in FILE_PARAMETERS or name in skip:
                continue

            fullpath = self._resolve_file(prop.first())
            if fullpath is None:
                continue
            params.insert(f"string {name}_fullpath", Property.strings([fullpath]))
            if fullpath in self._files:
                continue
            if name == "mapname":
                resource: Resource = TextureResource(
                    name=Path(fullpath).name, type="imagemap", fullpath=fullpath,
                    params=PropertyMap([("string filename", Property.strings([fullpath]))]),
                )
            else:
                resource = OtherResource(name=Path(fullpath).name, type=name, fullpath=fullpath)
            self._files[fullpath] = resource
            self._declare(resource)
        return params

    def _push_scope(self, kind: ScopeKind) -> None:
        reported = kind != ScopeKind.OBJECT and self.current_object is None
        self.scopes.append(_Scope(kind, self.ctm.copy(), reported))
        if kind == ScopeKind.ATTRIBUTE:
            self.graphics_stack.append(self.graphics.copy())
        if reported:
            self.target.begin_scope(kind, self.ctm.copy())

    def _pop_scope(self, kind: ScopeKind) -> None:
        if not self.scopes:
            self._fail(error_unmatched_end, kind.end_directive)
        top = self.scopes[-1]
        if top.kind != kind:
            self._fail(error_mismatched_end, kind.end_directive, top.kind.begin_directive)
        self._close_scope()

    def _close_scope(self) -> None:
        scope = self.scopes.pop()
        self.ctm = scope.ctm
        if scope.kind == ScopeKind.ATTRIBUTE:
            self.graphics = self.graphics_stack.pop()
        elif scope.kind == ScopeKind.OBJECT:
            definition = self.current_object
            self.current_object = None
            self.objects[definition.name] = definition
            self.target.object_end(definition)
        if scope.reported:
            self.target.end_scope(scope.kind)

    def _end_world(self) -> None:
        if self.scopes:
            self.diagnostics.add(warning_unclosed_scopes(len(self.scopes), self._where()[0]))
            while self.scopes:
                self._close_scope()
        self.target.world_end()
        self.phase = Phase.ENDED
        logger.debug("world block ended")

    # =========================================================================
    # Transform directives
    # =========================================================================

    def _execute_identity(self, d: Directive) -> None:
        self.ctm.replace(Transform())

    def _execute_translate(self, d: Directive) -> None:
        self._apply(lambda: Transform.translate(*d.args))

    def _execute_scale(self, d: Directive) -> None:
        self._apply(lambda: Transform.scale(*d.args))

    def _execute_rotate(self, d: Directive) -> None:
        self._apply(lambda: Transform.rotate(*d.args))

    def _execute_look_at(self, d: Directive) -> None:
        a = d.args
        self._apply(lambda: Transform.look_at(a[0:3], a[3:6], a[6:9]))

    def _execute_concat_transform(self, d: Directive) -> None:
        self._apply(lambda: Transform.from_matrix(from_column_major(d.args)))

    def _execute_transform(self, d: Directive) -> None:
        self._apply(lambda: Transform.from_matrix(from_column_major(d.args)), replace=True)

    def _execute_coordinate_system(self, d: Directive) -> None:
        self.named_coordinate_systems[d.args[0]] = self.ctm.copy()

    def _execute_coord_sys_transform(self, d: Directive) -> None:
        name = d.args[0]
        saved = self.named_coordinate_systems.get(name)
        if saved is None:
            self._warn(warning_undefined_coordinate_system, name)
            return
        restored = saved.copy()
        restored.active = self.ctm.active
        self.ctm = restored

    def _execute_active_transform(self, d: Directive) -> None:
        self.ctm.active = ACTIVE_TRANSFORMS[d.args[0]]

    def _execute_transform_times(self, d: Directive) -> None:
        self.render_options.transform_start_time = d.args[0]
        self.render_options.transform_end_time = d.args[1]

    # =========================================================================
    # Options block
    # =========================================================================

    def _render_setting(self, d: Directive) -> None:
        setting = RenderSetting(d.args[0], self._register_files(d.params))
        attr = RENDER_SETTINGS[d.name]
        setattr(self.render_options, attr, setting)
        self.target.render_setting(attr, setting)

    _execute_pixel_filter = _render_setting
    _execute_film = _render_setting
    _execute_sampler = _render_setting
    _execute_accelerator = _render_setting
    _execute_integrator = _render_setting

    def _execute_camera(self, d: Directive) -> None:
        setting = RenderSetting(d.args[0], self._register_files(d.params))
        camera_to_world = self.ctm.inverse()
        self.named_coordinate_systems["camera"] = camera_to_world.copy()
        self.render_options.camera = setting
        self.render_options.camera_to_world = camera_to_world
        self.target.camera(setting, camera_to_world.copy())

    def _execute_make_named_medium(self, d: Directive) -> None:
        name = d.args[0]
        params = self._register_files(d.params)
        medium = OtherResource(name=name, type="medium", params=params)
        self.named_media[name] = medium.id
        self._declare(medium)

    def _execute_medium_interface(self, d: Directive) -> None:
        inside = d.args[0]
        outside = d.args[1] if len(d.args) > 1 else inside
        self.graphics.inside_medium = inside
        self.graphics.outside_medium = outside

    def _execute_world_begin(self, d: Directive) -> None:
        self.phase = Phase.WORLD
        if self.render_options.camera_to_world is None:
            self.render_options.camera_to_world = TransformSet()
            self.named_coordinate_systems["camera"] = TransformSet()
        self.ctm = TransformSet()
        self.named_coordinate_systems["world"] = TransformSet()

        default = MaterialResource(name="", type=DEFAULT_MATERIAL_TYPE)
        default.name = f"{upper_camel(default.type)}_{default.id}"
        self._declare(default)
        self.graphics.material_id = default.id

        logger.debug("world block started")
        self.target.world_begin(self.render_options)

    # =========================================================================
    # World block: scopes
    # =========================================================================

    def _execute_world_end(self, d: Directive) -> None:
        self._end_world()

    def _execute_attribute_begin(self, d: Directive) -> None:
        self._push_scope(ScopeKind.ATTRIBUTE)

    def _execute_attribute_end(self, d: Directive) -> None:
        self._pop_scope(ScopeKind.ATTRIBUTE)

    def _execute_transform_begin(self, d: Directive) -> None:
        self._push_scope(ScopeKind.TRANSFORM)

    def _execute_transform_end(self, d: Directive) -> None:
        self._pop_scope(ScopeKind.TRANSFORM)

    def _execute_object_begin(self, d: Directive) -> None:
        name = d.args[0]
        if self.current_object is not None:
            self._fail(error_nested_object, name, self.current_object.name)
        if name in self.objects:
            self._warn(warning_object_redefined, name)
        self._push_scope(ScopeKind.OBJECT)
        self.current_object = ObjectDefinition(name)
        self.target.object_begin(name)

    def _execute_object_end(self, d: Directive) -> None:
        self._pop_scope(ScopeKind.OBJECT)

    def _object_relative(self, ctm: TransformSet) -> TransformSet:
        """
        ``ctm`` relative to the CTM saved at the open ObjectBegin.

        Captured shapes keep only the transforms issued inside the object
        body, so each instance is placed by its own ObjectInstance CTM.
        """
        base = next(s.ctm for s in reversed(self.scopes) if s.kind == ScopeKind.OBJECT)
        return TransformSet(
            base.start.inverse().compose(ctm.start),
            base.end.inverse().compose(ctm.end),
            ctm.active,
        )

    def _execute_object_instance(self, d: Directive) -> None:
        name = d.args[0]
        if self.current_object is not None:
            self._fail(error_instance_in_object, name)
        definition = self.objects.get(name)
        if definition is None:
            self._warn(warning_undefined_object, name)
            return
        self.target.object_instance(definition, self.ctm.copy())

    # =========================================================================
    # World block: materials and textures
    # =========================================================================

    def _execute_texture(self, d: Directive) -> None:
        name, value_type, class_name = d.args
        params = self._register_files(d.params, skip=("filename",))
        texture = TextureResource(
            name=name, type=class_name, value_type=value_type,
            params=params, transform=self.ctm.start.m.copy(),
        )
        if class_name == "imagemap":
            filename = params.find_one_string("filename")
            fullpath = self._resolve_file(filename) if filename else None
            if fullpath is not None:
                params.insert("string fullpath", Property.strings([fullpath]))
                texture.fullpath = fullpath
        if name in self.graphics.textures:
            self._warn(warning_texture_redefined, name)
        self._declare(texture)
        self.graphics.textures[name] = texture.id

    def _execute_material(self, d: Directive) -> None:
        material_type = d.args[0]
        if material_type in UNBOUND_MATERIALS:
            self.graphics.material_id = None
            return
        if material_type not in MATERIAL_TYPES:
            self._warn(warning_unknown_type, "material", material_type)
            return
        material = MaterialResource(name="", type=material_type, params=self._register_files(d.params))
        material.name = f"{upper_camel(material_type)}_{material.id}"
        self._declare(material)
        self.graphics.material_id = material.id

    def _execute_make_named_material(self, d: Directive) -> None:
        name = d.args[0]
        material_type = d.params.find_one_string("type")
        if material_type is None:
            self._warn(warning_material_without_type, name)
            return
        if material_type not in MATERIAL_TYPES:
            self._warn(warning_unknown_type, "material", material_type)
            return
        if name in self.graphics.named_materials:
            self._warn(warning_material_redefined, name)
        material = MaterialResource(name=name, type=material_type, params=self._register_files(d.params))
        self._declare(material)
        self.graphics.named_materials[name] = material.id

    def _execute_named_material(self, d: Directive) -> None:
        name = d.args[0]
        if name in UNBOUND_MATERIALS:
            self.graphics.material_id = None
            return
        material_id = self.graphics.named_materials.get(name)
        if material_id is None:
            self._warn(warning_undefined_material, name)
            return
        self.graphics.material_id = material_id

    # =========================================================================
    # World block: lights and shapes
    # =========================================================================

    def _execute_light_source(self, d: Directive) -> None:
        light_type = d.args[0]
        if light_type not in LIGHT_TYPES:
            self._warn(warning_unknown_type, "light", light_type)
            return
        light = LightResource(name=f"{upper_camel(light_type)}Light", type=light_type,
                              params=self._register_files(d.params))
        self._declare(light)
        self.target.light(light, self.ctm.copy())

    def _execute_area_light_source(self, d: Directive) -> None:
        light_type = d.args[0]
        if light_type not in AREA_LIGHT_TYPES:
            self._warn(warning_unknown_type, "light", light_type)
            return
        light = LightResource(name="AreaLight", type=light_type, params=self._register_files(d.params))
        self._declare(light)
        self.graphics.area_light = light

    def _execute_reverse_orientation(self, d: Directive) -> None:
        self.graphics.reverse_orientation = not self.graphics.reverse_orientation

    def _make_shape(self, shape_type: str, params: PropertyMap) -> Optional[ShapeResource]:
        params = params.copy()
        if shape_type == "plymesh":
            filename = params.find_one_string("filename")
            if filename is None:
                self._warn(warning_file_not_found, "")
                return None
            fullpath = self._resolve_file(filename)
            if fullpath is None:
                return None
            if fullpath in self._meshes:
                return self._meshes[fullpath]
            params.insert("string fullpath", Property.strings([fullpath]))
            shape = ShapeResource(name=Path(fullpath).stem, type=shape_type,
                                  params=params, fullpath=fullpath)
            self._meshes[fullpath] = shape
        else:
            if shape_type == "loopsubdiv":
                params.rename("levels", "nlevels")
            shape = ShapeResource(name=SHAPE_NAMES[shape_type], type=shape_type, params=params)
        self._declare(shape)
        return shape

    def _execute_shape(self, d: Directive) -> None:
        shape_type = d.args[0]
        if shape_type not in SHAPE_NAMES:
            self._warn(warning_unknown_type, "shape", shape_type)
            return
        shape = self._make_shape(shape_type, d.params)
        if shape is None:
            return

        statement = ShapeStatement(
            shape=shape,
            transform=self.ctm.copy(),
            material_id=self.graphics.material_id,
            area_light=self.graphics.area_light,
            reverse_orientation=self.graphics.reverse_orientation,
            times=(self.render_options.transform_start_time, self.render_options.transform_end_time),
            inside_medium=self.graphics.inside_medium,
            outside_medium=self.graphics.outside_medium,
            span=d.span,
        )
        # a pending area light goes to one shape only
        self.graphics.area_light = None
        if statement.area_light is not None and statement.transform.is_animated:
            self._warn(warning_animated_area_light)
            statement.area_light = None

        if self.current_object is not None:
            statement.transform = self._object_relative(statement.transform)
            self.current_object.shapes.append(statement)
        else:
            self.target.shape(statement)

    # =========================================================================
    # Working directories and includes
    # =========================================================================

    def _execute_work_dir_begin(self, d: Directive) -> None:
        self.work_dirs.push(Path(d.args[0]))

    def _execute_work_dir_end(self, d: Directive) -> None:
        if self.work_dirs.pop() is None:
            self._fail(error_unmatched_end, "WorkDirEnd")

    def _execute_include(self, d: Directive) -> None:
        self._warn(warning_include_not_expanded, d.args[0])
