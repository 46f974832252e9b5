"""
Unit tests for the directive execution engine.
"""

import numpy as np
import pytest
from pbrtscene import (
    ActiveTransform,
    DiagnosticCollector,
    ExecutionEngine,
    NestingError,
    ParseOptions,
    ParseTarget,
    Phase,
    PhaseError,
    ScopeError,
    parse,
    tokenize,
)


class RecordingTarget(ParseTarget):
    """Keeps every event it receives."""

    def __init__(self):
        self.events = []
        self.resources = []
        self.shapes = []
        self.lights = []
        self.instances = []

    def begin(self, source):
        self.events.append(("begin",))

    def render_setting(self, kind, setting):
        self.events.append(("render_setting", kind, setting.type))

    def camera(self, setting, camera_to_world):
        self.events.append(("camera", setting.type))

    def world_begin(self, options):
        self.events.append(("world_begin",))

    def begin_scope(self, kind, ctm):
        self.events.append(("begin_scope", kind.value))

    def end_scope(self, kind):
        self.events.append(("end_scope", kind.value))

    def declare_resource(self, resource):
        self.resources.append(resource)

    def shape(self, statement):
        self.shapes.append(statement)

    def light(self, light, ctm):
        self.lights.append((light, ctm))

    def object_begin(self, name):
        self.events.append(("object_begin", name))

    def object_end(self, definition):
        self.events.append(("object_end", definition.name, len(definition.shapes)))

    def object_instance(self, definition, ctm):
        self.instances.append((definition, ctm))

    def world_end(self):
        self.events.append(("world_end",))

    def finish(self):
        self.events.append(("finish",))
        return self


def make_engine(source, base_dir=None, options=None):
    """Engine that has executed ``source`` but not been finished."""
    diagnostics = DiagnosticCollector()
    engine = ExecutionEngine(RecordingTarget(), options, diagnostics, source=source, base_dir=base_dir)
    for directive in parse(tokenize(source), source=source, diagnostics=diagnostics):
        engine.execute(directive)
    return engine


def run(source, base_dir=None):
    engine = make_engine(source, base_dir)
    target = engine.finish()
    return target, engine.diagnostics


def resource(target, kind, type_name=None):
    found = [r for r in target.resources if r.kind == kind and (type_name is None or r.type == type_name)]
    return found


class TestPhases:
    """Directives are checked against the options/world blocks."""

    def test_phase_progression(self):
        engine = make_engine('Camera "perspective"')
        assert engine.phase == Phase.OPTIONS
        engine.execute(parse(tokenize("WorldBegin"))[0])
        assert engine.phase == Phase.WORLD
        engine.execute(parse(tokenize("WorldEnd"))[0])
        assert engine.phase == Phase.ENDED

    def test_shape_before_world(self):
        with pytest.raises(PhaseError) as exc:
            run('Shape "sphere"')
        assert exc.value.code == "E301"

    @pytest.mark.parametrize("directive", [
        'Camera "perspective"', 'Film "image"', 'Sampler "halton"',
        'Integrator "path"', 'Accelerator "bvh"', 'PixelFilter "box"', "TransformTimes 0 1",
    ])
    def test_options_directive_in_world(self, directive):
        with pytest.raises(PhaseError) as exc:
            run("WorldBegin\n" + directive)
        assert exc.value.code == "E301"

    def test_world_begin_twice(self):
        with pytest.raises(PhaseError) as exc:
            run("WorldBegin WorldBegin")
        assert exc.value.code == "E302"

    def test_directive_after_world_end(self):
        with pytest.raises(PhaseError):
            run("WorldBegin WorldEnd Translate 1 0 0")

    def test_transforms_allowed_in_both_blocks(self):
        target, diagnostics = run("Translate 1 0 0 WorldBegin Translate 0 1 0 WorldEnd")
        assert diagnostics.codes() == []

    def test_error_location(self):
        """Errors point at the offending directive."""
        with pytest.raises(PhaseError) as exc:
            run('WorldBegin\n\nCamera "orthographic"')
        assert exc.value.diagnostic.span.start.line == 3
        assert "Camera" in exc.value.diagnostic.source_line

    def test_missing_world_begin(self):
        target, diagnostics = run('Camera "perspective"')
        assert diagnostics.codes() == ["W314"]
        assert ("world_begin",) not in target.events

    def test_implicit_world_end(self):
        """Input ending inside the world block ends it."""
        target, diagnostics = run('WorldBegin Shape "sphere"')
        assert target.events[-2:] == [("world_end",), ("finish",)]
        assert diagnostics.codes() == []

    def test_events_in_order(self):
        target, _ = run('Film "rgb" Camera "perspective" WorldBegin AttributeBegin AttributeEnd WorldEnd')
        assert target.events == [
            ("begin",),
            ("render_setting", "film", "rgb"),
            ("camera", "perspective"),
            ("world_begin",),
            ("begin_scope", "Attribute"),
            ("end_scope", "Attribute"),
            ("world_end",),
            ("finish",),
        ]


class TestScopes:
    """Attribute, Transform and Object blocks."""

    def test_unmatched_attribute_end(self):
        with pytest.raises(ScopeError) as exc:
            run("WorldBegin AttributeEnd")
        assert exc.value.code == "E304"

    def test_mismatched_end(self):
        with pytest.raises(ScopeError) as exc:
            run("WorldBegin AttributeBegin TransformEnd")
        assert exc.value.code == "E305"

    def test_unclosed_scopes_closed_at_world_end(self):
        target, diagnostics = run("WorldBegin AttributeBegin TransformBegin WorldEnd")
        assert diagnostics.codes() == ["W316"]
        assert ("end_scope", "Transform") in target.events
        assert ("end_scope", "Attribute") in target.events

    def test_attribute_isolation_deep(self):
        """Nested blocks restore transform and attributes at every depth."""
        depth = 10
        source = "WorldBegin\n"
        for i in range(depth):
            source += 'AttributeBegin Translate 1 0 0 Material "plastic" ReverseOrientation\n'
        source += 'Shape "sphere"\n'
        source += "AttributeEnd\n" * depth
        source += 'Shape "disk"\n'
        engine = make_engine(source)
        target = engine.target

        inner, outer = target.shapes
        assert np.allclose(inner.transform.start.m[:3, 3], [depth, 0, 0])
        assert inner.reverse_orientation is False
        assert outer.transform.start.is_identity()
        assert outer.reverse_orientation is False
        default = resource(target, "material", "matte")[0]
        assert outer.material_id == default.id
        assert inner.material_id != default.id
        assert engine.graphics_stack == []

    def test_odd_reverse_orientation(self):
        target, _ = run('WorldBegin AttributeBegin ReverseOrientation Shape "sphere" AttributeEnd Shape "disk"')
        assert [s.reverse_orientation for s in target.shapes] == [True, False]

    def test_transform_block_keeps_attributes(self):
        """TransformEnd restores only the transform."""
        source = ('WorldBegin TransformBegin Translate 0 0 1 Material "glass" TransformEnd '
                  'Shape "sphere"')
        target, _ = run(source)
        glass = resource(target, "material", "glass")[0]
        shape = target.shapes[0]
        assert shape.transform.start.is_identity()
        assert shape.material_id == glass.id

    def test_transform_block_restores_active_transform(self):
        engine = make_engine("TransformBegin ActiveTransform StartTime TransformEnd")
        assert engine.ctm.active == ActiveTransform.ALL


class TestTransforms:
    """Transform directives acting on the CTM."""

    def test_translate_then_rotate(self):
        """Rotation after a translation keeps the translation."""
        target, _ = run('WorldBegin Translate 1 2 3 Rotate 90 0 1 0 Shape "sphere"')
        m = target.shapes[0].transform.start.m
        assert np.allclose(m[:3, 3], [1, 2, 3])
        assert np.allclose(m[:3, :3] @ [1, 0, 0], [0, 0, -1])

    def test_transform_replaces(self):
        target, _ = run('WorldBegin Translate 9 9 9 '
                        'Transform [ 1 0 0 0 0 1 0 0 0 0 1 0 1 2 3 1 ] Shape "sphere"')
        assert np.allclose(target.shapes[0].transform.start.m[:3, 3], [1, 2, 3])

    def test_concat_transform_composes(self):
        target, _ = run('WorldBegin Translate 1 0 0 '
                        'ConcatTransform [ 2 0 0 0 0 2 0 0 0 0 2 0 0 0 0 1 ] Shape "sphere"')
        m = target.shapes[0].transform.start.m
        assert np.allclose(m @ [1, 1, 1, 1], [3, 2, 2, 1])

    def test_identity_resets(self):
        target, _ = run('WorldBegin Translate 1 0 0 Scale 2 2 2 Identity Shape "sphere"')
        assert target.shapes[0].transform.start.is_identity()

    def test_degenerate_scale_warns(self):
        """A zero scale is skipped with a warning."""
        target, diagnostics = run('WorldBegin Translate 1 0 0 Scale 0 1 1 Shape "sphere"')
        assert diagnostics.codes() == ["W308"]
        assert np.allclose(target.shapes[0].transform.start.m[:3, 3], [1, 0, 0])

    def test_singular_transform_warns(self):
        _, diagnostics = run("WorldBegin Transform [ 0 0 0 0 0 0 0 0 0 0 0 0 0 0 0 0 ]")
        assert diagnostics.codes() == ["W308"]

    def test_active_transform_animates(self):
        source = ('TransformTimes 2 5 WorldBegin '
                  'ActiveTransform EndTime Translate 0 0 4 ActiveTransform All '
                  'Shape "sphere"')
        target, _ = run(source)
        shape = target.shapes[0]
        assert shape.transform.is_animated
        assert shape.transform.start.is_identity()
        assert np.allclose(shape.transform.end.m[:3, 3], [0, 0, 4])
        assert shape.times == (2.0, 5.0)

    def test_named_coordinate_system(self):
        target, diagnostics = run('WorldBegin Translate 1 0 0 CoordinateSystem "here" '
                                  'Identity Translate 0 5 0 CoordSysTransform "here" Shape "sphere"')
        assert np.allclose(target.shapes[0].transform.start.m[:3, 3], [1, 0, 0])
        assert diagnostics.codes() == []

    def test_undefined_coordinate_system(self):
        """An unknown name warns and leaves the CTM alone."""
        target, diagnostics = run('WorldBegin Translate 0 1 0 CoordSysTransform "nowhere" '
                                  'Shape "sphere"')
        assert diagnostics.codes() == ["W304"]
        assert np.allclose(target.shapes[0].transform.start.m[:3, 3], [0, 1, 0])

    def test_camera_coordinate_system(self):
        """'camera' holds the camera-to-world transform."""
        source = ('LookAt 0 0 5  0 0 0  0 1 0 Camera "perspective" '
                  'WorldBegin CoordSysTransform "camera" Shape "sphere"')
        target, _ = run(source)
        m = target.shapes[0].transform.start.m
        assert np.allclose(m @ [0, 0, 0, 1], [0, 0, 5, 1])

    def test_world_coordinate_system(self):
        target, _ = run('WorldBegin Translate 3 0 0 CoordSysTransform "world" Shape "sphere"')
        assert target.shapes[0].transform.start.is_identity()

    def test_world_begin_resets_ctm(self):
        engine = make_engine("Translate 1 2 3 WorldBegin")
        assert engine.ctm.start.is_identity()
        assert engine.render_options.camera_to_world is not None


class TestMaterials:
    """Material binding and named materials."""

    def test_default_material(self):
        target, _ = run('WorldBegin Shape "sphere"')
        default = resource(target, "material")[0]
        assert default.type == "matte"
        assert default.name == f"Matte_{default.id}"
        assert target.shapes[0].material_id == default.id

    def test_material_binds(self):
        target, _ = run('WorldBegin Material "coateddiffuse" "rgb reflectance" [ .5 .5 .5 ] Shape "sphere"')
        material = resource(target, "material", "coateddiffuse")[0]
        assert material.name.startswith("Coateddiffuse_")
        assert material.params.get_floats("reflectance") == [0.5, 0.5, 0.5]
        assert target.shapes[0].material_id == material.id

    @pytest.mark.parametrize("name", ["", "none"])
    def test_material_unbinds(self, name):
        target, _ = run(f'WorldBegin Material "{name}" Shape "sphere"')
        assert target.shapes[0].material_id is None

    def test_interface_material(self):
        target, _ = run('WorldBegin Material "interface" Shape "sphere"')
        interface = resource(target, "material", "interface")[0]
        assert target.shapes[0].material_id == interface.id

    def test_unknown_material(self):
        target, diagnostics = run('WorldBegin Material "velvetish" Shape "sphere"')
        assert diagnostics.codes() == ["W303"]
        assert target.shapes[0].material_id == resource(target, "material", "matte")[0].id

    def test_named_material(self):
        source = ('WorldBegin MakeNamedMaterial "gold" "string type" "conductor" '
                  'Shape "disk" NamedMaterial "gold" Shape "sphere"')
        target, _ = run(source)
        gold = resource(target, "material", "conductor")[0]
        assert gold.name == "gold"
        assert target.shapes[0].material_id != gold.id
        assert target.shapes[1].material_id == gold.id

    def test_named_material_scoped(self):
        """Named materials defined in a block vanish with it."""
        source = ('WorldBegin AttributeBegin MakeNamedMaterial "m" "string type" "matte" '
                  'AttributeEnd NamedMaterial "m"')
        _, diagnostics = run(source)
        assert diagnostics.codes() == ["W305"]

    def test_named_material_without_type(self):
        _, diagnostics = run('WorldBegin MakeNamedMaterial "m" "rgb Kd" [ 1 0 0 ]')
        assert diagnostics.codes() == ["W306"]

    def test_named_material_redefined(self):
        source = ('WorldBegin MakeNamedMaterial "m" "string type" "matte" '
                  'MakeNamedMaterial "m" "string type" "plastic" NamedMaterial "m" Shape "sphere"')
        target, diagnostics = run(source)
        assert diagnostics.codes() == ["W310"]
        assert target.shapes[0].material_id == resource(target, "material", "plastic")[0].id

    def test_texture(self):
        source = ('WorldBegin Texture "checks" "spectrum" "checkerboard" "float uscale" 4 '
                  'Texture "checks" "float" "constant" "float value" 1')
        target, diagnostics = run(source)
        textures = resource(target, "texture")
        assert [t.type for t in textures] == ["checkerboard", "constant"]
        assert textures[0].value_type == "spectrum"
        assert diagnostics.codes() == ["W311"]

    def test_imagemap_texture(self, tmp_path):
        (tmp_path / "wood.png").write_bytes(b"")
        target, diagnostics = run(
            'WorldBegin Texture "wood" "spectrum" "imagemap" "string filename" "wood.png"',
            base_dir=tmp_path,
        )
        texture = resource(target, "texture")[0]
        expected = str((tmp_path / "wood.png").resolve())
        assert texture.fullpath == expected
        assert texture.params.find_one_string("fullpath") == expected
        assert diagnostics.codes() == []

    def test_imagemap_missing_file(self, tmp_path):
        _, diagnostics = run(
            'WorldBegin Texture "wood" "spectrum" "imagemap" "string filename" "gone.png"',
            base_dir=tmp_path,
        )
        assert diagnostics.codes() == ["W307"]


class TestLightsAndShapes:
    """Lights, area lights and shapes."""

    def test_light_source(self):
        target, _ = run('WorldBegin Translate 0 3 0 LightSource "point" "rgb I" [ 1 1 1 ]')
        light, ctm = target.lights[0]
        assert light.type == "point"
        assert light.name == "PointLight"
        assert np.allclose(ctm.start.m[:3, 3], [0, 3, 0])

    def test_unknown_light(self):
        target, diagnostics = run('WorldBegin LightSource "laser"')
        assert diagnostics.codes() == ["W302"]
        assert target.lights == []

    def test_area_light_attaches_to_shapes(self):
        source = ('WorldBegin AttributeBegin AreaLightSource "diffuse" "rgb L" [ 4 4 4 ] '
                  'Shape "sphere" AttributeEnd Shape "disk"')
        target, _ = run(source)
        lit, unlit = target.shapes
        assert lit.area_light is not None
        assert lit.area_light.type == "diffuse"
        assert unlit.area_light is None

    def test_area_light_taken_by_next_shape_only(self):
        """Only the first shape after AreaLightSource becomes an emitter."""
        source = ('WorldBegin AttributeBegin AreaLightSource "diffuse" "rgb L" [ 4 4 4 ] '
                  'Shape "sphere" Shape "disk" AttributeEnd')
        target, _ = run(source)
        sphere, disk = target.shapes
        assert sphere.area_light is not None
        assert disk.area_light is None

    def test_area_light_taken_inside_object(self):
        source = ('WorldBegin AreaLightSource "diffuse" ObjectBegin "lamp" '
                  'Shape "sphere" Shape "disk" ObjectEnd ObjectInstance "lamp"')
        target, _ = run(source)
        definition, _ = target.instances[0]
        assert [s.area_light is not None for s in definition.shapes] == [True, False]

    def test_unknown_area_light(self):
        target, diagnostics = run('WorldBegin AreaLightSource "spot" Shape "sphere"')
        assert diagnostics.codes() == ["W302"]
        assert target.shapes[0].area_light is None

    def test_animated_area_light_dropped(self):
        source = ('WorldBegin AreaLightSource "diffuse" ActiveTransform EndTime Translate 1 0 0 '
                  'Shape "sphere"')
        target, diagnostics = run(source)
        assert diagnostics.codes() == ["W309"]
        assert target.shapes[0].area_light is None

    def test_unknown_shape(self):
        target, diagnostics = run('WorldBegin Shape "teapot"')
        assert diagnostics.codes() == ["W301"]
        assert target.shapes == []

    def test_shape_names(self):
        target, _ = run('WorldBegin Shape "sphere" Shape "trianglemesh" "integer indices" [0 1 2] '
                        '"point3 P" [0 0 0 1 0 0 0 1 0]')
        assert [s.shape.name for s in target.shapes] == ["Sphere", "Mesh"]

    def test_loopsubdiv_levels_renamed(self):
        target, _ = run('WorldBegin Shape "loopsubdiv" "integer levels" 3 '
                        '"integer indices" [0 1 2] "point3 P" [0 0 0 1 0 0 0 1 0]')
        params = target.shapes[0].shape.params
        assert params.get_ints("nlevels") == [3]
        assert "levels" not in params

    def test_plymesh_shared(self, tmp_path):
        """The same mesh file is declared once and shared."""
        (tmp_path / "bunny.ply").write_bytes(b"ply\n")
        source = ('WorldBegin Shape "plymesh" "string filename" "bunny.ply" '
                  'Translate 1 0 0 Shape "plymesh" "string filename" "bunny.ply"')
        target, _ = run(source, base_dir=tmp_path)
        first, second = target.shapes
        assert first.shape is second.shape
        assert first.shape.name == "bunny"
        assert first.shape.fullpath == str((tmp_path / "bunny.ply").resolve())
        assert len(resource(target, "shape")) == 1

    def test_plymesh_missing(self, tmp_path):
        target, diagnostics = run('WorldBegin Shape "plymesh" "string filename" "gone.ply"',
                                  base_dir=tmp_path)
        assert diagnostics.codes() == ["W307"]
        assert target.shapes == []

    def test_media(self):
        target, _ = run('MakeNamedMedium "fog" "string type" "homogeneous" '
                        'WorldBegin MediumInterface "fog" "" Shape "sphere"')
        medium = resource(target, "other", "medium")[0]
        assert medium.name == "fog"
        assert target.shapes[0].inside_medium == "fog"
        assert target.shapes[0].outside_medium == ""

    def test_light_map_registered(self, tmp_path):
        """Referenced image files become texture resources with a full path."""
        (tmp_path / "sky.exr").write_bytes(b"")
        target, _ = run('WorldBegin LightSource "infinite" "string mapname" "sky.exr"',
                        base_dir=tmp_path)
        light, _ = target.lights[0]
        expected = str((tmp_path / "sky.exr").resolve())
        assert light.params.find_one_string("mapname_fullpath") == expected
        texture = resource(target, "texture")[0]
        assert texture.fullpath == expected

    def test_spectrum_file_registered(self, tmp_path):
        (tmp_path / "cu.spd").write_text("300 .3\n")
        target, _ = run('WorldBegin Material "conductor" "spectrum eta" "cu.spd" '
                        '"spectrum k" "metal-Cu-k"', base_dir=tmp_path)
        material = resource(target, "material", "conductor")[0]
        assert material.params.find_one_string("eta_fullpath") is not None
        assert "k_fullpath" not in material.params
        assert [r.type for r in resource(target, "other")] == ["eta"]


class TestObjects:
    """Object definitions and instances."""

    def test_object_captures_shapes(self):
        source = ('WorldBegin ObjectBegin "tree" Shape "cylinder" Shape "sphere" ObjectEnd '
                  'Translate 5 0 0 ObjectInstance "tree"')
        target, _ = run(source)
        assert target.shapes == []
        assert ("object_end", "tree", 2) in target.events
        definition, ctm = target.instances[0]
        assert definition.name == "tree"
        assert np.allclose(ctm.start.m[:3, 3], [5, 0, 0])

    def test_captured_shapes_relative_to_object_begin(self):
        """Transforms active before ObjectBegin are not baked into the definition."""
        source = ('WorldBegin AttributeBegin Translate 5 0 0 ObjectBegin "foo" '
                  'Scale 2 2 2 Shape "sphere" ObjectEnd AttributeEnd ObjectInstance "foo"')
        target, _ = run(source)
        definition, ctm = target.instances[0]
        captured = definition.shapes[0].transform
        assert np.allclose(captured.start.m, np.diag([2.0, 2.0, 2.0, 1.0]))
        assert np.allclose(captured.start.m @ captured.start.im, np.identity(4))
        assert ctm.start.is_identity()

    def test_object_block_not_reported_as_scope(self):
        target, _ = run('WorldBegin ObjectBegin "a" AttributeBegin AttributeEnd ObjectEnd')
        assert not any(e[0] == "begin_scope" for e in target.events)

    def test_object_restores_ctm(self):
        engine = make_engine('WorldBegin ObjectBegin "a" Translate 1 0 0 ObjectEnd')
        assert engine.ctm.start.is_identity()
        assert engine.current_object is None

    def test_nested_object(self):
        with pytest.raises(NestingError) as exc:
            run('WorldBegin ObjectBegin "a" ObjectBegin "b"')
        assert exc.value.code == "E303"

    def test_instance_inside_object(self):
        with pytest.raises(NestingError) as exc:
            run('WorldBegin ObjectBegin "a" ObjectEnd ObjectBegin "b" ObjectInstance "a"')
        assert exc.value.code == "E306"

    def test_undefined_instance(self):
        target, diagnostics = run('WorldBegin ObjectInstance "ghost"')
        assert diagnostics.codes() == ["W313"]
        assert target.instances == []

    def test_redefined_object(self):
        target, diagnostics = run('WorldBegin ObjectBegin "a" ObjectEnd '
                                  'ObjectBegin "a" Shape "sphere" ObjectEnd ObjectInstance "a"')
        assert diagnostics.codes() == ["W312"]
        assert len(target.instances[0][0].shapes) == 1

    def test_object_end_without_begin(self):
        with pytest.raises(ScopeError):
            run("WorldBegin ObjectEnd")


class TestWorkingDirectories:
    """WorkDirBegin/WorkDirEnd and unexpanded includes."""

    def test_work_dir_resolves_files(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "m.ply").write_bytes(b"ply\n")
        source = (f'WorldBegin WorkDirBegin "{(tmp_path / "sub").as_posix()}" '
                  'Shape "plymesh" "string filename" "m.ply" WorkDirEnd')
        target, diagnostics = run(source)
        assert diagnostics.codes() == []
        assert len(target.shapes) == 1

    def test_unmatched_work_dir_end(self):
        with pytest.raises(ScopeError) as exc:
            run("WorkDirEnd")
        assert exc.value.code == "E304"

    def test_unexpanded_include(self):
        _, diagnostics = run('WorldBegin Include "other.pbrt"')
        assert diagnostics.codes() == ["W315"]
