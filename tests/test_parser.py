"""
Unit tests for the directive parser.
"""

import pytest
from pbrtscene import (
    tokenize, parse, Parser, Directive, DiagnosticCollector, ParserError, PropertyKind,
)


def parse_source(source, strict=False, diagnostics=None):
    return parse(tokenize(source), None, source, strict, diagnostics)


def parse_one(source, **kwargs):
    directives = parse_source(source, **kwargs)
    assert len(directives) == 1
    return directives[0]


class TestDirectiveArguments:
    """Positional arguments by directive shape."""

    def test_no_arguments(self):
        d = parse_one("WorldBegin")
        assert d.name == "WorldBegin"
        assert d.args == ()
        assert len(d.params) == 0

    def test_numbers(self):
        d = parse_one("Translate 1 -2 3.5")
        assert d.args == (1.0, -2.0, 3.5)

    def test_rotate(self):
        d = parse_one("Rotate 90 0 1 0")
        assert d.args == (90.0, 0.0, 1.0, 0.0)

    def test_look_at(self):
        d = parse_one("LookAt 0 0 5  0 0 0  0 1 0")
        assert len(d.args) == 9

    def test_bracketed_matrix(self):
        d = parse_one("Transform [ 1 0 0 0 0 1 0 0 0 0 1 0 4 5 6 1 ]")
        assert len(d.args) == 16
        assert d.args[12:15] == (4.0, 5.0, 6.0)

    def test_bare_matrix(self):
        """Matrix values may be written without brackets."""
        d = parse_one("ConcatTransform 1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1")
        assert len(d.args) == 16

    def test_short_matrix(self):
        with pytest.raises(ParserError) as exc:
            parse_source("Transform [ 1 0 0 ]")
        assert exc.value.code == "E104"

    def test_active_transform_keyword(self):
        assert parse_one("ActiveTransform StartTime").args == ("StartTime",)

    def test_active_transform_bad_keyword(self):
        with pytest.raises(ParserError) as exc:
            parse_source("ActiveTransform Sometimes")
        assert exc.value.code == "E104"

    def test_string_argument(self):
        assert parse_one('ObjectBegin "tree"').args == ("tree",)

    def test_medium_interface_one_or_two(self):
        """MediumInterface takes one or two names."""
        assert parse_one('MediumInterface "fog"').args == ("fog",)
        assert parse_one('MediumInterface "fog" ""').args == ("fog", "")

    def test_texture_three_strings(self):
        d = parse_one('Texture "checks" "spectrum" "checkerboard" "float uscale" 8')
        assert d.args == ("checks", "spectrum", "checkerboard")
        assert d.params.find_one_float("uscale") == 8.0

    def test_missing_numbers(self):
        """Too few numbers is an argument error."""
        with pytest.raises(ParserError) as exc:
            parse_source("Translate 1 2")
        assert exc.value.code == "E104"

    def test_missing_type_name(self):
        with pytest.raises(ParserError) as exc:
            parse_source("Shape 1")
        assert exc.value.code == "E104"


class TestDirectiveStream:
    """Sequences of directives."""

    def test_directives_split_on_names(self):
        """Each directive runs until the next directive name."""
        directives = parse_source(
            'WorldBegin\nAttributeBegin Translate 0 1 0 Shape "sphere" AttributeEnd WorldEnd'
        )
        assert [d.name for d in directives] == [
            "WorldBegin", "AttributeBegin", "Translate", "Shape", "AttributeEnd", "WorldEnd",
        ]

    def test_unknown_directive(self):
        with pytest.raises(ParserError) as exc:
            parse_source("Frobnicate 1 2 3")
        assert exc.value.code == "E103"

    def test_value_where_directive_expected(self):
        """A stray value between directives is rejected."""
        with pytest.raises(ParserError) as exc:
            parse_source("WorldBegin 42")
        assert exc.value.code == "E101"

    def test_span_covers_directive(self):
        """Directive spans run from the name to the last token."""
        d = parse_one('\nShape "sphere" "float radius" [ 2 ]')
        assert d.span.start.line == 2
        assert d.span.start.column == 1
        assert d.span.end.column == len('Shape "sphere" "float radius" [ 2 ]') + 1


class TestParameterList:
    """Parameter list parsing."""

    def test_single_value_without_brackets(self):
        d = parse_one('Shape "sphere" "float radius" 2.5')
        assert d.params.get_floats("radius") == [2.5]

    def test_order_of_entries(self):
        d = parse_one('Film "image" "integer xresolution" [400] "integer yresolution" [300] '
                      '"string filename" "out.exr"')
        assert d.params.keys() == [
            "integer xresolution", "integer yresolution", "string filename",
        ]
        assert d.params.get_ints("xresolution") == [400]
        assert d.params.get_strings("filename") == ["out.exr"]

    def test_mesh_arrays(self):
        d = parse_one('Shape "trianglemesh" "integer indices" [0 1 2] '
                      '"point3 P" [0 0 0 1 0 0 0 1 0]')
        assert d.params.get_ints("indices") == [0, 1, 2]
        assert len(d.params.get_floats("P")) == 9

    def test_bool_values(self):
        d = parse_one('Integrator "path" "bool regularize" "true" "bool other" [ false ]')
        assert d.params.get_bools("regularize") == [True]
        assert d.params.get_bools("other") == [False]

    def test_spectrum_named_and_numeric(self):
        """A spectrum is a name or a list of wavelength/value pairs."""
        d = parse_one('Material "conductor" "spectrum eta" "metal-Cu-eta" '
                      '"spectrum k" [300 .3 800 .6]')
        assert d.params.get("eta").kind == PropertyKind.STRINGS
        assert d.params.get("k").kind == PropertyKind.FLOATS

    def test_duplicate_parameter(self):
        with pytest.raises(ParserError) as exc:
            parse_source('Shape "sphere" "float radius" 1 "float radius" 2')
        assert exc.value.code == "E105"

    def test_empty_list(self):
        with pytest.raises(ParserError) as exc:
            parse_source('Shape "sphere" "float radius" [ ]')
        assert exc.value.code == "E106"

    def test_bad_declaration(self):
        with pytest.raises(ParserError) as exc:
            parse_source('Shape "sphere" "float radius extra" 1')
        assert exc.value.code == "E107"

    def test_unclosed_list(self):
        with pytest.raises(ParserError) as exc:
            parse_source('Shape "sphere" "float radius" [ 1')
        assert exc.value.code == "E102"

    def test_missing_value(self):
        with pytest.raises(ParserError) as exc:
            parse_source('Shape "sphere" "float radius" WorldEnd')
        assert exc.value.code == "E101"


class TestMalformedValues:
    """Lenient and strict handling of malformed values."""

    def test_lenient_number_becomes_zero(self):
        """A malformed number is stored as 0 with a warning."""
        diagnostics = DiagnosticCollector()
        d = parse_one('Shape "sphere" "float radius" [ 1.2.3 ]', diagnostics=diagnostics)
        assert d.params.get_floats("radius") == [0.0]
        assert diagnostics.codes() == ["W101"]

    def test_lenient_bool_becomes_false(self):
        diagnostics = DiagnosticCollector()
        d = parse_one('Shape "sphere" "bool alpha" "maybe"', diagnostics=diagnostics)
        assert d.params.get_bools("alpha") == [False]
        assert diagnostics.codes() == ["W102"]

    def test_strict_mode_fails(self):
        with pytest.raises(ParserError) as exc:
            parse_source('Shape "sphere" "float radius" [ 1.2.3 ]', strict=True)
        assert exc.value.code == "E108"

    def test_parser_collects_warnings(self):
        """Without a collector the parser keeps its own."""
        source = 'Shape "sphere" "float radius" 4x'
        parser = Parser(tokenize(source), source=source)
        parser.parse()
        assert len(parser.diagnostics.warnings) == 1


class TestFormat:
    """Rendering directives back to text."""

    def test_format_round_trip(self):
        """Formatted text parses back to the same directive."""
        source = 'Shape "trianglemesh" "integer indices" [ 0 1 2 ] "point3 P" [ 0 0 0 1 0 0 0 1.5 0 ]'
        d = parse_one(source)
        again = parse_one(d.format())
        assert again.name == d.name
        assert again.args == d.args
        assert again.params == d.params

    def test_format_numbers(self):
        d = parse_one("Translate 1 2.5 -3")
        assert d.format() == "Translate 1 2.5 -3"

    def test_format_matrix_and_keyword(self):
        assert str(parse_one("ActiveTransform EndTime")) == "ActiveTransform EndTime"
        d = parse_one("Transform [1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1]")
        assert d.format() == "Transform [ 1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1 ]"

    def test_omit_long_values(self):
        """Long arrays are abbreviated on request."""
        d = parse_one('Shape "trianglemesh" "integer indices" [' + " 0" * 30 + " ]")
        text = d.format(omit_long_values=True, threshold=16)
        assert "... (30 values)" in text
        assert "... (30 values)" not in d.format()

    def test_format_escapes_quotes(self):
        d = Directive("ObjectBegin", ('a"b',))
        assert d.format() == 'ObjectBegin "a\\"b"'
