"""
Parser for the PBRT directive grammar.

Converts a token stream into a flat list of Directives. Each directive is
a name, a fixed set of positional arguments determined by the name, and
(for directives that take one) a parameter list:

    Translate 1 0 0
    Transform [ 1 0 0 0  0 1 0 0  0 0 1 0  0 0 0 1 ]
    ActiveTransform StartTime
    Shape "sphere" "float radius" [ 2.5 ]
    Texture "checks" "spectrum" "checkerboard" "float uscale" 8

Unknown directive names and wrongly shaped arguments are hard errors.
Malformed values inside a parameter list are recovered (0 / false with a
warning) unless the parser runs in strict mode.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple, Union

from .tokens import (
    Token, TokenType, SourceSpan, SourceLocation,
    ACTIVE_TRANSFORM_KEYWORDS, BOOL_WORDS, is_directive,
)
from .errors import (
    DiagnosticCollector,
    error_unexpected_token,
    error_unexpected_eof,
    error_unknown_directive,
    error_wrong_arguments,
    error_duplicate_parameter,
    error_empty_parameter_list,
    error_bad_declaration,
    error_malformed_value,
    warning_malformed_number,
    warning_malformed_bool,
)
from .params import PropertyMap, PropertyKind, build_property, make_key


class ArgShape(Enum):
    """Positional argument shape of a directive."""
    NONE = auto()           # WorldBegin
    NUMBERS = auto()        # Translate 1 2 3
    MATRIX = auto()         # Transform [16 numbers]
    KEYWORD = auto()        # ActiveTransform StartTime
    STRING = auto()         # ObjectBegin "name"
    ONE_OR_TWO = auto()     # MediumInterface "in" ["out"]
    NAMED = auto()          # Shape "type" params...
    TEXTURE = auto()        # Texture "name" "type" "class" params...


SIGNATURES: Dict[str, Tuple[ArgShape, int]] = {
    "Identity": (ArgShape.NONE, 0),
    "Translate": (ArgShape.NUMBERS, 3),
    "Scale": (ArgShape.NUMBERS, 3),
    "Rotate": (ArgShape.NUMBERS, 4),
    "LookAt": (ArgShape.NUMBERS, 9),
    "CoordinateSystem": (ArgShape.STRING, 1),
    "CoordSysTransform": (ArgShape.STRING, 1),
    "Transform": (ArgShape.MATRIX, 16),
    "ConcatTransform": (ArgShape.MATRIX, 16),
    "TransformTimes": (ArgShape.NUMBERS, 2),
    "ActiveTransform": (ArgShape.KEYWORD, 1),
    "Camera": (ArgShape.NAMED, 1),
    "Film": (ArgShape.NAMED, 1),
    "Sampler": (ArgShape.NAMED, 1),
    "Accelerator": (ArgShape.NAMED, 1),
    "Integrator": (ArgShape.NAMED, 1),
    "PixelFilter": (ArgShape.NAMED, 1),
    "MakeNamedMedium": (ArgShape.NAMED, 1),
    "MediumInterface": (ArgShape.ONE_OR_TWO, 2),
    "WorldBegin": (ArgShape.NONE, 0),
    "WorldEnd": (ArgShape.NONE, 0),
    "AttributeBegin": (ArgShape.NONE, 0),
    "AttributeEnd": (ArgShape.NONE, 0),
    "TransformBegin": (ArgShape.NONE, 0),
    "TransformEnd": (ArgShape.NONE, 0),
    "Texture": (ArgShape.TEXTURE, 3),
    "Material": (ArgShape.NAMED, 1),
    "MakeNamedMaterial": (ArgShape.NAMED, 1),
    "NamedMaterial": (ArgShape.STRING, 1),
    "LightSource": (ArgShape.NAMED, 1),
    "AreaLightSource": (ArgShape.NAMED, 1),
    "Shape": (ArgShape.NAMED, 1),
    "ReverseOrientation": (ArgShape.NONE, 0),
    "ObjectBegin": (ArgShape.STRING, 1),
    "ObjectEnd": (ArgShape.NONE, 0),
    "ObjectInstance": (ArgShape.STRING, 1),
    "Include": (ArgShape.NAMED, 1),
    "WorkDirBegin": (ArgShape.STRING, 1),
    "WorkDirEnd": (ArgShape.NONE, 0),
}


Argument = Union[float, str]


@dataclass
class Directive:
    """A single parsed directive."""
    name: str
    args: Tuple[Argument, ...] = ()
    params: PropertyMap = field(default_factory=PropertyMap)
    span: Optional[SourceSpan] = None

    @property
    def shape(self) -> ArgShape:
        return SIGNATURES[self.name][0]

    def format(self, omit_long_values: bool = False, threshold: int = 16) -> str:
        """Render the directive back to scene text."""
        parts = [self.name]
        shape = self.shape
        if shape == ArgShape.MATRIX:
            parts.append(_format_list([format_number(a) for a in self.args]))
        elif shape == ArgShape.KEYWORD:
            parts.extend(str(a) for a in self.args)
        else:
            for a in self.args:
                parts.append(quote(a) if isinstance(a, str) else format_number(a))
        for param_type, name, prop in self.params.entries():
            parts.append(quote(make_key(param_type, name)))
            if prop.kind == PropertyKind.STRINGS:
                items = [quote(v) for v in prop]
            elif prop.kind == PropertyKind.BOOLS:
                items = [quote("true" if v else "false") for v in prop]
            else:
                items = [format_number(v) for v in prop]
            if omit_long_values and len(items) > threshold:
                items = items[:3] + [f"... ({len(items)} values)"]
            parts.append(_format_list(items))
        return " ".join(parts)

    def __str__(self) -> str:
        return self.format()


def quote(text: str) -> str:
    return '"' + text.replace('"', '\\"') + '"'


def format_number(value: float) -> str:
    text = repr(float(value)) if not isinstance(value, int) else str(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _format_list(items: List[str]) -> str:
    return "[ " + " ".join(items) + " ]"


class Parser:
    """
    Parser for scene-description token streams.

    Usage:
        parser = Parser(tokens, "scene.pbrt", source)
        directives = parser.parse()
        for warning in parser.diagnostics.warnings:
            ...
    """

    def __init__(self, tokens: List[Token], filename: Optional[str] = None,
                 source: Optional[str] = None, strict_numbers: bool = False,
                 diagnostics: Optional[DiagnosticCollector] = None):
        self.tokens = tokens
        self.filename = filename
        self.source = source
        self.strict_numbers = strict_numbers
        self.pos = 0
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
        self._lines: Optional[List[str]] = None

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type == token_type

    def _advance(self) -> Token:
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _source_line(self, line: int) -> Optional[str]:
        if self.source is None:
            return None
        if self._lines is None:
            self._lines = self.source.splitlines()
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return None

    def _line_of(self, token: Token) -> Optional[str]:
        return self._source_line(token.span.start.line)

    def _span_from(self, start: SourceLocation) -> SourceSpan:
        prev = self.tokens[self.pos - 1] if self.pos > 0 else self._current()
        return SourceSpan(start, prev.span.end)

    def _error(self, expected: str):
        token = self._current()
        if token.type == TokenType.EOF:
            raise error_unexpected_eof(expected, token.span)
        raise error_unexpected_token(expected, token.describe(), token.span, self._line_of(token))

    # =========================================================================
    # Directives
    # =========================================================================

    def parse(self) -> List[Directive]:
        """Parse the whole token stream."""
        directives = []
        while not self._is_at_end():
            directives.append(self.parse_directive())
        return directives

    def parse_directive(self) -> Directive:
        token = self._current()
        if token.type != TokenType.IDENTIFIER:
            self._error("a directive name")
        if not is_directive(token.value):
            raise error_unknown_directive(token.value, token.span, self._line_of(token))
        self._advance()

        name = token.value
        shape, count = SIGNATURES[name]
        args: Tuple[Argument, ...] = ()
        params = PropertyMap()

        if shape == ArgShape.NUMBERS:
            args = self._parse_numbers(token, count)
        elif shape == ArgShape.MATRIX:
            args = self._parse_matrix(token)
        elif shape == ArgShape.KEYWORD:
            args = (self._parse_keyword(token),)
        elif shape == ArgShape.STRING:
            args = (self._parse_string(token, "a quoted name"),)
        elif shape == ArgShape.ONE_OR_TWO:
            args = (self._parse_string(token, "one or two quoted names"),)
            if self._check(TokenType.STRING):
                args = args + (self._advance().value,)
        elif shape == ArgShape.NAMED:
            args = (self._parse_string(token, "a quoted type name"),)
            params = self.parse_parameter_list()
        elif shape == ArgShape.TEXTURE:
            args = tuple(self._parse_string(token, "quoted name, type and class") for _ in range(3))
            params = self.parse_parameter_list()

        return Directive(name, args, params, self._span_from(token.span.start))

    def _wrong_arguments(self, directive: Token, expected: str):
        raise error_wrong_arguments(directive.value, expected, directive.span, self._line_of(directive))

    def _parse_numbers(self, directive: Token, count: int) -> Tuple[float, ...]:
        values = []
        for _ in range(count):
            if not self._check(TokenType.NUMBER):
                self._wrong_arguments(directive, f"{count} numbers")
            values.append(self._advance().value)
        return tuple(values)

    def _parse_matrix(self, directive: Token) -> Tuple[float, ...]:
        values = []
        if self._check(TokenType.LBRACKET):
            self._advance()
            while self._check(TokenType.NUMBER):
                values.append(self._advance().value)
            if not self._check(TokenType.RBRACKET):
                self._wrong_arguments(directive, "a list of 16 numbers")
            self._advance()
        else:
            while self._check(TokenType.NUMBER) and len(values) < 16:
                values.append(self._advance().value)
        if len(values) != 16:
            self._wrong_arguments(directive, f"16 numbers, got {len(values)}")
        return tuple(values)

    def _parse_keyword(self, directive: Token) -> str:
        token = self._current()
        if token.type != TokenType.IDENTIFIER or token.value not in ACTIVE_TRANSFORM_KEYWORDS:
            self._wrong_arguments(directive, "one of " + ", ".join(ACTIVE_TRANSFORM_KEYWORDS))
        return self._advance().value

    def _parse_string(self, directive: Token, expected: str) -> str:
        if not self._check(TokenType.STRING):
            self._wrong_arguments(directive, expected)
        return self._advance().value

    # =========================================================================
    # Parameter lists
    # =========================================================================

    def parse_parameter_list(self) -> PropertyMap:
        """
        Parse ``"<type> <name>" value`` pairs until the next directive.

        Entries keep their encounter order. A value is a single literal or
        a bracketed list of literals.
        """
        params = PropertyMap()
        while self._check(TokenType.STRING):
            decl = self._advance()
            words = decl.value.split()
            if len(words) not in (1, 2):
                raise error_bad_declaration(decl.value, decl.span, self._line_of(decl))
            param_type, name = (words[0], words[1]) if len(words) == 2 else ("", words[0])
            key = make_key(param_type, name)
            if name in params:
                raise error_duplicate_parameter(key, decl.span, self._line_of(decl))

            values = self._parse_values(key, decl)

            def on_malformed(token: Token, expected: str, _key=key):
                return self._recover(_key, token, expected)

            params.insert(key, build_property(param_type, values, on_malformed))
        return params

    def _parse_values(self, key: str, decl: Token) -> List[Token]:
        if self._check(TokenType.LBRACKET):
            self._advance()
            values = []
            while not self._check(TokenType.RBRACKET):
                if self._is_at_end():
                    self._error(f"']' closing the values of '{key}'")
                if self._check(TokenType.LBRACKET):
                    self._error("a value")
                values.append(self._advance())
            self._advance()
            if not values:
                raise error_empty_parameter_list(key, decl.span, self._line_of(decl))
            return values

        token = self._current()
        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.MALFORMED_NUMBER):
            return [self._advance()]
        if token.type == TokenType.IDENTIFIER and token.value.lower() in BOOL_WORDS:
            return [self._advance()]
        self._error(f"a value for parameter '{key}'")

    def _recover(self, key: str, token: Token, expected: str):
        """Substitute a default for a malformed value, or fail in strict mode."""
        line = self._line_of(token)
        if self.strict_numbers:
            raise error_malformed_value(key, token.lexeme, expected, token.span, line)
        if expected == "bool":
            self.diagnostics.add(warning_malformed_bool(key, token.lexeme, token.span, line))
            return False
        self.diagnostics.add(warning_malformed_number(key, token.lexeme, token.span, line))
        return 0


def parse(tokens: List[Token], filename: Optional[str] = None, source: Optional[str] = None,
          strict_numbers: bool = False,
          diagnostics: Optional[DiagnosticCollector] = None) -> List[Directive]:
    """
    Convenience function to parse tokens into directives.

    Args:
        tokens: List of tokens from the lexer
        filename: Optional filename for error messages
        source: Optional source text for error messages
        strict_numbers: Fail on malformed numeric/bool values instead of recovering
        diagnostics: Collector receiving recovery warnings

    Returns:
        Directives in source order

    Raises:
        ParserError: If the grammar is violated
    """
    return Parser(tokens, filename, source, strict_numbers, diagnostics).parse()
