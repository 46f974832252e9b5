"""
Token types for the PBRT scene-description lexer.

The directive language is free-form: whitespace (including newlines) only
separates tokens, and a directive runs until the next directive name.
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Optional


class TokenType(Enum):
    """All token types recognized by the scene lexer."""

    # --- Literals ---
    NUMBER = auto()             # 1, -2.5, 1e-3
    MALFORMED_NUMBER = auto()   # 1.2.3, 4x (recovered by the parameter parser)
    STRING = auto()             # "matte", "float fov"

    # --- Names ---
    IDENTIFIER = auto()         # Shape, WorldBegin, true, StartTime

    # --- Delimiters ---
    LBRACKET = auto()           # [
    RBRACKET = auto()           # ]

    # --- Special ---
    EOF = auto()                # end of input


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source text."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source text."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


# Placeholder span for diagnostics raised outside of any source text
UNKNOWN_SPAN = SourceSpan(SourceLocation(0, 0, 0), SourceLocation(0, 0, 0))


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    value: Any              # float for NUMBER, str otherwise
    lexeme: str             # The original source text
    span: SourceSpan        # Location in source

    def __str__(self) -> str:
        if self.type in (TokenType.NUMBER, TokenType.STRING, TokenType.IDENTIFIER,
                         TokenType.MALFORMED_NUMBER):
            return f"{self.type.name}({self.value!r})"
        return self.type.name

    def describe(self) -> str:
        """Short human-readable description for error messages."""
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type == TokenType.STRING:
            return f'string "{self.value}"'
        return f"'{self.lexeme}'"


# Directive names, in the order they are documented for the file format.
DIRECTIVES = (
    "Identity",
    "Translate",
    "Scale",
    "Rotate",
    "LookAt",
    "CoordinateSystem",
    "CoordSysTransform",
    "Transform",
    "ConcatTransform",
    "TransformTimes",
    "ActiveTransform",
    "Camera",
    "Film",
    "Sampler",
    "Accelerator",
    "Integrator",
    "PixelFilter",
    "MakeNamedMedium",
    "MediumInterface",
    "WorldBegin",
    "WorldEnd",
    "AttributeBegin",
    "AttributeEnd",
    "TransformBegin",
    "TransformEnd",
    "Texture",
    "Material",
    "MakeNamedMaterial",
    "NamedMaterial",
    "LightSource",
    "AreaLightSource",
    "Shape",
    "ReverseOrientation",
    "ObjectBegin",
    "ObjectEnd",
    "ObjectInstance",
    "Include",
    "WorkDirBegin",
    "WorkDirEnd",
)

# Bare keywords accepted after ActiveTransform
ACTIVE_TRANSFORM_KEYWORDS = ("All", "StartTime", "EndTime")

# Bare boolean literals (compared case-insensitively)
BOOL_WORDS = {"true": True, "false": False}


def is_directive(name: str) -> bool:
    """Check if an identifier names a directive."""
    return name in DIRECTIVES
