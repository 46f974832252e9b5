"""
Scene-description exceptions and diagnostics.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors (grammar, parameter lists)
- E2xx: Include / file-system errors
- E3xx: State errors (phase violations, illegal nesting)
- Wxxx: Recoverable warnings, collected and logged
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
from .tokens import SourceSpan, UNKNOWN_SPAN

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Diagnostic:
    """A single diagnostic message (error or warning)."""
    code: str                       # E001, W301, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: SourceSpan = UNKNOWN_SPAN
    source_line: Optional[str] = None   # The actual line of source text
    hints: List[str] = field(default_factory=list)

    @property
    def has_location(self) -> bool:
        return self.span.start.line > 0

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        header = f"{self.severity.value}[{self.code}]: {self.message}"
        if self.has_location:
            header = f"{self.span.start}: {header}"
        parts.append(header)

        if show_source and self.source_line is not None and self.has_location:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            if self.span.start.line == self.span.end.line:
                end_col = self.span.end.column
            else:
                end_col = len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            },
            "file": self.span.start.filename,
            "hints": self.hints,
        }


class SceneError(Exception):
    """Base exception for scene-description errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    @property
    def code(self) -> str:
        return self.diagnostic.code

    def __str__(self) -> str:
        return self.diagnostic.format()


class LexerError(SceneError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(SceneError):
    """Error in the directive grammar or a parameter list (E1xx)."""
    pass


class IncludeError(SceneError):
    """Error while reading scene files (E2xx)."""
    pass


class IncludeNotFoundError(IncludeError, FileNotFoundError):
    """A scene file or Include target does not exist (E201)."""
    pass


class IncludeReadError(IncludeError):
    """A scene file exists but cannot be read or decoded (E202)."""
    pass


class IncludeCycleError(IncludeError):
    """A file includes itself, directly or indirectly (E203, E204)."""
    pass


class StateError(SceneError):
    """Directive is illegal in the current engine state (E3xx)."""
    pass


class PhaseError(StateError):
    """Directive used in the wrong block (E301, E302)."""
    pass


class ScopeError(StateError):
    """Unbalanced Attribute/Transform/Object scopes (E304, E305)."""
    pass


class NestingError(StateError):
    """Illegal nesting of object definitions (E303, E306)."""
    pass


def _error(cls, code: str, message: str, span: SourceSpan,
           source_line: Optional[str] = None, hints: Optional[List[str]] = None):
    diag = Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=hints or [],
    )
    return cls(diag)


def _warning(code: str, message: str, span: SourceSpan,
             source_line: Optional[str] = None, hints: Optional[List[str]] = None) -> Diagnostic:
    return Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.WARNING,
        span=span,
        source_line=source_line,
        hints=hints or [],
    )


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E001: Unexpected character."""
    return _error(LexerError, "E001", f"unexpected character '{char}'", span, source_line)


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexerError:
    """E002: Unterminated string literal."""
    return _error(LexerError, "E002", "unterminated string literal", span, source_line,
                  ["string literals must be closed with a matching '\"'"])


# --- Parser error codes ---

def error_unexpected_token(expected: str, found: str, span: SourceSpan,
                           source_line: str = None) -> ParserError:
    """E101: Unexpected token."""
    return _error(ParserError, "E101", f"expected {expected}, found {found}", span, source_line)


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParserError:
    """E102: Unexpected end of input."""
    return _error(ParserError, "E102", f"unexpected end of input, expected {expected}", span)


def error_unknown_directive(name: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E103: Unknown directive name."""
    return _error(ParserError, "E103", f"unknown directive '{name}'", span, source_line)


def error_wrong_arguments(directive: str, expected: str, span: SourceSpan,
                          source_line: str = None) -> ParserError:
    """E104: Directive given the wrong number or kind of arguments."""
    return _error(ParserError, "E104", f"{directive} requires {expected}", span, source_line)


def error_duplicate_parameter(key: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E105: Same parameter declared twice in one directive."""
    return _error(ParserError, "E105", f"parameter '{key}' declared more than once", span, source_line)


def error_empty_parameter_list(key: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E106: Parameter given an empty value list."""
    return _error(ParserError, "E106", f"parameter '{key}' has no values", span, source_line)


def error_bad_declaration(text: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E107: Parameter declaration is not '<type> <name>'."""
    return _error(ParserError, "E107", f"malformed parameter declaration \"{text}\"", span, source_line,
                  ["parameter declarations look like \"float radius\""])


def error_malformed_value(key: str, text: str, expected: str, span: SourceSpan,
                          source_line: str = None) -> ParserError:
    """E108: Malformed value token in strict mode."""
    return _error(ParserError, "E108", f"malformed {expected} '{text}' in parameter '{key}'",
                  span, source_line)


# --- Include / file errors ---

def error_file_not_found(path: str, span: SourceSpan = UNKNOWN_SPAN,
                         searched: Optional[List[str]] = None,
                         source_line: str = None) -> IncludeNotFoundError:
    """E201: Scene file or Include target not found."""
    hints = [f"searched: {d}" for d in searched] if searched else []
    return _error(IncludeNotFoundError, "E201", f"file not found: '{path}'", span, source_line, hints)


def error_file_unreadable(path: str, reason: str, span: SourceSpan = UNKNOWN_SPAN,
                          source_line: str = None) -> IncludeReadError:
    """E202: Scene file cannot be read or decoded."""
    return _error(IncludeReadError, "E202", f"cannot read '{path}': {reason}", span, source_line)


def error_include_cycle(path: str, span: SourceSpan = UNKNOWN_SPAN,
                        source_line: str = None) -> IncludeCycleError:
    """E203: File includes itself."""
    return _error(IncludeCycleError, "E203", f"include cycle: '{path}' is already being included",
                  span, source_line)


def error_include_depth(path: str, depth: int, span: SourceSpan = UNKNOWN_SPAN,
                        source_line: str = None) -> IncludeCycleError:
    """E204: Include nesting too deep."""
    return _error(IncludeCycleError, "E204", f"include depth exceeds {depth} at '{path}'",
                  span, source_line)


# --- State error codes ---

def error_wrong_phase(directive: str, phase: str, span: SourceSpan,
                      source_line: str = None) -> PhaseError:
    """E301: Directive not allowed in the current block."""
    return _error(PhaseError, "E301", f"{directive} is not allowed {phase}", span, source_line)


def error_world_begun(span: SourceSpan, source_line: str = None) -> PhaseError:
    """E302: WorldBegin seen twice."""
    return _error(PhaseError, "E302", "WorldBegin may appear only once", span, source_line)


def error_nested_object(name: str, outer: str, span: SourceSpan,
                        source_line: str = None) -> NestingError:
    """E303: ObjectBegin inside another object definition."""
    return _error(NestingError, "E303",
                  f"ObjectBegin \"{name}\" inside definition of \"{outer}\"", span, source_line,
                  ["object definitions cannot be nested"])


def error_unmatched_end(directive: str, span: SourceSpan, source_line: str = None) -> ScopeError:
    """E304: End directive without a matching Begin."""
    return _error(ScopeError, "E304", f"unmatched {directive}", span, source_line)


def error_mismatched_end(directive: str, expected: str, span: SourceSpan,
                         source_line: str = None) -> ScopeError:
    """E305: End directive closes a different kind of scope."""
    return _error(ScopeError, "E305", f"{directive} closes a scope opened by {expected}",
                  span, source_line)


def error_instance_in_object(name: str, span: SourceSpan, source_line: str = None) -> NestingError:
    """E306: ObjectInstance inside an object definition."""
    return _error(NestingError, "E306",
                  f"ObjectInstance \"{name}\" cannot be used inside an object definition",
                  span, source_line)


# --- Warnings ---

def warning_malformed_number(key: str, text: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W101: Malformed numeric token replaced with zero."""
    return _warning("W101", f"malformed number '{text}' in parameter '{key}', using 0",
                    span, source_line)


def warning_malformed_bool(key: str, text: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W102: Malformed boolean replaced with false."""
    return _warning("W102", f"malformed bool '{text}' in parameter '{key}', using false",
                    span, source_line)


def warning_include_params(path: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W212: Parameters after an Include path are ignored."""
    return _warning("W212", f"parameters after Include \"{path}\" are ignored", span, source_line)


def warning_unknown_type(kind: str, name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W301-W303: Unknown shape, light or material type."""
    code = {"shape": "W301", "light": "W302", "material": "W303"}.get(kind, "W300")
    return _warning(code, f"{kind} type \"{name}\" is not supported, ignoring", span, source_line)


def warning_undefined_coordinate_system(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W304: CoordSysTransform names an unknown coordinate system."""
    return _warning("W304", f"coordinate system \"{name}\" is not defined", span, source_line)


def warning_undefined_material(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W305: NamedMaterial names an unknown material."""
    return _warning("W305", f"named material \"{name}\" is not defined", span, source_line)


def warning_material_without_type(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W306: MakeNamedMaterial without a "string type" parameter."""
    return _warning("W306", f"named material \"{name}\" has no \"string type\" parameter, ignoring",
                    span, source_line)


def warning_file_not_found(path: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W307: Referenced asset file not found."""
    return _warning("W307", f"referenced file \"{path}\" not found", span, source_line)


def warning_degenerate_transform(directive: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W308: Singular matrix, transform skipped."""
    return _warning("W308", f"{directive} produces a singular matrix, ignoring", span, source_line)


def warning_animated_area_light(span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W309: Area light attached to an animated shape."""
    return _warning("W309", "area lights are not supported on animated shapes, ignoring the light",
                    span, source_line)


def warning_material_redefined(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W310: Named material redefined."""
    return _warning("W310", f"named material \"{name}\" redefined", span, source_line)


def warning_texture_redefined(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W311: Texture redefined."""
    return _warning("W311", f"texture \"{name}\" redefined", span, source_line)


def warning_object_redefined(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W312: Object definition redefined."""
    return _warning("W312", f"object \"{name}\" redefined", span, source_line)


def warning_undefined_object(name: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W313: ObjectInstance names an unknown object."""
    return _warning("W313", f"object \"{name}\" is not defined", span, source_line)


def warning_no_world(span: SourceSpan = UNKNOWN_SPAN) -> Diagnostic:
    """W314: Input ended without WorldBegin."""
    return _warning("W314", "scene has no WorldBegin", span)


def warning_include_not_expanded(path: str, span: SourceSpan, source_line: str = None) -> Diagnostic:
    """W315: Include left in the stream with expansion disabled."""
    return _warning("W315", f"Include \"{path}\" was not expanded, ignoring", span, source_line)


def warning_unclosed_scopes(count: int, span: SourceSpan = UNKNOWN_SPAN) -> Diagnostic:
    """W316: Scopes still open at end of input."""
    return _warning("W316", f"{count} scope(s) still open at end of input", span)


class DiagnosticCollector:
    """Collects diagnostics while a scene is read, logging each one."""

    def __init__(self):
        self.diagnostics: List[Diagnostic] = []
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == ErrorSeverity.ERROR:
            self._error_count += 1
            logger.error("%s", diagnostic.format(show_source=False))
        elif diagnostic.severity == ErrorSeverity.WARNING:
            logger.warning("%s", diagnostic.format(show_source=False))
        else:
            logger.info("%s", diagnostic.format(show_source=False))

    def add_error(self, error: SceneError) -> None:
        """Add an error exception as a diagnostic."""
        self.add(error.diagnostic)

    def extend(self, other: "DiagnosticCollector") -> None:
        """Append diagnostics already collected (and logged) elsewhere."""
        for diag in other.diagnostics:
            self.diagnostics.append(diag)
            if diag.severity == ErrorSeverity.ERROR:
                self._error_count += 1

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == ErrorSeverity.WARNING]

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == ErrorSeverity.WARNING)

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def has_warnings(self) -> bool:
        return self.warning_count > 0

    def codes(self) -> List[str]:
        """Codes of all collected diagnostics, in order."""
        return [d.code for d in self.diagnostics]

    def format_all(self, show_source: bool = True) -> str:
        """Format all diagnostics for display."""
        parts = [d.format(show_source) for d in self.diagnostics]
        if self._error_count > 0:
            parts.append(f"\n{self._error_count} error(s), {self.warning_count} warning(s)")
        elif self.warning_count > 0:
            parts.append(f"\n{self.warning_count} warning(s)")
        return "\n\n".join(parts)

    def to_json(self) -> dict:
        """Convert all diagnostics to JSON format."""
        return {
            "diagnostics": [d.to_json() for d in self.diagnostics],
            "error_count": self._error_count,
            "warning_count": self.warning_count,
        }

    def __len__(self) -> int:
        return len(self.diagnostics)
