"""
PBRT scene-description reader.

This package provides:
- Comment stripping and Include expansion (with gzip support)
- Lexer and parser for the directive language
- Typed parameter lists (Property / PropertyMap)
- An execution engine tracking transforms, attributes, named coordinate
  systems and object instancing
- A scene target building a node graph plus resource maps

Usage:
    from pbrtscene import load_scene, ComponentKind

    scene = load_scene("scenes/cornell-box/scene.pbrt")
    for warning in scene.warnings:
        print(warning.format())

    for node, depth in scene.graph.walk():
        shape = node.get_component(ComponentKind.SHAPE)
        if shape is not None:
            print("  " * depth, node.name, scene.resources.get(shape.shape_id).type)

Lower-level pieces can be used on their own:

    from pbrtscene import tokenize, parse, strip_comments

    directives = parse(tokenize('Shape "sphere" "float radius" [2]'))
    print(directives[0].params.find_one_float("radius"))
"""

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    DIRECTIVES,
)

from .errors import (
    ErrorSeverity,
    Diagnostic,
    DiagnosticCollector,
    SceneError,
    LexerError,
    ParserError,
    IncludeError,
    IncludeNotFoundError,
    IncludeReadError,
    IncludeCycleError,
    StateError,
    PhaseError,
    ScopeError,
    NestingError,
)

from .comments import strip_comments

from .lexer import (
    Lexer,
    tokenize,
)

from .params import (
    Property,
    PropertyKind,
    PropertyMap,
)

from .parser import (
    Directive,
    Parser,
    parse,
)

from .include import (
    DirectoryStack,
    IncludeResolver,
    resolve_includes,
)

from .config import (
    ConfigError,
    ParseOptions,
    load_options,
)

from .xform import (
    ActiveTransform,
    SingularMatrixError,
    Transform,
    TransformSet,
)

from .quaternion import (
    Decomposition,
    Quaternion,
    decompose,
)

from .scene.components import ComponentKind
from .scene.graph import Node, NodeId, SceneGraph
from .scene.resources import (
    LightResource,
    MaterialResource,
    OtherResource,
    ResourceMaps,
    ShapeResource,
    TextureResource,
)
from .scene.target import Scene, SceneTarget

from .runtime.state import Phase, ScopeKind
from .runtime.target import MultiTarget, ParseTarget, StatisticsTarget
from .runtime.engine import ExecutionEngine
from .runtime.loader import load_scene, parse_scene_string, process_scene

__version__ = "0.1.0"

__all__ = [
    # Tokens
    'Token',
    'TokenType',
    'SourceLocation',
    'SourceSpan',
    'DIRECTIVES',

    # Errors
    'ErrorSeverity',
    'Diagnostic',
    'DiagnosticCollector',
    'SceneError',
    'LexerError',
    'ParserError',
    'IncludeError',
    'IncludeNotFoundError',
    'IncludeReadError',
    'IncludeCycleError',
    'StateError',
    'PhaseError',
    'ScopeError',
    'NestingError',

    # Reading
    'strip_comments',
    'Lexer',
    'tokenize',
    'Property',
    'PropertyKind',
    'PropertyMap',
    'Directive',
    'Parser',
    'parse',
    'DirectoryStack',
    'IncludeResolver',
    'resolve_includes',

    # Configuration
    'ConfigError',
    'ParseOptions',
    'load_options',

    # Math
    'ActiveTransform',
    'SingularMatrixError',
    'Transform',
    'TransformSet',
    'Decomposition',
    'Quaternion',
    'decompose',

    # Scene
    'ComponentKind',
    'Node',
    'NodeId',
    'SceneGraph',
    'LightResource',
    'MaterialResource',
    'OtherResource',
    'ResourceMaps',
    'ShapeResource',
    'TextureResource',
    'Scene',
    'SceneTarget',

    # Runtime
    'Phase',
    'ScopeKind',
    'ParseTarget',
    'MultiTarget',
    'StatisticsTarget',
    'ExecutionEngine',
    'load_scene',
    'parse_scene_string',
    'process_scene',
]
