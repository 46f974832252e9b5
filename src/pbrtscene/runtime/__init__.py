"""
Directive execution: engine state, targets and loading entry points.
"""

from .state import (
    Phase,
    ScopeKind,
    GraphicsState,
    RenderOptions,
    RenderSetting,
    ShapeStatement,
    ObjectDefinition,
)
from .target import ParseTarget, MultiTarget, StatisticsTarget
from .engine import ExecutionEngine

__all__ = [
    'Phase',
    'ScopeKind',
    'GraphicsState',
    'RenderOptions',
    'RenderSetting',
    'ShapeStatement',
    'ObjectDefinition',
    'ParseTarget',
    'MultiTarget',
    'StatisticsTarget',
    'ExecutionEngine',
]
