"""
High-level entry points: read, parse and execute a scene in one call.
"""

import logging
import tarfile
import tempfile
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from ..config import ParseOptions
from ..errors import DiagnosticCollector, error_file_not_found, error_file_unreadable
from ..include import IncludeResolver
from ..lexer import tokenize
from ..parser import Directive, parse
from ..scene.target import Scene, SceneTarget
from .engine import ExecutionEngine
from .target import ParseTarget

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

ARCHIVE_SUFFIXES = (".tar.gz", ".tgz")


def is_archive(path: PathLike) -> bool:
    return str(path).lower().endswith(ARCHIVE_SUFFIXES)


def extract_archive(path: PathLike, dest: Optional[PathLike] = None) -> Path:
    """
    Extract a ``.tar.gz`` scene archive and return its first ``.pbrt`` file.

    Without ``dest`` the archive is extracted into a new temporary
    directory that is left in place, since the scene's assets live there.

    Raises:
        IncludeNotFoundError: If the archive is missing or holds no .pbrt file
        IncludeReadError: If the archive is corrupt or has unsafe member paths
    """
    path = Path(path)
    if not path.is_file():
        raise error_file_not_found(str(path))
    dest = Path(dest) if dest is not None else Path(tempfile.mkdtemp(prefix="pbrtscene-"))
    dest = dest.resolve()
    try:
        with tarfile.open(path, "r:gz") as tar:
            members = tar.getmembers()
            for member in members:
                target = (dest / member.name).resolve()
                if dest not in target.parents and target != dest:
                    raise error_file_unreadable(str(path), f"member '{member.name}' escapes the archive")
                if member.issym() or member.islnk():
                    raise error_file_unreadable(str(path), f"member '{member.name}' is a link")
            tar.extractall(dest, members=members)
    except (tarfile.TarError, OSError, EOFError) as e:
        raise error_file_unreadable(str(path), str(e))

    scenes = sorted(dest.rglob("*.pbrt"))
    if not scenes:
        raise error_file_not_found(f"{path}: no .pbrt file in archive")
    logger.info("extracted %s to %s", path, dest)
    return scenes[0]


def read_directives(path: PathLike, options: Optional[ParseOptions] = None,
                    diagnostics: Optional[DiagnosticCollector] = None) -> Tuple[List[Directive], str]:
    """Resolve includes and parse a scene file, returning (directives, expanded text)."""
    options = options or ParseOptions()
    text = IncludeResolver(options, diagnostics).resolve(path)
    tokens = tokenize(text, str(path))
    directives = parse(tokens, str(path), text, options.strict_numbers, diagnostics)
    return directives, text


def process_scene(path: PathLike, target: ParseTarget,
                  options: Optional[ParseOptions] = None,
                  diagnostics: Optional[DiagnosticCollector] = None) -> Any:
    """
    Read a scene file and drive ``target`` with it.

    Returns whatever ``target.finish()`` returns.

    Raises:
        SceneError: On any hard error; nothing is returned in that case
    """
    options = options or ParseOptions()
    diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
    if is_archive(path):
        path = extract_archive(path)
    path = Path(path)
    directives, text = read_directives(path, options, diagnostics)
    engine = ExecutionEngine(target, options, diagnostics, source=text, filename=str(path))
    return engine.run(directives)


def load_scene(path: PathLike, options: Optional[ParseOptions] = None) -> Scene:
    """
    Load a scene file (``.pbrt``, ``.pbrt.gz`` or a ``.tar.gz`` archive).

    Example:
        scene = load_scene("kitchen/scene.pbrt")
        for node, depth in scene.graph.walk():
            print("  " * depth + node.name)

    Raises:
        SceneError: On any hard error
    """
    diagnostics = DiagnosticCollector()
    scene = process_scene(path, SceneTarget(), options, diagnostics)
    scene.diagnostics = diagnostics
    return scene


def parse_scene_string(text: str, base_dir: Optional[PathLike] = None,
                       options: Optional[ParseOptions] = None,
                       filename: Optional[str] = None) -> Scene:
    """
    Parse scene text held in memory.

    Includes and relative asset paths resolve against ``base_dir``
    (default: the current directory).
    """
    options = options or ParseOptions()
    diagnostics = DiagnosticCollector()
    expanded = IncludeResolver(options, diagnostics).resolve_text(text, base_dir, filename)
    directives = parse(tokenize(expanded, filename), filename, expanded,
                       options.strict_numbers, diagnostics)
    engine = ExecutionEngine(SceneTarget(), options, diagnostics, source=expanded, filename=filename)
    scene = engine.run(directives)
    scene.diagnostics = diagnostics
    return scene
