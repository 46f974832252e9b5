"""
Include expansion for scene files.

The resolver reads a root scene file, strips its comments, and replaces
every ``Include "path"`` directive with the expanded text of the target,
recursively. Each file's text is bracketed by working-directory markers

    WorkDirBegin "/abs/dir/of/file"
    ...
    WorkDirEnd

so that the engine can resolve relative asset paths (meshes, textures)
against the directory of the file that mentions them.
"""

import gzip
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .comments import strip_comments
from .config import ParseOptions
from .errors import (
    DiagnosticCollector,
    error_file_not_found,
    error_file_unreadable,
    error_include_cycle,
    error_include_depth,
    error_wrong_arguments,
    warning_include_params,
)
from .lexer import Lexer
from .parser import quote
from .tokens import Token, TokenType

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DirectoryStack:
    """
    Stack of directories used to resolve relative file names.

    Lookups search the most recently pushed directory first.
    """

    def __init__(self, dirs: Optional[List[Path]] = None):
        self._dirs: List[Path] = [Path(d) for d in (dirs or [])]

    def push(self, directory: PathLike) -> None:
        self._dirs.append(Path(directory))

    def pop(self) -> Optional[Path]:
        if not self._dirs:
            return None
        return self._dirs.pop()

    @property
    def top(self) -> Optional[Path]:
        return self._dirs[-1] if self._dirs else None

    def copy(self) -> "DirectoryStack":
        return DirectoryStack(list(self._dirs))

    def candidates(self, name: PathLike) -> List[Path]:
        """Paths that a lookup of ``name`` would try, in order."""
        path = Path(name)
        if path.is_absolute():
            return [path]
        return [d / path for d in reversed(self._dirs)]

    def find(self, name: PathLike) -> Optional[Path]:
        """First existing candidate for ``name``, as an absolute path."""
        for candidate in self.candidates(name):
            if candidate.is_file():
                return candidate.resolve()
        return None

    def __len__(self) -> int:
        return len(self._dirs)

    def __iter__(self) -> Iterator[Path]:
        return iter(self._dirs)


def read_scene_file(path: PathLike, encoding: str = "utf-8") -> str:
    """
    Read a scene file, transparently decompressing ``.gz`` files.

    Raises:
        IncludeNotFoundError: If the file does not exist
        IncludeReadError: If the file cannot be read, decompressed or decoded
    """
    path = Path(path)
    try:
        if path.suffix == ".gz":
            with gzip.open(path, "rt", encoding=encoding) as f:
                return f.read()
        return path.read_text(encoding=encoding)
    except FileNotFoundError:
        raise error_file_not_found(str(path))
    except UnicodeDecodeError as e:
        raise error_file_unreadable(str(path), f"not valid {encoding} text ({e.reason})")
    except (OSError, EOFError) as e:
        raise error_file_unreadable(str(path), str(e))


def work_dir_begin(directory: Path) -> str:
    return f"WorkDirBegin {quote(directory.as_posix())}\n"


WORK_DIR_END = "WorkDirEnd\n"


def _skip_parameters(tokens: List[Token], j: int) -> int:
    """Index just past an Include's trailing parameter list."""
    while tokens[j].type == TokenType.STRING:
        j += 1
        if tokens[j].type == TokenType.LBRACKET:
            while tokens[j].type not in (TokenType.RBRACKET, TokenType.EOF):
                j += 1
            if tokens[j].type == TokenType.RBRACKET:
                j += 1
        elif tokens[j].type not in (TokenType.EOF, TokenType.IDENTIFIER):
            j += 1
        elif tokens[j].type == TokenType.IDENTIFIER and tokens[j].value.lower() in ("true", "false"):
            j += 1
    return j


class IncludeResolver:
    """
    Expands Include directives into one flat text stream.

    Usage:
        resolver = IncludeResolver(options)
        text = resolver.resolve("scenes/kitchen.pbrt")
    """

    def __init__(self, options: Optional[ParseOptions] = None,
                 diagnostics: Optional[DiagnosticCollector] = None):
        self.options = options or ParseOptions()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

    def resolve(self, path: PathLike) -> str:
        """
        Return the comment-free, include-expanded text of ``path``.

        Raises:
            IncludeNotFoundError: If the root file or an Include target is missing
            IncludeReadError: If a file cannot be read
            IncludeCycleError: If a file includes itself or nesting is too deep
            LexerError: If a file contains unterminated strings or stray characters
        """
        root = Path(path)
        if not root.is_file():
            raise error_file_not_found(str(path))
        root = root.resolve()

        if self.options.expand_includes:
            body = self._expand(root, DirectoryStack([root.parent]), [root])
        else:
            body = strip_comments(read_scene_file(root, self.options.encoding))
        return work_dir_begin(root.parent) + _terminated(body) + WORK_DIR_END

    def resolve_text(self, text: str, base_dir: Optional[PathLike] = None,
                     filename: Optional[str] = None) -> str:
        """
        Expand Includes in ``text``, resolving them against ``base_dir``.

        Without a base directory the current working directory is used.
        """
        base = Path(base_dir if base_dir is not None else ".").resolve()
        text = strip_comments(text)
        if self.options.expand_includes:
            text = self._expand_text(text, filename, DirectoryStack([base]), [])
        return work_dir_begin(base) + _terminated(text) + WORK_DIR_END

    def _expand(self, path: Path, dirs: DirectoryStack, chain: List[Path]) -> str:
        logger.debug("reading %s", path)
        text = strip_comments(read_scene_file(path, self.options.encoding))
        return self._expand_text(text, str(path), dirs, chain)

    def _expand_text(self, text: str, filename: Optional[str], dirs: DirectoryStack,
                     chain: List[Path]) -> str:
        lexer = Lexer(text, filename)
        tokens = lexer.tokenize()

        out = []
        last = 0
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.type != TokenType.IDENTIFIER or token.value != "Include":
                i += 1
                continue

            line = lexer.get_source_line(token.span.start.line)
            target_token = tokens[i + 1]
            if target_token.type != TokenType.STRING:
                raise error_wrong_arguments("Include", "a quoted file path", token.span, line)

            end = _skip_parameters(tokens, i + 2)
            if end > i + 2:
                self.diagnostics.add(warning_include_params(target_token.value, token.span, line))

            target = dirs.find(target_token.value)
            if target is None:
                raise error_file_not_found(
                    target_token.value, target_token.span,
                    [str(c) for c in dirs.candidates(target_token.value)], line,
                )
            if self.options.detect_include_cycles and target in chain:
                raise error_include_cycle(str(target), target_token.span, line)
            if len(chain) >= self.options.max_include_depth:
                raise error_include_depth(str(target), self.options.max_include_depth,
                                          target_token.span, line)

            logger.debug("including %s from %s", target, filename or "<string>")
            before = text[last:token.span.start.offset]
            out.append(before)
            if before and not before[-1].isspace():
                out.append("\n")

            child_dirs = dirs.copy()
            child_dirs.push(target.parent)
            out.append(work_dir_begin(target.parent))
            out.append(_terminated(self._expand(target, child_dirs, chain + [target])))
            out.append(WORK_DIR_END)

            last = tokens[end - 1].span.end.offset
            i = end

        out.append(text[last:])
        return "".join(out)


def _terminated(text: str) -> str:
    if text and not text.endswith("\n"):
        return text + "\n"
    return text


def resolve_includes(path: PathLike, options: Optional[ParseOptions] = None,
                     diagnostics: Optional[DiagnosticCollector] = None) -> str:
    """Convenience wrapper around IncludeResolver.resolve."""
    return IncludeResolver(options, diagnostics).resolve(path)
