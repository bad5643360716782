"""
Core logic for copyrepo package.
"""

from __future__ import annotations

import os
import stat
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import pathspec
from colorama import Fore, Style

from .tokens import TokenEstimator

# Exceptions
class CopyrepoError(Exception): ...
class InvalidRootError(CopyrepoError): ...
class IgnoreFileError(CopyrepoError): ...
class TraversalError(CopyrepoError): ...
class FileReadError(CopyrepoError): ...
class OutputError(CopyrepoError): ...

# Defaults & constants
REPOIGNORE_NAME = ".repoignore"
GITIGNORE_NAME = ".gitignore"

# Applied ahead of whatever .repoignore says.
ALWAYS_IGNORED: List[str] = [".git", ".DS_Store"]

DEFAULT_PATTERNS: List[str] = [
    ".git",
    ".gitignore",
    ".gitmodules",
    ".repoignore",
    "node_modules",
    "dist",
    "build",
    "out",
    "coverage",
    "__pycache__",
    ".idea",
    ".vscode",
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    ".env",
    ".env.local",
    ".env.*",
    "*.log",
    "*.log.*",
    "npm-debug.log*",
    "yarn-debug.log*",
    "pnpm-debug.log*",
    "*.tmp",
    "*.bak",
    "*~",
    "*.swp",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "*.lock",
    ".cache",
    ".eslintcache",
    ".next",
    ".nuxt",
    ".parcel-cache",
    ".serverless",
    ".history",
    "public/build",
]

BINARY_EXTENSIONS = frozenset(
    {
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".tiff", ".webp",
        # fonts
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
        # audio
        ".mp3", ".wav", ".flac", ".aac", ".ogg", ".m4a",
        # video
        ".mp4", ".avi", ".mov", ".mkv", ".wmv", ".webm", ".flv",
        # archives
        ".zip", ".rar", ".7z", ".tar", ".gz", ".tgz",
        # documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        # compiled
        ".exe", ".dll", ".so", ".bin", ".class", ".jar",
    }
)

SEPARATOR = "-" * 80

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


# Notices
_COLORS = {"info": Fore.GREEN, "warning": Fore.YELLOW, "error": Fore.RED}


def notify(msg: str, level: str = "info") -> None:
    """Print a user-facing notice on stderr."""
    color = _COLORS.get(level, "")
    print(f"{color}[copyrepo] {msg}{Style.RESET_ALL}", file=sys.stderr)


# Ignore-rule engine
class IgnoreMatcher:
    """Compiled, immutable set of gitignore-style rules."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self._patterns: Tuple[str, ...] = tuple(patterns)
        self._spec = pathspec.GitIgnoreSpec.from_lines(self._patterns)

    @property
    def patterns(self) -> Tuple[str, ...]:
        return self._patterns

    def matches(self, rel_path: str, is_dir: bool = False) -> bool:
        """Return True if *rel_path* (relative to the root) is excluded.

        Directories are tested with a trailing slash so that patterns such as
        ``build/`` only apply to them.
        """
        rel = rel_path.replace(os.sep, "/").strip("/")
        if not rel:
            return False
        if is_dir:
            rel += "/"
        return self._spec.match_file(rel)

    def __repr__(self) -> str:
        return f"IgnoreMatcher({list(self._patterns)!r})"


def compile_rules(patterns: Iterable[str]) -> IgnoreMatcher:
    return IgnoreMatcher(list(patterns))


def parse_rules(text: str) -> List[str]:
    """Split raw ignore-file text into patterns, dropping blanks and comments."""
    return [
        ln.rstrip("\r")
        for ln in text.split("\n")
        if ln.strip() and not ln.lstrip().startswith("#")
    ]


# Default-rule provisioning
def _register_in_gitignore(root: Path, verbose: bool = False) -> None:
    gitignore_path = root / GITIGNORE_NAME
    try:
        try:
            content = gitignore_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            gitignore_path.write_text(REPOIGNORE_NAME + "\n", encoding="utf-8")
            notify(f"Created {GITIGNORE_NAME} containing {REPOIGNORE_NAME}.")
            return

        entries = {ln.strip() for ln in content.splitlines()}
        if REPOIGNORE_NAME in entries or "/" + REPOIGNORE_NAME in entries:
            if verbose:
                notify(f"{REPOIGNORE_NAME} already listed in {GITIGNORE_NAME}.")
            return

        if content and not content.endswith("\n"):
            content += "\n"
        content += REPOIGNORE_NAME + "\n"
        gitignore_path.write_text(content, encoding="utf-8")
        notify(f"Added {REPOIGNORE_NAME} to {GITIGNORE_NAME}.")
    except (OSError, UnicodeDecodeError) as e:
        notify(
            f"Could not add {REPOIGNORE_NAME} to {GITIGNORE_NAME}: {e}",
            level="warning",
        )


def ensure_rules(root: Path, strict: bool = False, verbose: bool = False) -> IgnoreMatcher:
    """Load ``.repoignore`` from *root*, creating it from defaults if missing.

    With *strict* a missing file is only reported and the run continues with
    the always-ignored entries; nothing is written.
    """
    repoignore_path = root / REPOIGNORE_NAME
    try:
        text = repoignore_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        text = None
    except (OSError, UnicodeDecodeError) as e:
        raise IgnoreFileError(f"Could not read '{repoignore_path}': {e}") from e

    if text is not None:
        rules = parse_rules(text)
        if verbose:
            notify(f"Loaded {len(rules)} patterns from {REPOIGNORE_NAME}")
        return compile_rules(ALWAYS_IGNORED + rules)

    if strict:
        notify(
            f"No {REPOIGNORE_NAME} file found, no files will be excluded "
            f"beyond {', '.join(ALWAYS_IGNORED)}.",
            level="warning",
        )
        return compile_rules(ALWAYS_IGNORED)

    default_text = "\n".join(DEFAULT_PATTERNS) + "\n"
    try:
        repoignore_path.write_text(default_text, encoding="utf-8")
    except OSError as e:
        raise IgnoreFileError(f"Could not create '{repoignore_path}': {e}") from e
    notify(f"Created {REPOIGNORE_NAME} with default entries.")

    _register_in_gitignore(root, verbose=verbose)
    return compile_rules(ALWAYS_IGNORED + parse_rules(default_text))


# Tree walker
@dataclass(frozen=True)
class FileRecord:
    path: Path
    rel_path: str


def _is_denylisted(name: str) -> bool:
    return Path(name).suffix.lower() in BINARY_EXTENSIONS


def walk(root: Path, matcher: IgnoreMatcher) -> Tuple[List[str], List[FileRecord]]:
    """Walk *root* depth-first and return ``(tree_lines, files)``.

    Siblings are visited in codepoint order of their names. Ignored entries
    get no tree line and ignored directories are not entered.
    """
    tree_lines: List[str] = []
    files: List[FileRecord] = []
    try:
        ancestors = {root.resolve()}
    except (OSError, RuntimeError) as e:
        raise TraversalError(f"Could not resolve '{root}': {e}") from e
    _walk_dir(root, root, "", matcher, tree_lines, files, ancestors)
    return tree_lines, files


def _walk_dir(
    directory: Path,
    root: Path,
    prefix: str,
    matcher: IgnoreMatcher,
    tree_lines: List[str],
    files: List[FileRecord],
    ancestors: Set[Path],
) -> None:
    try:
        names = sorted(p.name for p in directory.iterdir())
    except OSError as e:
        raise TraversalError(f"Could not list directory '{directory}': {e}") from e

    # stat and filter first, so "last" is decided over survivors only
    kept: List[Tuple[str, Path, str, os.stat_result]] = []
    for name in names:
        full = directory / name
        rel = full.relative_to(root).as_posix()
        try:
            st = full.stat()
        except OSError as e:
            if matcher.matches(rel) or matcher.matches(rel, is_dir=True):
                continue
            raise TraversalError(f"Could not stat '{full}': {e}") from e
        if matcher.matches(rel, is_dir=stat.S_ISDIR(st.st_mode)):
            continue
        kept.append((name, full, rel, st))

    for idx, (name, full, rel, st) in enumerate(kept):
        last = idx == len(kept) - 1
        tree_lines.append(prefix + (LAST_BRANCH if last else BRANCH) + name)

        if stat.S_ISDIR(st.st_mode):
            try:
                real = full.resolve()
            except (OSError, RuntimeError) as e:
                raise TraversalError(f"Could not resolve '{full}': {e}") from e
            if real in ancestors:
                continue  # symlink loop
            _walk_dir(
                full,
                root,
                prefix + (SPACE if last else PIPE),
                matcher,
                tree_lines,
                files,
                ancestors | {real},
            )
        elif stat.S_ISREG(st.st_mode) and not _is_denylisted(name):
            files.append(FileRecord(path=full, rel_path=rel))


# Content renderer
def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` or ``\\r\\n``; a final terminator adds no empty line."""
    # unlike a plain split, "foo\nbar\n" is two lines, not two plus an empty third
    lines = text.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return [ln[:-1] if ln.endswith("\r") else ln for ln in lines]


def number_lines(lines: Sequence[str]) -> str:
    width = len(str(len(lines)))
    return "\n".join(
        f"{str(i).rjust(width)} | {line}" for i, line in enumerate(lines, start=1)
    )


def render_file(record: FileRecord) -> str:
    """Return the delimited, line-numbered block for *record*."""
    try:
        raw = record.path.read_bytes()
    except OSError as e:
        raise FileReadError(f"Could not read '{record.rel_path}': {e}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FileReadError(f"'{record.rel_path}' is not valid UTF-8 text: {e}") from e

    body = number_lines(split_lines(text))
    return f"/{record.rel_path}:\n{SEPARATOR}\n{body}\n{SEPARATOR}"


def render_files(records: Sequence[FileRecord], workers: Optional[int] = None) -> List[str]:
    """Render every record concurrently; blocks keep the order of *records*."""
    if not records:
        return []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(render_file, records))


# Orchestration
@dataclass
class OutputDocument:
    text: str
    token_count: int
    tree_lines: List[str] = field(default_factory=list)
    files: List[FileRecord] = field(default_factory=list)


def assemble(tree_lines: Sequence[str], blocks: Sequence[str]) -> str:
    return "\n".join(tree_lines) + "\n\n" + "\n\n".join(blocks)


def resolve_root(root: Optional[Path]) -> Path:
    if root is None:
        raise InvalidRootError("No project folder given")
    try:
        resolved = root.resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}") from e
    if not resolved.exists():
        raise InvalidRootError(f"Root directory '{resolved}' does not exist")
    if not resolved.is_dir():
        raise InvalidRootError(f"Root path '{resolved}' is not a directory")
    return resolved


def build_document(
    root: Optional[Path],
    estimator: TokenEstimator,
    strict: bool = False,
    workers: Optional[int] = None,
    verbose: bool = False,
) -> OutputDocument:
    """Run provision → walk → render → assemble → estimate for *root*."""
    root = resolve_root(root)
    matcher = ensure_rules(root, strict=strict, verbose=verbose)

    t0 = time.perf_counter()
    tree_lines, files = walk(root, matcher)
    if verbose:
        notify(
            f"Scanned {len(tree_lines)} entries, {len(files)} files to render "
            f"({time.perf_counter() - t0:.3f}s)"
        )

    t0 = time.perf_counter()
    blocks = render_files(files, workers=workers)
    text = assemble(tree_lines, blocks)
    if verbose:
        notify(f"Rendered {len(blocks)} blocks, {len(text)} chars ({time.perf_counter() - t0:.3f}s)")

    return OutputDocument(
        text=text,
        token_count=estimator.estimate(text),
        tree_lines=tree_lines,
        files=files,
    )
