"""Read-only filesystem access bounded to a single project root."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, List, Optional

from .config import DEFAULT_MAX_DEPTH, DEFAULT_MAX_FILE_BYTES
from .errors import NotFound, ReadError
from .logging import get_logger

_EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "node_modules",
        "vendor",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".idea",
    }
)

# Manifests, build-tool configs, entry points and docs that anchor indicators.
KEY_FILES = frozenset(
    {
        "package.json",
        "composer.json",
        ".env",
        ".env.example",
        "artisan",
        "webpack.config.js",
        "vite.config.js",
        "vite.config.ts",
        "vue.config.js",
        "angular.json",
        "tailwind.config.js",
        "tsconfig.json",
        "web.php",
        "api.php",
        "app.js",
        "main.js",
        "main.ts",
        "index.js",
        "index.html",
        "App.vue",
        "App.jsx",
        "App.tsx",
        "README.md",
        "CHANGELOG.md",
    }
)

_LOGGER = get_logger("probe")


@dataclass(frozen=True)
class Entry:
    """A single file or directory produced by a directory listing."""

    name: str
    path: str
    kind: str
    size: int
    extension: str
    depth: int

    @property
    def is_dir(self) -> bool:
        return self.kind == "directory"


class DirectoryListing:
    """Lazy, restartable, depth-bounded view of a directory tree.

    Every call to ``iter()`` walks the tree again. Entries are produced in
    sorted name order, parents before their children. Immediate children of
    the listed directory have depth 1; nothing deeper than ``max_depth`` is
    produced and symlinked directories are never descended into.
    """

    def __init__(
        self,
        root: Path,
        start: Optional[Path],
        max_depth: int,
        excluded: FrozenSet[str],
    ) -> None:
        self._root = root
        self._start = start
        self._max_depth = max_depth
        self._excluded = excluded

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def __iter__(self) -> Iterator[Entry]:
        if self._start is None or not self._start.is_dir():
            return iter(())
        return self._walk(self._start, 1)

    def _walk(self, directory: Path, depth: int) -> Iterator[Entry]:
        if depth > self._max_depth:
            return
        try:
            with os.scandir(directory) as handle:
                children = sorted(handle, key=lambda item: item.name)
        except OSError as exc:
            _LOGGER.debug("Skipping unreadable directory %s: %s", directory, exc)
            return

        for child in children:
            try:
                is_dir = child.is_dir()
                is_link = child.is_symlink()
                size = 0 if is_dir else child.stat(follow_symlinks=False).st_size
            except OSError as exc:
                _LOGGER.debug("Skipping unreadable entry %s: %s", child.path, exc)
                continue

            if is_dir and child.name in self._excluded:
                continue

            child_path = Path(child.path)
            yield Entry(
                name=child.name,
                path=child_path.relative_to(self._root).as_posix(),
                kind="directory" if is_dir else "file",
                size=size,
                extension="" if is_dir else child_path.suffix,
                depth=depth,
            )
            if is_dir and not is_link:
                yield from self._walk(child_path, depth + 1)


class FileSystemProbe:
    """Read-only access to files below a single project root."""

    def __init__(
        self,
        root: str | Path,
        *,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        exclude_dirs: Iterable[str] = (),
        key_files: Iterable[str] = (),
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.max_file_bytes = max_file_bytes
        self._excluded = _EXCLUDED_DIRS.union(name.strip("/") for name in exclude_dirs)
        self._key_files = KEY_FILES.union(key_files)

    def root_exists(self) -> bool:
        return self.root.is_dir()

    def path_exists(self, path: str) -> bool:
        """Return True when ``path`` exists below the root; never raises."""
        try:
            target = self._resolve(path)
            return target is not None and target.exists()
        except (OSError, ValueError):
            return False

    def read_file(self, path: str) -> str:
        """Return the text content of ``path``.

        Raises ``NotFound`` for missing files and ``ReadError`` for files that
        exist but cannot be read as UTF-8 text within the size limit.
        """
        try:
            target = self._resolve(path)
        except (OSError, ValueError) as exc:
            raise NotFound(path, f"Invalid path {path!r}: {exc}") from exc
        if target is None or not target.is_file():
            raise NotFound(path, f"File not found: {path}")

        try:
            size = target.stat().st_size
            if size > self.max_file_bytes:
                raise ReadError(path, f"{path} exceeds {self.max_file_bytes} bytes")
            return target.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFound(path, f"File not found: {path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadError(path, f"Failed to read {path}: {exc}") from exc

    def list_directory(self, path: str = ".", max_depth: int = DEFAULT_MAX_DEPTH) -> DirectoryListing:
        """Return a depth-bounded listing of ``path``; empty when it is missing."""
        try:
            start = self._resolve(path)
        except (OSError, ValueError):
            start = None
        return DirectoryListing(self.root, start, max(max_depth, 0), self._excluded)

    def key_files(self, max_depth: int = DEFAULT_MAX_DEPTH) -> List[Entry]:
        """Return files on the key-file allow-list within ``max_depth``."""
        return [
            entry
            for entry in self.list_directory(".", max_depth)
            if not entry.is_dir and entry.name in self._key_files
        ]

    def _resolve(self, path: str) -> Optional[Path]:
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        return candidate


__all__ = ["DirectoryListing", "Entry", "FileSystemProbe", "KEY_FILES"]
