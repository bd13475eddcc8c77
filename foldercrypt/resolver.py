"""Candidate file discovery for batch operations."""

import fnmatch
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .errors import InvalidPathError

logger = logging.getLogger(__name__)


def strip_suffix(name: str, suffix: str) -> str:
    """
    Remove ``suffix`` from the end of ``name`` by exact match.

    Raises:
        ValueError: If ``name`` does not end with ``suffix`` or nothing would remain
    """
    if not suffix:
        raise ValueError("suffix must be a non-empty string")
    if not name.endswith(suffix):
        raise ValueError(f"'{name}' does not end with '{suffix}'")
    stripped = name[:-len(suffix)]
    if not stripped:
        raise ValueError(f"'{name}' has no name left after removing '{suffix}'")
    return stripped


def require_directory(directory: Union[str, Path]) -> Path:
    """Return ``directory`` as a Path, or raise InvalidPathError."""
    path = Path(directory)
    if not path.exists():
        raise InvalidPathError(f"Directory does not exist: {path}")
    if not path.is_dir():
        raise InvalidPathError(f"Path is not a directory: {path}")
    return path


class FileSetResolver:
    """
    Lists the files a batch operation should consider.

    Only regular files directly inside the directory are returned, sorted by
    name so repeated runs see the same order.
    """

    def __init__(self, include_hidden: bool = True, exclude_patterns: Optional[Sequence[str]] = None):
        self.include_hidden = include_hidden
        self.exclude_patterns = list(exclude_patterns or [])

    def should_include(self, path: Path) -> bool:
        if not self.include_hidden and path.name.startswith('.'):
            return False
        for pattern in self.exclude_patterns:
            if fnmatch.fnmatch(path.name, pattern):
                return False
        return True

    def resolve(self, directory: Union[str, Path], suffix_filter: Optional[str] = None) -> List[Path]:
        """
        Resolve candidate files in ``directory``.

        Args:
            directory: Directory to list (not recursed into)
            suffix_filter: When given, keep only names ending with it

        Returns:
            Sorted list of file paths

        Raises:
            InvalidPathError: If ``directory`` is missing or not a directory
        """
        base = require_directory(directory)

        files = []
        for entry in sorted(base.iterdir(), key=lambda p: p.name):
            if not entry.is_file():
                continue
            if suffix_filter and not entry.name.endswith(suffix_filter):
                continue
            if not self.should_include(entry):
                logger.debug(f"Excluded by filters: {entry}")
                continue
            files.append(entry)

        logger.debug(f"Resolved {len(files)} files in {base} (suffix filter: {suffix_filter!r})")
        return files


def list_files(directory: Union[str, Path], suffix: str, with_suffix: bool) -> List[Path]:
    """List regular files that do (or do not) end with ``suffix``, sorted by name."""
    base = require_directory(directory)
    return [
        entry for entry in sorted(base.iterdir(), key=lambda p: p.name)
        if entry.is_file() and entry.name.endswith(suffix) == with_suffix
    ]
