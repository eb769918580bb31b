"""
Path/Key Codec: Hierarchical Paths onto Flat Object Keys

Every filesystem path maps to two candidate keys beneath a repository
prefix: the file key (no trailing separator) and the directory key
(trailing separator). The root path maps to the bare repository prefix.

Path Normalization:
-------------------
- duplicate separators collapse
- "." segments are dropped
- ".." pops the previous segment and never climbs above the root

Examples:
    >>> codec = PathKeyCodec("repo")
    >>> codec.to_key("/a/./b//c.txt", is_directory=False)
    'repo/a/b/c.txt'
    >>> codec.to_key("/a/b/", is_directory=True)
    'repo/a/b/'
    >>> codec.to_key("/", is_directory=True)
    'repo/'

Complexity: O(len(path)) for every operation.
"""

from __future__ import annotations

from typing import List

from bucketfs.core.constants import ROOT_PATH, SEPARATOR


def _segments(path: str) -> List[str]:
    out: List[str] = []
    for part in path.split(SEPARATOR):
        if not part or part == ".":
            continue
        if part == "..":
            if out:
                out.pop()
            continue
        out.append(part)
    return out


def normalize_path(path: str) -> str:
    """Absolute, normalized form of a caller path ("/" for the root)."""
    return SEPARATOR + SEPARATOR.join(_segments(path))


def join_paths(*parts: str) -> str:
    """Join path fragments and normalize the result."""
    return normalize_path(SEPARATOR.join(parts))


def parent_path(path: str) -> str:
    """Parent of a path; the root is its own parent."""
    segments = _segments(path)
    return SEPARATOR + SEPARATOR.join(segments[:-1])


def basename(path: str) -> str:
    """Last segment of a path, "" for the root."""
    segments = _segments(path)
    return segments[-1] if segments else ""


class PathKeyCodec:
    """
    Maps (path, is_directory) to object keys beneath one repository.

    The repository must normalize to at least one segment, so the root
    directory key always ends with the separator.
    """

    __slots__ = ("_repository",)

    def __init__(self, repository: str) -> None:
        segments = _segments(repository)
        if not segments:
            raise ValueError(f"repository must name at least one path segment, got {repository!r}")
        self._repository = SEPARATOR.join(segments)

    @property
    def repository(self) -> str:
        return self._repository

    def to_key(self, path: str, is_directory: bool) -> str:
        """Object key for a path. Pure, never fails."""
        segments = _segments(path)
        key = self._repository
        if segments:
            key = key + SEPARATOR + SEPARATOR.join(segments)
        if is_directory:
            key += SEPARATOR
        return key

    def file_key(self, path: str) -> str:
        return self.to_key(path, is_directory=False)

    def directory_key(self, path: str) -> str:
        return self.to_key(path, is_directory=True)

    @property
    def root_key(self) -> str:
        """Directory key of the repository root (the root marker)."""
        return self.to_key(ROOT_PATH, is_directory=True)

    def to_path(self, key: str) -> str:
        """
        Inverse of to_key: the normalized path a key denotes.

        Raises:
            ValueError: If the key lies outside the repository.
        """
        if key == self._repository or key == self._repository + SEPARATOR:
            return ROOT_PATH
        prefix = self._repository + SEPARATOR
        if not key.startswith(prefix):
            raise ValueError(f"key {key!r} is outside repository {self._repository!r}")
        return normalize_path(key[len(prefix):])

    def __repr__(self) -> str:
        return f"PathKeyCodec({self._repository!r})"
