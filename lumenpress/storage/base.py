"""
Storage adapter contract.

Every backend exposes the same slash-separated, root-relative namespace.
Missing objects are reported as None/False/empty; backend failures raise
StorageUnavailable and are never retried here.
"""
import abc
import posixpath
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from lumenpress.errors import Forbidden


@dataclass(frozen=True)
class FileEntry:
    """One listing entry. `path` is relative to the content root."""
    name: str
    path: str
    is_directory: bool
    size: int = 0
    last_modified: Optional[datetime] = None


def normalize_path(path: str) -> str:
    """
    Canonical root-relative path: no leading/trailing slashes, no empty or '.' segments.

    Raises Forbidden for parent traversal, backslashes or NUL bytes.
    """
    if path is None:
        return ""
    if "\\" in path or "\x00" in path:
        raise Forbidden("Invalid characters in storage path", path=path)
    segments = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            raise Forbidden("Parent traversal is not allowed", path=path)
        segments.append(segment)
    return "/".join(segments)


def parent_path(path: str) -> str:
    parent = posixpath.dirname(normalize_path(path))
    return "" if parent == "." else parent


class StorageAdapter(abc.ABC):
    """Uniform byte/text store over one backend."""

    backend_name = "abstract"

    @abc.abstractmethod
    def get(self, path: str) -> Optional[bytes]:
        """Object bytes, or None when the object does not exist."""

    def get_text(self, path: str, encoding: str = "utf-8") -> Optional[str]:
        """Object decoded as text, or None when the object does not exist."""
        data = self.get(path)
        if data is None:
            return None
        return data.decode(encoding, errors="replace")

    @abc.abstractmethod
    def put(self, path: str, data: Union[bytes, str], content_type: Optional[str] = None) -> bool:
        """Atomically replace the object at `path`. Returns True on success."""

    @abc.abstractmethod
    def exists(self, path: str) -> bool:
        """True if a file or directory exists at `path`."""

    @abc.abstractmethod
    def stat(self, path: str) -> Optional[FileEntry]:
        """Metadata for a single file without reading its body, or None."""

    @abc.abstractmethod
    def list(self, prefix: str) -> List[FileEntry]:
        """Direct children of `prefix`, sorted by name. Missing prefix lists as empty."""

    @abc.abstractmethod
    def create_dir(self, path: str) -> None:
        """Create a directory (a placeholder key on object stores)."""

    @abc.abstractmethod
    def delete_dir(self, path: str) -> None:
        """Recursively delete everything under `path`. Missing is a no-op."""

    @abc.abstractmethod
    def delete(self, path: str) -> None:
        """Delete a single object. Missing is a no-op."""

    @abc.abstractmethod
    def root_exists(self) -> bool:
        """True if the content root itself exists."""

    def describe(self) -> str:
        return self.backend_name
