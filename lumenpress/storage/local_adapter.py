"""
Local filesystem storage adapter.
Used for development, tests and single-host deployments.
"""
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from lumenpress.errors import ContentRootMissing, Forbidden, StorageUnavailable
from lumenpress.storage.base import FileEntry, StorageAdapter, normalize_path

logger = logging.getLogger(__name__)


def _mtime(stat_result: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)


class LocalStorageAdapter(StorageAdapter):
    """
    Filesystem-backed store rooted at `base_path`.

    Writes go to a hidden temporary file in the target directory and are
    moved into place with os.replace, so readers never see a partial file.
    Dot-files are hidden from listings.
    """

    backend_name = "local"

    def __init__(self, base_path: Union[str, Path]) -> None:
        self.base_path = Path(base_path).expanduser().resolve()

    def _inside_root(self, full: Path) -> bool:
        real = Path(os.path.realpath(full))
        return real == self.base_path or self.base_path in real.parents

    def _resolve(self, path: str) -> Path:
        rel = normalize_path(path)
        full = self.base_path / rel if rel else self.base_path
        if not self._inside_root(full):
            raise Forbidden("Path escapes the content root", path=path)
        return full

    def _unavailable(self, action: str, path: str, e: OSError) -> StorageUnavailable:
        logger.error(f"Local storage {action} failed for '{path}': {str(e)}", exc_info=True)
        return StorageUnavailable(f"Local storage {action} failed: {e.strerror or str(e)}", path=path)

    def get(self, path: str) -> Optional[bytes]:
        full = self._resolve(path)
        try:
            return full.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        except OSError as e:
            raise self._unavailable("read", path, e) from e

    def put(self, path: str, data: Union[bytes, str], content_type: Optional[str] = None) -> bool:
        rel = normalize_path(path)
        if not rel:
            raise Forbidden("Cannot write to the content root itself", path=path)
        if not self.base_path.is_dir():
            raise ContentRootMissing("Content root does not exist", path=str(self.base_path))
        full = self._resolve(rel)
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        tmp_name = None
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=str(full.parent))
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, full)
            tmp_name = None
            return True
        except OSError as e:
            raise self._unavailable("write", path, e) from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).exists()
        except OSError as e:
            raise self._unavailable("stat", path, e) from e

    def stat(self, path: str) -> Optional[FileEntry]:
        rel = normalize_path(path)
        full = self._resolve(rel)
        try:
            st = full.stat()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise self._unavailable("stat", path, e) from e
        if full.is_dir():
            return None
        return FileEntry(
            name=full.name,
            path=rel,
            is_directory=False,
            size=st.st_size,
            last_modified=_mtime(st),
        )

    def list(self, prefix: str) -> List[FileEntry]:
        rel = normalize_path(prefix)
        full = self._resolve(rel)
        if not full.is_dir():
            return []

        entries: List[FileEntry] = []
        try:
            for child in sorted(full.iterdir(), key=lambda p: p.name):
                if child.name.startswith("."):
                    continue
                child_path = f"{rel}/{child.name}" if rel else child.name
                if child.is_symlink() and not self._inside_root(child):
                    logger.warning(f"Skipping '{child_path}': symlink points outside the content root")
                    continue
                try:
                    st = child.stat()
                except FileNotFoundError:
                    # Dangling symlink or file removed mid-listing
                    logger.warning(f"Skipping '{child_path}': file no longer exists")
                    continue
                is_dir = child.is_dir()
                entries.append(FileEntry(
                    name=child.name,
                    path=child_path,
                    is_directory=is_dir,
                    size=0 if is_dir else st.st_size,
                    last_modified=_mtime(st),
                ))
        except FileNotFoundError:
            # Directory removed mid-listing
            return []
        except OSError as e:
            raise self._unavailable("list", prefix, e) from e
        return entries

    def create_dir(self, path: str) -> None:
        if not self.base_path.is_dir():
            raise ContentRootMissing("Content root does not exist", path=str(self.base_path))
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise self._unavailable("mkdir", path, e) from e

    def delete_dir(self, path: str) -> None:
        rel = normalize_path(path)
        if not rel:
            raise Forbidden("Refusing to delete the content root", path=path)
        full = self._resolve(rel)
        try:
            shutil.rmtree(full)
        except FileNotFoundError:
            return
        except OSError as e:
            raise self._unavailable("delete", path, e) from e

    def delete(self, path: str) -> None:
        full = self._resolve(path)
        try:
            full.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise self._unavailable("delete", path, e) from e

    def root_exists(self) -> bool:
        return self.base_path.is_dir()

    def describe(self) -> str:
        return f"local:{self.base_path}"
