"""Storage backend abstraction over a user-chosen root directory."""
from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List

import orjson

from core.exceptions import CorruptDataError, NoDataError, StorageUnavailableError


class StorageBackend(ABC):
    """Read/write/list access to files addressed by root-relative paths."""

    @abstractmethod
    def read_bytes(self, relative_path: str) -> bytes:
        """Read a file.

        Raises:
            NoDataError: The file does not exist
            StorageUnavailableError: The backend cannot be read right now
        """

    @abstractmethod
    def write_bytes(self, relative_path: str, data: bytes) -> None:
        """Write a file atomically (write-then-swap), never in place.

        Raises:
            StorageUnavailableError: The write did not complete
        """

    @abstractmethod
    def exists(self, relative_path: str) -> bool:
        ...

    @abstractmethod
    def list(self, relative_dir: str = "") -> List[str]:
        """Names of the entries in a directory, empty if it does not exist."""

    @abstractmethod
    def delete(self, relative_path: str) -> bool:
        ...

    def read_json(self, relative_path: str) -> Any:
        """Read and parse a JSON file.

        Raises:
            CorruptDataError: The file is not valid JSON
        """
        raw = self.read_bytes(relative_path)
        if raw.startswith(b"\xef\xbb\xbf"):
            raw = raw[3:]
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CorruptDataError(f"{relative_path} is not valid JSON: {e}") from e

    def write_json(self, relative_path: str, obj: Any, pretty: bool = True) -> None:
        option = orjson.OPT_INDENT_2 if pretty else 0
        self.write_bytes(relative_path, orjson.dumps(obj, option=option))


class LocalStorageBackend(StorageBackend):
    """Filesystem backend rooted at a directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path(self, relative_path: str) -> Path:
        return self.root / relative_path

    def read_bytes(self, relative_path: str) -> bytes:
        target = self.path(relative_path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise NoDataError(f"{relative_path} not found under {self.root}") from e
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {target}: {e}") from e

    def write_bytes(self, relative_path: str, data: bytes) -> None:
        target = self.path(relative_path)
        tmp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write {target}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def exists(self, relative_path: str) -> bool:
        return self.path(relative_path).exists()

    def list(self, relative_dir: str = "") -> List[str]:
        directory = self.path(relative_dir)
        try:
            return sorted(entry.name for entry in directory.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageUnavailableError(f"Cannot list {directory}: {e}") from e

    def delete(self, relative_path: str) -> bool:
        try:
            self.path(relative_path).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageUnavailableError(f"Cannot delete {relative_path}: {e}") from e
