from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List


class StorageBackend(ABC):
    """
    Abstract interface for file storage (Local, S3, GCS, etc.).
    """

    @abstractmethod
    def write_bytes(self, path: str, data: bytes) -> None:
        pass

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        pass

    @abstractmethod
    def list_files(self, prefix: str, suffix: str = "", recursive: bool = False) -> List[str]:
        """List file paths under prefix ending with suffix."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Delete a file. Returns False if it did not exist."""
        pass


class LocalFileSystemStorage(StorageBackend):
    """
    Local filesystem implementation rooted at one directory.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        # Prevent path traversal
        full_path = (self.root / path).resolve()
        if full_path != self.root and self.root not in full_path.parents:
            raise ValueError(f"Access denied: {path}")
        return full_path

    def write_bytes(self, path: str, data: bytes) -> None:
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def read_bytes(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def list_files(self, prefix: str, suffix: str = "", recursive: bool = False) -> List[str]:
        # Prefix is treated as a directory in local fs terms
        p = self._resolve(prefix)
        if not p.is_dir():
            return []

        # Return relative paths as strings, sorted for stable listings
        return sorted(
            f.relative_to(self.root).as_posix()
            for f in (p.rglob if recursive else p.glob)(f"*{suffix}")
            if f.is_file()
        )

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def delete(self, path: str) -> bool:
        p = self._resolve(path)
        if not p.is_file():
            return False
        p.unlink()
        return True
