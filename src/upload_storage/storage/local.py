"""Local filesystem storage backend."""

import logging
from pathlib import Path
from typing import Optional

from upload_storage.storage.base import (
    NotFoundError,
    Readable,
    RemoteReadError,
    RemoteWriteError,
    Storage,
    StoredFile,
    Uploader,
)

logger = logging.getLogger(__name__)


class LocalFile(StoredFile):
    """Handle to one file under the storage root."""

    def __init__(self, storage: "LocalStorage", path: str):
        super().__init__(path)
        self.storage = storage

    @property
    def file_path(self) -> Path:
        return self.storage.resolve(self.path)

    def read(self) -> bytes:
        file_path = self.file_path
        if not file_path.exists():
            raise NotFoundError(f"File not found: {self.path}", path=self.path)

        try:
            return file_path.read_bytes()
        except OSError as e:
            raise RemoteReadError(f"Failed to read {self.path}: {e}", path=self.path) from e

    def delete(self) -> bool:
        file_path = self.file_path
        if not file_path.exists():
            return False

        try:
            file_path.unlink()
        except OSError as e:
            raise RemoteWriteError(f"Failed to delete {self.path}: {e}", path=self.path) from e

        logger.info(f"Deleted {file_path}")
        return True

    def url(self) -> str:
        """Base URL plus key when configured, otherwise a file:// URI."""
        file_path = self.file_path
        if not file_path.exists():
            raise NotFoundError(f"File not found: {self.path}", path=self.path)

        if self.storage.base_url:
            return f"{self.storage.base_url}/{self.path.lstrip('/')}"
        return file_path.as_uri()

    def store(self, file: Readable) -> None:
        self.write(file.read())

    def write(self, content: bytes) -> None:
        file_path = self.file_path
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        except OSError as e:
            raise RemoteWriteError(f"Failed to store {self.path}: {e}", path=self.path) from e

        logger.info(f"Stored {len(content)} bytes at {file_path}")


class LocalStorage(Storage):
    """Store files on local disk under a root directory.

    Attributes:
        root: Directory holding stored files
        base_url: URL prefix for serving stored files (optional)
    """

    def __init__(self, uploader: Uploader, root: Path, base_url: str = ""):
        super().__init__(uploader)
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def resolve(self, key: str) -> Path:
        """Map a key to a path under the root.

        Raises:
            ValueError: If the key escapes the root directory
        """
        resolved = (self.root / key.lstrip("/")).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ValueError(f"Invalid storage key: {key}")
        return resolved

    def _file(self) -> LocalFile:
        return LocalFile(self, self.uploader.target_path())

    def store(self, file: Optional[Readable] = None) -> LocalFile:
        f = self._file()
        f.write(self._content_of(file, self.uploader))
        return f

    def retrieve(self) -> LocalFile:
        return self._file()
