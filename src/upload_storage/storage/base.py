"""Storage backend contract.

Every backend exposes the same two entry points (``store`` and ``retrieve``)
and hands back file handles with the same capability set, so an upload
pipeline can swap Dropbox for local disk without code changes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol


class StorageError(Exception):
    """Base class for storage backend errors."""

    pass


class AuthenticationError(StorageError):
    """Session could not be created or credentials were rejected."""

    pass


class RemoteWriteError(StorageError):
    """Upload or delete against the backend failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class RemoteReadError(StorageError):
    """Download or URL lookup against the backend failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class NotFoundError(RemoteReadError):
    """No object exists at the requested path."""

    pass


class Readable(Protocol):
    """Anything that can hand over its full byte content."""

    def read(self) -> bytes: ...


class Uploader(Protocol):
    """Upload context consumed by a storage backend.

    Supplies the target path of the current file and its local content.
    """

    def target_path(self) -> str: ...

    def local_content(self) -> bytes: ...


@dataclass(frozen=True)
class SourceFile:
    """A file on local disk that is about to be stored.

    Attributes:
        path: Local filesystem path
    """

    path: Path

    def read(self) -> bytes:
        return Path(self.path).read_bytes()


@dataclass
class Upload:
    """Concrete uploader context.

    Attributes:
        path: Logical key of the object in the backend namespace
        source: Local file providing the content (optional for retrieval)
    """

    path: str
    source: Optional[Path] = None

    def target_path(self) -> str:
        return self.path

    def local_content(self) -> bytes:
        """Read the local source file.

        Raises:
            ValueError: If no source file was given
        """
        if self.source is None:
            raise ValueError(f"Upload for {self.path} has no local source file")
        return Path(self.source).read_bytes()


class StoredFile(ABC):
    """Handle to one object in a storage backend.

    A handle is a reference, not a cache: every operation is a fresh round
    trip to the backend. The path is fixed at construction.
    """

    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        """Logical key identifying the object."""
        return self._path

    @abstractmethod
    def read(self) -> bytes:
        """Fetch the object's contents.

        Raises:
            NotFoundError: If no object exists at the path
            RemoteReadError: If the fetch fails
        """

    @abstractmethod
    def delete(self) -> bool:
        """Remove the object.

        Returns:
            True if an object was removed, False if nothing existed

        Raises:
            RemoteWriteError: If the removal fails
        """

    @abstractmethod
    def url(self) -> str:
        """Get a direct-access URL for the object.

        Raises:
            NotFoundError: If no object exists at the path
            RemoteReadError: If the lookup fails
        """

    @abstractmethod
    def store(self, file: Readable) -> None:
        """Write the full content of ``file`` to the object's path.

        Raises:
            RemoteWriteError: If the write fails
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self._path!r})"


class Storage(ABC):
    """Storage backend bound to one uploader context."""

    def __init__(self, uploader: Uploader):
        self.uploader = uploader

    @abstractmethod
    def store(self, file: Optional[Readable] = None) -> StoredFile:
        """Store ``file`` (or the uploader's local content) at the target path.

        Returns:
            Handle to the stored object
        """

    @abstractmethod
    def retrieve(self) -> StoredFile:
        """Get a handle to the object at the target path without fetching it."""

    @staticmethod
    def _content_of(file: Optional[Readable], uploader: Uploader) -> bytes:
        if file is None:
            return uploader.local_content()
        return file.read()
