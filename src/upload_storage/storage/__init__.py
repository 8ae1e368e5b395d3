"""Storage backends for upload-storage."""

from typing import Optional

from upload_storage.config import StorageConfig
from upload_storage.storage.base import (
    AuthenticationError,
    NotFoundError,
    RemoteReadError,
    RemoteWriteError,
    SourceFile,
    Storage,
    StorageError,
    StoredFile,
    Upload,
    Uploader,
)

BACKENDS = ("dropbox", "local")


def get_storage(config: StorageConfig, uploader: Uploader, credentials=None) -> Storage:
    """Get the configured storage backend for an upload.

    Args:
        config: Storage configuration
        uploader: Upload context supplying the target path and content
        credentials: Dropbox credentials (defaults to environment variables)

    Returns:
        Storage backend bound to ``uploader``

    Raises:
        ValueError: If an unknown backend is configured
    """
    if config.backend == "dropbox":
        # Imported here so the local backend works without the Dropbox SDK
        from upload_storage.storage.dropbox import DropboxStorage

        return DropboxStorage(
            uploader,
            credentials=credentials,
            access_policy=config.dropbox_access_policy,
            root=config.dropbox_root,
            timeout=config.dropbox_timeout,
        )
    elif config.backend == "local":
        from upload_storage.storage.local import LocalStorage

        return LocalStorage(uploader, root=config.local_root, base_url=config.local_base_url)
    else:
        raise ValueError(
            f"Unknown storage backend: {config.backend}. "
            f"Supported backends: {', '.join(BACKENDS)}"
        )


__all__ = [
    "AuthenticationError",
    "BACKENDS",
    "NotFoundError",
    "RemoteReadError",
    "RemoteWriteError",
    "SourceFile",
    "Storage",
    "StorageError",
    "StoredFile",
    "Upload",
    "Uploader",
    "get_storage",
]
