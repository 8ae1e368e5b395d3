"""Dropbox storage backend.

Stores uploads in a Dropbox account through the official Dropbox SDK.
Credentials are read from environment variables so they never appear in
config files:
    UPLOAD_DROPBOX_APP_KEY
    UPLOAD_DROPBOX_APP_SECRET
    UPLOAD_DROPBOX_ACCESS_TOKEN
    UPLOAD_DROPBOX_REFRESH_TOKEN

Either an access token or a refresh token plus app key is required. With a
refresh token the SDK exchanges it for a short-lived access token when the
session is created.

The access policy controls the URLs handed out for stored files:

    private       Temporary direct link, expires after four hours
    public_read   Public shared link, readable from a browser with no login
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

try:
    import dropbox
except ImportError as e:
    raise ImportError(
        "The Dropbox backend requires the 'dropbox' package. "
        "Install it with: pip install dropbox"
    ) from e

import requests
from dropbox.exceptions import ApiError, AuthError, DropboxException
from dropbox.files import WriteMode
from dropbox.sharing import RequestedVisibility, SharedLinkSettings

from upload_storage.config import get_secret
from upload_storage.storage.base import (
    AuthenticationError,
    NotFoundError,
    Readable,
    RemoteReadError,
    RemoteWriteError,
    Storage,
    StoredFile,
    Uploader,
)

logger = logging.getLogger(__name__)

ACCESS_POLICIES = ("private", "public_read")

# Transport failures surface from requests, SDK failures from DropboxException
REMOTE_ERRORS = (DropboxException, requests.exceptions.RequestException)


@dataclass
class DropboxCredentials:
    """Dropbox API credentials.

    Attributes:
        app_key: App key (consumer key)
        app_secret: App secret (consumer secret)
        access_token: Long- or short-lived OAuth2 access token
        refresh_token: OAuth2 refresh token for offline access
    """

    app_key: str = ""
    app_secret: str = ""
    access_token: str = ""
    refresh_token: str = ""

    @classmethod
    def from_env(cls) -> "DropboxCredentials":
        """Read credentials from UPLOAD_DROPBOX_* environment variables."""
        return cls(
            app_key=get_secret("dropbox.app_key") or "",
            app_secret=get_secret("dropbox.app_secret") or "",
            access_token=get_secret("dropbox.access_token") or "",
            refresh_token=get_secret("dropbox.refresh_token") or "",
        )

    @property
    def is_configured(self) -> bool:
        """Whether enough is set to open a session."""
        return bool(self.access_token or (self.refresh_token and self.app_key))


@dataclass
class AccountInfo:
    """Identity of the linked Dropbox account.

    Attributes:
        account_id: Dropbox account ID
        email: Account email address
        display_name: Account holder's display name
    """

    account_id: str
    email: str
    display_name: str


def _is_not_found(lookup) -> bool:
    return lookup is not None and lookup.is_not_found()


class DropboxFile(StoredFile):
    """Handle to one object in Dropbox.

    Attributes:
        storage: Owning DropboxStorage, used for client access
    """

    def __init__(self, storage: "DropboxStorage", path: str):
        super().__init__(path)
        self.storage = storage

    @property
    def remote_path(self) -> str:
        """Absolute Dropbox path including the configured root."""
        return self.storage.remote_path(self.path)

    def client(self) -> dropbox.Dropbox:
        return self.storage.client()

    def _write_client(self) -> dropbox.Dropbox:
        # Writes report every session failure as RemoteWriteError
        try:
            return self.client()
        except RemoteReadError as e:
            raise RemoteWriteError(
                f"Dropbox session unavailable for {self.path}: {e}", path=self.path
            ) from e

    def read(self) -> bytes:
        """Download the file from Dropbox.

        Returns:
            File contents

        Raises:
            NotFoundError: If no file exists at the path
            RemoteReadError: If the download fails
        """
        client = self.client()
        try:
            _, response = client.files_download(self.remote_path)
        except AuthError as e:
            raise AuthenticationError(f"Dropbox rejected credentials: {e}") from e
        except ApiError as e:
            if e.error.is_path() and _is_not_found(e.error.get_path()):
                raise NotFoundError(f"File not found: {self.path}", path=self.path) from e
            raise RemoteReadError(f"Failed to read {self.path}: {e}", path=self.path) from e
        except REMOTE_ERRORS as e:
            raise RemoteReadError(f"Failed to read {self.path}: {e}", path=self.path) from e

        with response:
            return response.content

    def delete(self) -> bool:
        """Remove the file from Dropbox.

        Deleting a file that does not exist is not an error.

        Returns:
            True if deleted, False if not found

        Raises:
            RemoteWriteError: If the deletion fails
        """
        try:
            client = self._write_client()
            client.files_delete_v2(self.remote_path)
        except AuthError as e:
            raise AuthenticationError(f"Dropbox rejected credentials: {e}") from e
        except ApiError as e:
            if e.error.is_path_lookup() and _is_not_found(e.error.get_path_lookup()):
                logger.debug(f"Nothing to delete at {self.remote_path}")
                return False
            raise RemoteWriteError(f"Failed to delete {self.path}: {e}", path=self.path) from e
        except REMOTE_ERRORS as e:
            raise RemoteWriteError(f"Failed to delete {self.path}: {e}", path=self.path) from e

        logger.info(f"Deleted {self.remote_path}")
        return True

    def url(self) -> str:
        """Get a direct-access URL for the file.

        Private files get a temporary link; public_read files get a public
        shared link, reusing one that already exists.

        Returns:
            URL as returned by Dropbox

        Raises:
            NotFoundError: If no file exists at the path
            RemoteReadError: If the lookup fails
        """
        client = self.client()
        try:
            if self.storage.access_policy == "public_read":
                return self._shared_link(client)
            return client.files_get_temporary_link(self.remote_path).link
        except AuthError as e:
            raise AuthenticationError(f"Dropbox rejected credentials: {e}") from e
        except ApiError as e:
            if e.error.is_path() and _is_not_found(e.error.get_path()):
                raise NotFoundError(f"File not found: {self.path}", path=self.path) from e
            raise RemoteReadError(
                f"Failed to get URL for {self.path}: {e}", path=self.path
            ) from e
        except REMOTE_ERRORS as e:
            raise RemoteReadError(
                f"Failed to get URL for {self.path}: {e}", path=self.path
            ) from e

    def _shared_link(self, client: dropbox.Dropbox) -> str:
        settings = SharedLinkSettings(requested_visibility=RequestedVisibility.public)
        try:
            link = client.sharing_create_shared_link_with_settings(
                self.remote_path, settings=settings
            )
            return link.url
        except ApiError as e:
            if not e.error.is_shared_link_already_exists():
                raise
            existing = client.sharing_list_shared_links(
                path=self.remote_path, direct_only=True
            ).links
            if not existing:
                raise
            return self._make_public(client, existing[0], settings)

    def _make_public(self, client: dropbox.Dropbox, link, settings: SharedLinkSettings) -> str:
        """Return the URL of an existing shared link, widening it to public if needed."""
        permissions = getattr(link, "link_permissions", None)
        visibility = getattr(permissions, "resolved_visibility", None)
        if visibility is not None and visibility.is_public():
            return link.url

        logger.info(f"Widening existing shared link for {self.remote_path} to public")
        return client.sharing_modify_shared_link_settings(link.url, settings=settings).url

    def store(self, file: Readable) -> None:
        """Upload the full content of ``file``, replacing any existing file."""
        self.write(file.read())

    def write(self, content: bytes) -> None:
        """Upload ``content`` in a single request.

        Raises:
            RemoteWriteError: If the upload fails
        """
        try:
            client = self._write_client()
            client.files_upload(content, self.remote_path, mode=WriteMode.overwrite)
        except AuthError as e:
            raise AuthenticationError(f"Dropbox rejected credentials: {e}") from e
        except REMOTE_ERRORS as e:
            raise RemoteWriteError(f"Failed to store {self.path}: {e}", path=self.path) from e

        logger.info(f"Stored {len(content)} bytes at {self.remote_path}")


class DropboxStorage(Storage):
    """Storage backend for a Dropbox account.

    The Dropbox session is created lazily on first use and cached for the
    lifetime of the backend. Call ``connect()`` to create and validate it up
    front instead.

    Attributes:
        uploader: Upload context supplying the target path and content
        credentials: Dropbox API credentials
        access_policy: "private" or "public_read"
        root: Folder prefixed to every logical path
        timeout: Network timeout in seconds passed to the SDK
    """

    def __init__(
        self,
        uploader: Uploader,
        credentials: Optional[DropboxCredentials] = None,
        access_policy: str = "private",
        root: str = "",
        timeout: float = 100.0,
    ):
        """Initialize the Dropbox backend.

        Args:
            uploader: Upload context
            credentials: API credentials (defaults to environment variables)
            access_policy: URL policy for stored files
            root: Folder prefixed to every logical path
            timeout: Network timeout in seconds

        Raises:
            ValueError: If the access policy is unknown
        """
        super().__init__(uploader)
        if access_policy not in ACCESS_POLICIES:
            raise ValueError(
                f"Unknown access policy: {access_policy}. "
                f"Supported policies: {', '.join(ACCESS_POLICIES)}"
            )
        self.credentials = credentials if credentials is not None else DropboxCredentials.from_env()
        self.access_policy = access_policy
        self.root = root.strip("/")
        self.timeout = timeout

        self._session: Optional[dropbox.Dropbox] = None
        self._validated = False
        self._lock = threading.Lock()

    def remote_path(self, path: str) -> str:
        """Map a logical path to an absolute Dropbox path."""
        parts = [p for p in (self.root, path.strip("/")) if p]
        return "/" + "/".join(parts)

    def _file(self) -> DropboxFile:
        return DropboxFile(self, self.uploader.target_path())

    def store(self, file: Optional[Readable] = None) -> DropboxFile:
        """Upload a file to the uploader's target path.

        Args:
            file: Content source (defaults to the uploader's local content)

        Returns:
            Handle to the stored file

        Raises:
            RemoteWriteError: If the upload fails
        """
        f = self._file()
        f.write(self._content_of(file, self.uploader))
        return f

    def retrieve(self) -> DropboxFile:
        """Get a handle to the file at the uploader's target path."""
        return self._file()

    def session(self) -> dropbox.Dropbox:
        """Get the Dropbox session, creating it on first call.

        Raises:
            AuthenticationError: If no credentials are configured or the
                token exchange is rejected
        """
        if self._session is not None:
            return self._session

        with self._lock:
            if self._session is None:
                self._session = self._new_session()
        return self._session

    def _new_session(self) -> dropbox.Dropbox:
        creds = self.credentials
        if not creds.is_configured:
            raise AuthenticationError(
                "Dropbox credentials not set. Set UPLOAD_DROPBOX_ACCESS_TOKEN, or "
                "UPLOAD_DROPBOX_REFRESH_TOKEN and UPLOAD_DROPBOX_APP_KEY."
            )

        # The SDK refuses a refresh token without the app key it was issued to
        refresh_token = creds.refresh_token if creds.app_key else ""

        session = dropbox.Dropbox(
            oauth2_access_token=creds.access_token or None,
            oauth2_refresh_token=refresh_token or None,
            app_key=creds.app_key or None,
            app_secret=creds.app_secret or None,
            max_retries_on_error=0,
            timeout=self.timeout,
        )

        try:
            session.check_and_refresh_access_token()
        except REMOTE_ERRORS as e:
            raise AuthenticationError(f"Dropbox token exchange failed: {e}") from e

        logger.info("Opened Dropbox session")
        return session

    def validate_session(self) -> AccountInfo:
        """Fetch the linked account to prove the session works.

        Returns:
            Identity of the linked account

        Raises:
            AuthenticationError: If the credentials are rejected
            RemoteReadError: If the request fails
        """
        session = self.session()
        try:
            account = session.users_get_current_account()
        except AuthError as e:
            raise AuthenticationError(f"Dropbox rejected credentials: {e}") from e
        except REMOTE_ERRORS as e:
            raise RemoteReadError(f"Failed to fetch linked account: {e}") from e

        info = AccountInfo(
            account_id=account.account_id,
            email=account.email,
            display_name=account.name.display_name,
        )
        self._validated = True
        logger.info(f"Linked account: {info.display_name} <{info.email}>")
        return info

    def client(self) -> dropbox.Dropbox:
        """Get a session that has been validated against the account API."""
        session = self.session()
        if not self._validated:
            self.validate_session()
        return session

    def connect(self) -> AccountInfo:
        """Create and validate the session now rather than on first use."""
        self.session()
        return self.validate_session()

    def set_access_token(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Replace the OAuth2 tokens and drop the cached session.

        Args:
            access_token: New access token
            refresh_token: New refresh token (keeps the current one if None)
        """
        self.credentials.access_token = access_token
        if refresh_token is not None:
            self.credentials.refresh_token = refresh_token
        self.invalidate()

    def invalidate(self) -> None:
        """Forget the cached session so the next call opens a new one."""
        with self._lock:
            self._session = None
            self._validated = False
