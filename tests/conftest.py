"""Shared fixtures for upload-storage tests."""

from types import SimpleNamespace
from unittest.mock import patch

import dropbox
import dropbox.files
import dropbox.sharing
import pytest
from dropbox.exceptions import ApiError


def _not_found(error_cls, tag: str = "path") -> ApiError:
    """ApiError as the SDK raises it for a missing path."""
    error = error_cls(tag, dropbox.files.LookupError("not_found"))
    return ApiError("req-not-found", error, None, None)


class FakeResponse:
    """Minimal requests.Response stand-in for files_download."""

    def __init__(self, content):
        self.content = content
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


class FakeDropbox:
    """In-memory stand-in for dropbox.Dropbox.

    Raises the same ApiError shapes as the real SDK so error translation is
    exercised end to end.
    """

    def __init__(self):
        self.files = {}
        self.shared_links = {}
        self.link_visibility = {}
        self.responses = []
        self.refresh_calls = 0
        self.account_calls = 0

    def check_and_refresh_access_token(self):
        self.refresh_calls += 1

    def users_get_current_account(self):
        self.account_calls += 1
        return SimpleNamespace(
            account_id="dbid:AAH4f99T0taONIb-OurWxbNQ6ywGRopQngc",
            email="ada@example.com",
            name=SimpleNamespace(display_name="Ada Lovelace"),
        )

    def files_upload(self, f, path, mode=None):
        self.files[path] = bytes(f)
        return SimpleNamespace(path_display=path, size=len(f))

    def files_download(self, path):
        if path not in self.files:
            raise _not_found(dropbox.files.DownloadError)
        response = FakeResponse(self.files[path])
        self.responses.append(response)
        return SimpleNamespace(path_display=path), response

    def files_delete_v2(self, path):
        if path not in self.files:
            raise _not_found(dropbox.files.DeleteError, tag="path_lookup")
        del self.files[path]
        return SimpleNamespace(metadata=SimpleNamespace(path_display=path))

    def files_get_temporary_link(self, path):
        if path not in self.files:
            raise _not_found(dropbox.files.GetTemporaryLinkError)
        return SimpleNamespace(link=f"https://dl.dropboxusercontent.com/apitl/1{path}")

    def sharing_create_shared_link_with_settings(self, path, settings=None):
        if path not in self.files:
            raise _not_found(dropbox.sharing.CreateSharedLinkWithSettingsError)
        if path in self.shared_links:
            error = dropbox.sharing.CreateSharedLinkWithSettingsError(
                "shared_link_already_exists", None
            )
            raise ApiError("req-exists", error, None, None)
        link = f"https://www.dropbox.com/scl/fi/abc{path}?dl=0"
        self.shared_links[path] = link
        self.link_visibility[link] = "public"
        return SimpleNamespace(url=link)

    def sharing_list_shared_links(self, path=None, cursor=None, direct_only=None):
        links = []
        if path in self.shared_links:
            url = self.shared_links[path]
            visibility = dropbox.sharing.ResolvedVisibility(self.link_visibility[url], None)
            links.append(
                SimpleNamespace(
                    url=url,
                    link_permissions=SimpleNamespace(resolved_visibility=visibility),
                )
            )
        return SimpleNamespace(links=links)

    def sharing_modify_shared_link_settings(self, url, settings=None, remove_expiration=None):
        self.link_visibility[url] = "public"
        return SimpleNamespace(url=url)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point config at a temp dir and clear UPLOAD_* variables."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "UPLOAD_STORAGE_BACKEND",
        "UPLOAD_DROPBOX_ACCESS_POLICY",
        "UPLOAD_DROPBOX_ROOT",
        "UPLOAD_DROPBOX_APP_KEY",
        "UPLOAD_DROPBOX_APP_SECRET",
        "UPLOAD_DROPBOX_ACCESS_TOKEN",
        "UPLOAD_DROPBOX_REFRESH_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def dropbox_env(monkeypatch):
    """Set refresh-token credentials in the environment."""
    monkeypatch.setenv("UPLOAD_DROPBOX_APP_KEY", "test-app-key")
    monkeypatch.setenv("UPLOAD_DROPBOX_APP_SECRET", "test-app-secret")
    monkeypatch.setenv("UPLOAD_DROPBOX_REFRESH_TOKEN", "test-refresh-token")


@pytest.fixture
def fake_dropbox():
    """Fresh in-memory Dropbox account."""
    return FakeDropbox()


@pytest.fixture
def mock_dropbox_cls(fake_dropbox):
    """Patch dropbox.Dropbox in the backend module to return ``fake_dropbox``."""
    with patch(
        "upload_storage.storage.dropbox.dropbox.Dropbox", return_value=fake_dropbox
    ) as mock_cls:
        yield mock_cls


@pytest.fixture
def source_file(tmp_path):
    """A 10-byte local file."""
    path = tmp_path / "a.txt"
    path.write_bytes(b"0123456789")
    return path
