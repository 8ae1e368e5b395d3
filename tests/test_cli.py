"""Tests for the upload-storage CLI."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from upload_storage import __version__
from upload_storage.cli.main import app
from upload_storage.config import StorageConfig, get_config_path

runner = CliRunner()


class TestVersionAndConfig:
    """Tests for --version and the config command."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_config_path(self):
        result = runner.invoke(app, ["config", "path"])

        assert result.exit_code == 0
        assert "config.toml" in result.output

    def test_config_show_creates_default(self):
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "Backend:" in result.output
        assert get_config_path().exists()

    def test_config_set(self):
        result = runner.invoke(app, ["config", "set", "dropbox.access_policy", "public_read"])

        assert result.exit_code == 0
        assert StorageConfig.load().dropbox_access_policy == "public_read"

    def test_config_set_invalid_key(self):
        result = runner.invoke(app, ["config", "set", "dropbox.bucket", "x"])

        assert result.exit_code == 1
        assert "Invalid config key" in result.output

    def test_config_get(self):
        runner.invoke(app, ["config", "set", "dropbox.root", "site-uploads"])

        result = runner.invoke(app, ["config", "get", "dropbox.root"])

        assert result.exit_code == 0
        assert "site-uploads" in result.output

    def test_config_get_invalid_key(self):
        result = runner.invoke(app, ["config", "get", "save"])

        assert result.exit_code == 1
        assert "Invalid config key" in result.output

    def test_config_set_method_name_rejected(self):
        result = runner.invoke(app, ["config", "set", "save", "x"])

        assert result.exit_code == 1
        assert "Invalid config key" in result.output

    def test_config_set_missing_value(self):
        result = runner.invoke(app, ["config", "set", "dropbox.root"])
        assert result.exit_code == 1

    def test_config_unknown_action(self):
        result = runner.invoke(app, ["config", "frobnicate"])

        assert result.exit_code == 1
        assert "Unknown action" in result.output


class TestFileCommandsLocal:
    """Tests for put/get/rm/url against the local backend."""

    def test_put_then_get(self, tmp_path, source_file):
        result = runner.invoke(app, ["put", str(source_file), "uploads/a.txt", "-b", "local"])
        assert result.exit_code == 0, result.output
        assert "uploads/a.txt" in result.output

        out = tmp_path / "out.txt"
        result = runner.invoke(app, ["get", "uploads/a.txt", "-o", str(out), "-b", "local"])

        assert result.exit_code == 0, result.output
        assert out.read_bytes() == b"0123456789"

    def test_get_missing(self):
        result = runner.invoke(app, ["get", "nope.txt", "-b", "local"])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_rm(self, source_file):
        runner.invoke(app, ["put", str(source_file), "a.txt", "-b", "local"])

        result = runner.invoke(app, ["rm", "a.txt", "-b", "local"])
        assert result.exit_code == 0
        assert "Deleted a.txt" in result.output

        result = runner.invoke(app, ["rm", "a.txt", "-b", "local"])
        assert result.exit_code == 0
        assert "Nothing to delete" in result.output

    def test_url(self, source_file):
        runner.invoke(app, ["config", "set", "local.base_url", "http://localhost:8000/files"])
        runner.invoke(app, ["put", str(source_file), "a.txt", "-b", "local"])

        result = runner.invoke(app, ["url", "a.txt", "-b", "local"])

        assert result.exit_code == 0
        assert "http://localhost:8000/files/a.txt" in result.output

    def test_unknown_backend(self, source_file):
        result = runner.invoke(app, ["put", str(source_file), "a.txt", "-b", "s3"])

        assert result.exit_code == 1
        assert "Unknown storage backend" in result.output


class TestDropboxCommands:
    """Tests for commands that talk to Dropbox."""

    def test_whoami(self, dropbox_env, mock_dropbox_cls):
        result = runner.invoke(app, ["whoami"])

        assert result.exit_code == 0, result.output
        assert "Ada Lovelace" in result.output
        assert "ada@example.com" in result.output

    def test_whoami_without_credentials(self, mock_dropbox_cls):
        result = runner.invoke(app, ["whoami"])

        assert result.exit_code == 1
        assert "credentials not set" in result.output

    def test_put_to_dropbox(self, dropbox_env, mock_dropbox_cls, fake_dropbox, source_file):
        result = runner.invoke(app, ["put", str(source_file), "uploads/a.txt", "--url"])

        assert result.exit_code == 0, result.output
        assert fake_dropbox.files["/uploads/a.txt"] == b"0123456789"
        assert "dl.dropboxusercontent.com" in result.output

    def test_url_missing_on_dropbox(self, dropbox_env, mock_dropbox_cls):
        result = runner.invoke(app, ["url", "uploads/missing.txt"])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_auth_prints_refresh_token(self, monkeypatch):
        monkeypatch.setenv("UPLOAD_DROPBOX_APP_KEY", "test-app-key")
        flow = MagicMock()
        flow.start.return_value = "https://www.dropbox.com/oauth2/authorize?client_id=test-app-key"
        flow.finish.return_value = SimpleNamespace(
            account_id="dbid:123", refresh_token="rt-xyz", access_token="sl.abc"
        )

        with patch("dropbox.DropboxOAuth2FlowNoRedirect", return_value=flow) as mock_flow:
            result = runner.invoke(app, ["auth"], input="the-code\n")

        assert result.exit_code == 0, result.output
        assert "UPLOAD_DROPBOX_REFRESH_TOKEN=rt-xyz" in result.output
        flow.finish.assert_called_once_with("the-code")
        mock_flow.assert_called_once_with(
            "test-app-key",
            consumer_secret=None,
            token_access_type="offline",
            use_pkce=True,
        )

    def test_auth_without_app_key(self):
        result = runner.invoke(app, ["auth"])

        assert result.exit_code == 1
        assert "UPLOAD_DROPBOX_APP_KEY" in result.output
