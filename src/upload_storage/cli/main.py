"""Main entry point for the upload-storage CLI.

Provides a Typer-based CLI for linking a Dropbox account and moving files
in and out of the configured storage backend.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from upload_storage import __version__
from upload_storage.config import (
    StorageConfig,
    ensure_config_exists,
    get_config_path,
    get_log_dir,
    get_secret,
)
from upload_storage.logging_config import setup_logging
from upload_storage.storage import StorageError, Upload, get_storage

console = Console()

app = typer.Typer(
    name="upload-storage",
    help="Store uploaded files in Dropbox or on local disk",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"upload-storage version {__version__}")
        raise typer.Exit()


def _load_config(backend: Optional[str] = None) -> StorageConfig:
    try:
        cfg = ensure_config_exists()
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1)

    if backend:
        cfg.backend = backend
    return cfg


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


BackendOption = typer.Option(
    None,
    "--backend",
    "-b",
    help="Storage backend to use (overrides config)",
)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log to the terminal as well as the log file",
    ),
) -> None:
    """upload-storage: Store uploaded files in Dropbox or on local disk.

    ## Commands

    * [bold cyan]auth[/bold cyan] - Link a Dropbox account
    * [bold cyan]whoami[/bold cyan] - Show the linked Dropbox account
    * [bold cyan]put[/bold cyan] / [bold cyan]get[/bold cyan] / [bold cyan]rm[/bold cyan] / [bold cyan]url[/bold cyan] - File operations

    ## Getting Started

    1. Link your Dropbox account:
       [dim]$ upload-storage auth[/dim]

    2. Upload a file:
       [dim]$ upload-storage put ./report.pdf uploads/report.pdf[/dim]
    """
    setup_logging(get_log_dir(), verbose=verbose)


@app.command()
def config(
    action: str = typer.Argument(
        ...,
        help="Action to perform (show, get, set, path)",
    ),
    key: str = typer.Argument(
        None,
        help="Configuration key (for get and set actions)",
    ),
    value: str = typer.Argument(
        None,
        help="Configuration value (for set action)",
    ),
) -> None:
    """Manage configuration.

    Examples:
        upload-storage config show
        upload-storage config get dropbox.root
        upload-storage config set dropbox.access_policy public_read
        upload-storage config path
    """
    if action == "show":
        cfg = _load_config()
        console.print(
            Panel.fit(
                f"[cyan]Backend:[/cyan] {cfg.backend}\n"
                f"[cyan]Dropbox Access Policy:[/cyan] {cfg.dropbox_access_policy}\n"
                f"[cyan]Dropbox Root:[/cyan] {cfg.dropbox_root or '[not set]'}\n"
                f"[cyan]Dropbox Timeout:[/cyan] {cfg.dropbox_timeout}s\n"
                f"[cyan]Local Root:[/cyan] {cfg.local_root}\n"
                f"[cyan]Local Base URL:[/cyan] {cfg.local_base_url or '[not set]'}",
                title="Configuration",
                border_style="green",
            )
        )

    elif action == "get":
        if not key:
            _fail("Usage: upload-storage config get <key>")

        cfg = _load_config()
        current = cfg.get(key)
        if current is None:
            _fail(f"Invalid config key: {key}")
        console.print(current)

    elif action == "set":
        if not key or value is None:
            _fail("Usage: upload-storage config set <key> <value>")

        cfg = _load_config()
        try:
            cfg.set(key, value)
        except ValueError as e:
            _fail(str(e))
        cfg.save()
        console.print(f"[green]Set {key} = {value}[/green]")

    elif action == "path":
        console.print(get_config_path())

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print("Valid actions: show, get, set, path")
        raise typer.Exit(1)


@app.command()
def auth() -> None:
    """Link a Dropbox account and print the refresh token to export.

    Requires UPLOAD_DROPBOX_APP_KEY (and UPLOAD_DROPBOX_APP_SECRET unless the
    app uses PKCE).
    """
    import requests
    from dropbox import DropboxOAuth2FlowNoRedirect
    from dropbox.exceptions import DropboxException

    app_key = get_secret("dropbox.app_key")
    app_secret = get_secret("dropbox.app_secret")
    if not app_key:
        _fail("UPLOAD_DROPBOX_APP_KEY is not set")

    flow = DropboxOAuth2FlowNoRedirect(
        app_key,
        consumer_secret=app_secret or None,
        token_access_type="offline",
        use_pkce=not app_secret,
    )

    console.print("1. Go to: [bold]" + flow.start() + "[/bold]")
    console.print('2. Click "Allow" (you might have to log in first).')
    console.print("3. Copy the authorization code.")
    code = typer.prompt("Enter the authorization code").strip()

    try:
        result = flow.finish(code)
    except (DropboxException, requests.exceptions.RequestException) as e:
        _fail(f"Authorization failed: {e}")

    console.print(
        Panel.fit(
            f"[cyan]Account ID:[/cyan] {result.account_id}\n\n"
            f"export UPLOAD_DROPBOX_REFRESH_TOKEN={result.refresh_token}",
            title="Dropbox Linked",
            border_style="green",
        )
    )


@app.command()
def whoami() -> None:
    """Show the Dropbox account the credentials are linked to."""
    from upload_storage.storage.dropbox import DropboxStorage

    cfg = _load_config()
    try:
        storage = DropboxStorage(
            Upload(path=""),
            access_policy=cfg.dropbox_access_policy,
            root=cfg.dropbox_root,
            timeout=cfg.dropbox_timeout,
        )
        info = storage.connect()
    except (StorageError, ValueError) as e:
        _fail(str(e))

    console.print(
        Panel.fit(
            f"[cyan]Name:[/cyan] {info.display_name}\n"
            f"[cyan]Email:[/cyan] {info.email}\n"
            f"[cyan]Account ID:[/cyan] {info.account_id}",
            title="Linked Account",
            border_style="green",
        )
    )


@app.command()
def put(
    source: Path = typer.Argument(..., help="Local file to upload", exists=True, dir_okay=False),
    path: str = typer.Argument(..., help="Destination path in storage"),
    backend: Optional[str] = BackendOption,
    show_url: bool = typer.Option(False, "--url", help="Print the file URL after upload"),
) -> None:
    """Upload a local file."""
    cfg = _load_config(backend)
    try:
        stored = get_storage(cfg, Upload(path=path, source=source)).store()
        url = stored.url() if show_url else None
    except (StorageError, ValueError) as e:
        _fail(str(e))

    console.print(f"[green]Stored {source} at {stored.path}[/green]")
    if url:
        console.print(url)


@app.command()
def get(
    path: str = typer.Argument(..., help="Path in storage"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout"
    ),
    backend: Optional[str] = BackendOption,
) -> None:
    """Download a file."""
    cfg = _load_config(backend)
    try:
        content = get_storage(cfg, Upload(path=path)).retrieve().read()
    except (StorageError, ValueError) as e:
        _fail(str(e))

    if output is None:
        sys.stdout.buffer.write(content)
        sys.stdout.buffer.flush()
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(content)
    console.print(f"[green]Wrote {len(content)} bytes to {output}[/green]")


@app.command()
def rm(
    path: str = typer.Argument(..., help="Path in storage"),
    backend: Optional[str] = BackendOption,
) -> None:
    """Delete a file. Deleting a missing file is not an error."""
    cfg = _load_config(backend)
    try:
        deleted = get_storage(cfg, Upload(path=path)).retrieve().delete()
    except (StorageError, ValueError) as e:
        _fail(str(e))

    if deleted:
        console.print(f"[green]Deleted {path}[/green]")
    else:
        console.print(f"[yellow]Nothing to delete at {path}[/yellow]")


@app.command()
def url(
    path: str = typer.Argument(..., help="Path in storage"),
    backend: Optional[str] = BackendOption,
) -> None:
    """Print a direct-access URL for a file."""
    cfg = _load_config(backend)
    try:
        link = get_storage(cfg, Upload(path=path)).retrieve().url()
    except (StorageError, ValueError) as e:
        _fail(str(e))

    console.print(link, soft_wrap=True)


def cli_entry() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    cli_entry()
