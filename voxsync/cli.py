"""Command line interface for voxsync."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from typing import Dict, Optional

import typer

from . import __version__
from . import config as config_mod
from .app import VoxSyncApp
from .config import ConfigError
from .models import Config, SyncReport
from .prompts import ConsolePresenter, SilentPresenter
from .storage import Ledger, StorageError
from .sync import SKIPPED_IN_FLIGHT, SKIPPED_UNAUTHENTICATED

app = typer.Typer(add_completion=False, help="Sync transcribed voice notes into a Markdown vault.")


def _load_config() -> Config:
    try:
        return config_mod.load_config()
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _ensure_server_config(cfg: Config) -> None:
    if not cfg.base_url:
        typer.secho(
            "No service configured. Run `voxsync config --base-url https://host` first.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)


def _print_report(report: SyncReport) -> None:
    if report.skipped == SKIPPED_IN_FLIGHT:
        typer.echo("A sync is already running.")
        return
    if report.fetched == 0 and report.ok:
        typer.echo("No new transcriptions.")
        return
    typer.echo(
        f"Fetched {report.fetched}, wrote {len(report.materialized)}, acknowledged {len(report.acknowledged)}."
    )
    for message in report.errors:
        typer.secho(message, fg=typer.colors.RED, err=True)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
) -> None:
    if version:
        typer.echo(f"voxsync v{__version__}")
        raise typer.Exit()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def login() -> None:
    """Log in with your email address and the one-time code sent to it."""

    cfg = _load_config()
    _ensure_server_config(cfg)
    session = VoxSyncApp.from_config(cfg, ConsolePresenter())
    try:
        authenticated = session.login()
    except typer.Abort:
        session.auth.abandon()
        typer.secho("\nLogin cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    if not authenticated:
        raise typer.Exit(code=1)


@app.command()
def sync() -> None:
    """Fetch new transcriptions once and write them into the vault."""

    cfg = _load_config()
    _ensure_server_config(cfg)
    try:
        session = VoxSyncApp.from_config(cfg, SilentPresenter())
    except StorageError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    report = session.sync_now()
    if report.skipped == SKIPPED_UNAUTHENTICATED:
        typer.secho("Not logged in. Run `voxsync login` first.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    _print_report(report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command()
def watch(
    now: bool = typer.Option(True, "--now/--no-now", help="Run a sync immediately before waiting."),
) -> None:  # pragma: no cover - interactive
    """Keep syncing on the configured interval until interrupted."""

    cfg = _load_config()
    _ensure_server_config(cfg)
    session = VoxSyncApp.from_config(cfg, ConsolePresenter())
    try:
        session.load()
    except typer.Abort:
        session.unload()
        typer.secho("\nLogin cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    typer.secho(
        f"Syncing every {cfg.sync_interval:.0f}s into {cfg.vault_path}. Press Ctrl-C to stop.",
        fg=typer.colors.BLUE,
    )
    try:
        if now:
            _print_report(session.sync_now())
        threading.Event().wait()
    except KeyboardInterrupt:
        typer.echo("\nStopping.")
    finally:
        session.unload()


@app.command()
def status() -> None:
    """Show the configured service and login state."""

    cfg = _load_config()
    typer.echo(f"Service: {cfg.base_url or '-'}")
    if cfg.jwt_token:
        typer.secho("Logged in.", fg=typer.colors.GREEN)
    elif cfg.pending_auth_request_id:
        typer.secho("Waiting for the one-time code. Run `voxsync login`.", fg=typer.colors.YELLOW)
    else:
        typer.secho("Not logged in.", fg=typer.colors.YELLOW)
    mode = "separate notes" if cfg.create_separate_notes else f"combined note ({cfg.combined_note_path})"
    typer.echo(f"Vault: {cfg.vault_path} [{mode}]")


@app.command()
def history() -> None:
    """List uploads already written to the vault."""

    try:
        entries = list(Ledger().list_entries())
    except StorageError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    if not entries:
        typer.echo("Nothing synced yet. Use `voxsync sync` to fetch transcriptions.")
        return
    header = f"{'ID':<12}  {'Title':<30}  {'Written':<16}  {'Acknowledged':<16}"
    typer.echo(header)
    typer.echo("-" * len(header))
    for entry in entries:
        written = entry.materialized_at.strftime("%Y-%m-%d %H:%M")
        acked = entry.acknowledged_at.strftime("%Y-%m-%d %H:%M") if entry.acknowledged_at else "pending"
        typer.echo(f"{entry.upload_id:<12}  {entry.title[:30]:<30}  {written:<16}  {acked:<16}")


@app.command()
def config(
    base_url: Optional[str] = typer.Option(None, help="Base URL of the transcription service."),
    separate_notes: Optional[bool] = typer.Option(
        None,
        "--separate-notes/--combined-note",
        help="Write one note per upload, or append everything to a single note.",
    ),
    vault_path: Optional[str] = typer.Option(None, help="Directory notes are written to."),
    combined_note_path: Optional[str] = typer.Option(None, help="Combined note path, relative to the vault."),
    notes_folder: Optional[str] = typer.Option(None, help="Vault sub-folder for separate notes."),
    sync_interval: Optional[float] = typer.Option(None, help="Seconds between scheduled syncs."),
    verify_ssl: Optional[bool] = typer.Option(
        None,
        "--verify-ssl/--no-verify-ssl",
        help="Toggle TLS certificate verification for API calls.",
    ),
    api_timeout: Optional[float] = typer.Option(None, help="HTTP client timeout (seconds) for API calls."),
    show: bool = typer.Option(False, "--show", help="Display the active configuration."),
) -> None:
    """Update or inspect configuration settings."""

    updates: Dict[str, object] = {
        key: value
        for key, value in {
            "base_url": base_url,
            "create_separate_notes": separate_notes,
            "vault_path": vault_path,
            "combined_note_path": combined_note_path,
            "notes_folder": notes_folder,
            "sync_interval": sync_interval,
            "verify_ssl": verify_ssl,
            "api_timeout": api_timeout,
        }.items()
        if value is not None
    }

    if show or not updates:
        data = asdict(_load_config())
        if data.get("jwt_token"):
            data["jwt_token"] = "********"
        typer.echo(json.dumps(data, indent=2, default=str))
        return

    if sync_interval is not None and sync_interval <= 0:
        typer.secho("--sync-interval must be positive.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        config_mod.update_config(**updates)
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.secho("Configuration updated.", fg=typer.colors.BLUE)


if __name__ == "__main__":  # pragma: no cover
    app()
