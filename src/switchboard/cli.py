"""CLI interface for switchboard."""

from __future__ import annotations

import functools
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from switchboard import __version__
from switchboard.config import (
    AUTH_TYPES,
    Paths,
    SyncConfig,
    delete_sync_config,
    load_sync_config,
    save_sync_config,
)
from switchboard.errors import SwitchboardError, ValidationError
from switchboard.models import Provider, mask_api_key
from switchboard.store import ProviderStore
from switchboard.sync import SyncEngine, SyncReport
from switchboard.tools import TOOLS, Tool
from switchboard.transfer import export_config, import_config
from switchboard.webdav import WebDAVClient, normalize_path


def styled(text: str, **kwargs) -> str:
    return click.style(text, **kwargs)


def info(msg: str) -> None:
    click.echo(f"  {msg}")


def success(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='green')}")


def warn(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='yellow')}")


def error(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='red')}")


def heading(msg: str) -> None:
    click.echo(f"\n  {styled(msg, bold=True)}")


def handle_errors(func):
    """Render switchboard errors as one red line and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SwitchboardError as e:
            error(str(e))
            sys.exit(1)

    return wrapper


def format_time(ms: int | None) -> str:
    if not ms:
        return "never"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def show_provider(provider: Provider, active: bool = False) -> None:
    marker = styled("*", fg="green") if active else " "
    info(f"{marker} {styled(provider.name, bold=True)}")
    info(f"    Base URL: {provider.base_url or '(none)'}")
    info(f"    API key:  {mask_api_key(provider.api_key)}")
    if provider.model:
        info(f"    Model:    {provider.model}")
    if provider.desc:
        info(f"    Note:     {provider.desc}")


@click.group()
@click.version_option(version=__version__, prog_name="switchboard")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Switch and sync API provider profiles for AI coding tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["paths"] = Paths.default()


def _store(ctx: click.Context, tool: Tool) -> ProviderStore:
    return ProviderStore(tool, ctx.obj["paths"])


def make_tool_group(tool: Tool) -> click.Group:
    """Build the `<tool> ...` command group for one tool."""
    spec = TOOLS[tool]

    @click.group(name=tool.value, help=f"Manage {spec.display_name} providers.")
    def group() -> None:
        pass

    @group.command("add")
    @click.option("--name", "-n", default=None, help="Provider name.")
    @click.option("--preset", "-p", default=None, help="Take the base URL from a preset.")
    @click.option("--base-url", default=None, help="API base URL.")
    @click.option("--api-key", default=None, help="API key.")
    @click.option("--model", default=None, help="Model name or tool-specific model metadata.")
    @click.option("--desc", default=None, help="Free-form note.")
    @click.option("--use", "use_now", is_flag=True, help="Switch to the new provider.")
    @click.pass_context
    @handle_errors
    def add(ctx, name, preset, base_url, api_key, model, desc, use_now) -> None:
        """Add a provider."""
        store = _store(ctx, tool)
        if preset and base_url is None:
            match = next((p for p in store.list_presets() if p.name == preset.strip()), None)
            if match is None:
                raise ValidationError(f"{tool.value}: preset '{preset}' not found")
            base_url = match.base_url
            if name is None:
                name = match.name
        if name is None:
            name = click.prompt("  Name", type=str)
        if base_url is None:
            base_url = click.prompt("  Base URL", type=str, default="" if spec.allows_empty_base_url else None)
        if api_key is None:
            api_key = click.prompt("  API key", type=str, hide_input=True)

        provider = store.add(name, base_url, api_key, model=model, desc=desc)
        success(f"Added {spec.display_name} provider '{provider.name}'.")
        if use_now:
            store.switch(provider.id)
            success(f"Now using '{provider.name}'.")

    @group.command("list")
    @click.pass_context
    @handle_errors
    def list_cmd(ctx) -> None:
        """List providers (the active one is marked with *)."""
        store = _store(ctx, tool)
        providers = store.list()
        if not providers:
            warn(f"No {spec.display_name} providers. Add one with: switchboard {tool.value} add")
            return
        current = store.current()
        heading(f"{spec.display_name} providers")
        for provider in providers:
            show_provider(provider, active=current is not None and provider.id == current.id)
        click.echo()

    @group.command("use")
    @click.argument("name")
    @click.pass_context
    @handle_errors
    def use(ctx, name) -> None:
        """Switch to a provider and write it to the tool's config."""
        provider = _store(ctx, tool).apply(name)
        success(f"{spec.display_name} now uses '{provider.name}'.")

    @group.command("current")
    @click.pass_context
    @handle_errors
    def current(ctx) -> None:
        """Show the active provider."""
        provider = _store(ctx, tool).current()
        if provider is None:
            warn(f"No active {spec.display_name} provider.")
            return
        show_provider(provider, active=True)
        info(f"    Last used: {format_time(provider.last_used_at)}")

    @group.command("edit")
    @click.argument("name")
    @click.option("--name", "new_name", default=None, help="New name.")
    @click.option("--base-url", default=None)
    @click.option("--api-key", default=None)
    @click.option("--model", default=None, help="Pass an empty string to clear.")
    @click.option("--desc", default=None, help="Pass an empty string to clear.")
    @click.pass_context
    @handle_errors
    def edit(ctx, name, new_name, base_url, api_key, model, desc) -> None:
        """Edit a provider."""
        if all(v is None for v in (new_name, base_url, api_key, model, desc)):
            warn("Nothing to change. Pass at least one option.")
            return
        provider = _store(ctx, tool).update(
            name,
            new_name=new_name,
            base_url=base_url,
            api_key=api_key,
            model=model,
            desc=desc,
        )
        success(f"Updated '{provider.name}'.")

    @group.command("remove")
    @click.argument("name")
    @click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
    @click.pass_context
    @handle_errors
    def remove(ctx, name, yes) -> None:
        """Delete a provider."""
        store = _store(ctx, tool)
        provider = store.get(name)
        if not yes and not click.confirm(f"  Remove '{provider.name}'?", default=False):
            info("Cancelled.")
            return
        store.delete(provider.name)
        success(f"Removed '{provider.name}'.")

    @group.command("clone")
    @click.argument("source")
    @click.argument("new_name")
    @click.option("--base-url", default=None)
    @click.option("--api-key", default=None)
    @click.option("--model", default=None)
    @click.option("--desc", default=None)
    @click.pass_context
    @handle_errors
    def clone(ctx, source, new_name, base_url, api_key, model, desc) -> None:
        """Copy a provider under a new name."""
        overrides = {
            k: v
            for k, v in {"base_url": base_url, "api_key": api_key, "model": model, "desc": desc}.items()
            if v is not None
        }
        provider = _store(ctx, tool).clone(source, new_name, overrides)
        success(f"Cloned '{source}' as '{provider.name}'.")

    @group.group("presets", invoke_without_command=True)
    @click.pass_context
    @handle_errors
    def presets(ctx) -> None:
        """List base URL presets, or manage user presets."""
        if ctx.invoked_subcommand is not None:
            return
        heading(f"{spec.display_name} presets")
        for preset in _store(ctx, tool).list_presets():
            tag = styled(" (built-in)", fg="cyan") if preset.is_built_in else ""
            info(f"{styled(preset.name, bold=True)}{tag}")
            info(f"    {preset.base_url or '(no base URL)'}")
            if preset.description:
                info(f"    {preset.description}")
        click.echo()

    @presets.command("add")
    @click.argument("name")
    @click.argument("base_url")
    @click.option("--description", "-d", default="")
    @click.pass_context
    @handle_errors
    def preset_add(ctx, name, base_url, description) -> None:
        preset = _store(ctx, tool).add_preset(name, base_url, description)
        success(f"Added preset '{preset.name}'.")

    @presets.command("edit")
    @click.argument("name")
    @click.option("--name", "new_name", default=None)
    @click.option("--base-url", default=None)
    @click.option("--description", "-d", default=None)
    @click.pass_context
    @handle_errors
    def preset_edit(ctx, name, new_name, base_url, description) -> None:
        preset = _store(ctx, tool).update_preset(
            name, new_name=new_name, base_url=base_url, description=description
        )
        success(f"Updated preset '{preset.name}'.")

    @presets.command("remove")
    @click.argument("name")
    @click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
    @click.pass_context
    @handle_errors
    def preset_remove(ctx, name, yes) -> None:
        if not yes and not click.confirm(f"  Remove preset '{name}'?", default=False):
            info("Cancelled.")
            return
        _store(ctx, tool).delete_preset(name)
        success(f"Removed preset '{name}'.")

    return group


for _tool in Tool:
    cli.add_command(make_tool_group(_tool))


# -- sync --


@cli.group()
def sync() -> None:
    """Sync providers through a WebDAV server (API keys are encrypted)."""


def _require_sync_config(paths: Paths) -> SyncConfig:
    config = load_sync_config(paths)
    if config is None or not config.webdav_url:
        raise ValidationError("WebDAV sync is not configured. Run: switchboard sync config")
    return config


def _sync_password(config: SyncConfig) -> str:
    if config.sync_password:
        return config.sync_password
    return click.prompt("  Sync password", type=str, hide_input=True)


def _report(report: SyncReport) -> None:
    if report.already_in_sync:
        success("Already in sync. Nothing to do.")
        return
    for name in report.tools_changed:
        info(f"{styled(name, fg='cyan')} synced")
    for item in report.skipped:
        warn(f"Skipped {item}")
    if report.backups:
        info(f"Backed up {len(report.backups)} file(s):")
        for path in report.backups:
            info(f"    {path}")
    success(f"{report.mode.capitalize()} complete.")


def _run_sync(ctx: click.Context, mode: str) -> None:
    paths = ctx.obj["paths"]
    config = _require_sync_config(paths)
    password = _sync_password(config)
    with WebDAVClient(config) as client:
        engine = SyncEngine(paths, client, password)
        report = getattr(engine, mode)()
    _report(report)


@sync.command("config")
@click.option("--url", "webdav_url", default=None, help="WebDAV URL.")
@click.option("--username", default=None)
@click.option("--password", default=None, help="WebDAV password.")
@click.option("--auth-type", type=click.Choice(AUTH_TYPES), default=None)
@click.option("--remote-dir", default=None, help="Remote directory (default /).")
@click.option("--sync-password", default=None, help="Password used to encrypt API keys.")
@click.option("--remember/--no-remember", default=None, help="Store the sync password locally.")
@click.pass_context
@handle_errors
def sync_config(ctx, webdav_url, username, password, auth_type, remote_dir, sync_password, remember) -> None:
    """Configure the WebDAV server and sync password."""
    paths = ctx.obj["paths"]
    existing = load_sync_config(paths)

    if webdav_url is None:
        webdav_url = click.prompt("  WebDAV URL", default=existing.webdav_url if existing else None)
    if username is None:
        username = click.prompt("  Username", default=existing.username if existing else None)
    if password is None:
        if existing and existing.password:
            password = existing.password
        else:
            password = click.prompt("  Password", hide_input=True)
    if auth_type is None:
        auth_type = existing.auth_type if existing else "password"
    if remote_dir is None:
        remote_dir = existing.remote_dir if existing else "/"
    if remember is None:
        remember = existing.remember_sync_password if existing else False
    if sync_password is None and existing:
        sync_password = existing.sync_password

    save_sync_config(
        SyncConfig(
            webdav_url=webdav_url.strip(),
            username=username.strip(),
            password=password,
            auth_type=auth_type,
            remote_dir=normalize_path(remote_dir),
            sync_password=sync_password,
            remember_sync_password=remember,
            last_sync=existing.last_sync if existing else None,
        ),
        paths,
    )
    success(f"Sync settings saved to {paths.config_file}")


@sync.command("status")
@click.pass_context
@handle_errors
def sync_status(ctx) -> None:
    """Show sync settings."""
    config = load_sync_config(ctx.obj["paths"])
    if config is None:
        warn("WebDAV sync is not configured. Run: switchboard sync config")
        return
    heading("Sync settings")
    info(f"WebDAV URL:    {config.webdav_url}")
    info(f"Username:      {config.username}")
    info(f"Password:      {mask_api_key(config.password)}")
    info(f"Auth type:     {config.auth_type}")
    info(f"Remote dir:    {config.remote_dir}")
    remembered = "remembered" if config.remember_sync_password and config.sync_password else "asked each time"
    info(f"Sync password: {remembered}")
    info(f"Last sync:     {format_time(config.last_sync)}")
    click.echo()


@sync.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@handle_errors
def sync_reset(ctx, yes) -> None:
    """Forget the WebDAV settings (remote data is left untouched)."""
    if not yes and not click.confirm("  Remove the saved sync settings?", default=False):
        info("Cancelled.")
        return
    delete_sync_config(ctx.obj["paths"])
    success("Sync settings removed.")


@sync.command("test")
@click.pass_context
@handle_errors
def sync_test(ctx) -> None:
    """Check the WebDAV connection."""
    config = _require_sync_config(ctx.obj["paths"])
    with WebDAVClient(config) as client:
        ok = client.test_connection()
    if ok:
        success(f"Connected to {config.webdav_url}")
    else:
        error(f"Cannot reach {config.webdav_url} (check URL, credentials and auth type)")
        sys.exit(1)


@sync.command("upload")
@click.pass_context
@handle_errors
def sync_upload(ctx) -> None:
    """Overwrite the remote copy with local providers."""
    _run_sync(ctx, "upload")


@sync.command("download")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@handle_errors
def sync_download(ctx, yes) -> None:
    """Overwrite local providers with the remote copy (local files are backed up)."""
    if not yes and not click.confirm("  Replace local providers with the remote copy?", default=False):
        info("Cancelled.")
        return
    _run_sync(ctx, "download")


@sync.command("merge")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@handle_errors
def sync_merge(ctx, yes) -> None:
    """Merge local and remote providers and upload the result."""
    if not yes and not click.confirm("  Merge local and remote providers?", default=True):
        info("Cancelled.")
        return
    _run_sync(ctx, "merge")


# -- export / import --


@cli.command("export")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
@handle_errors
def export_cmd(ctx, directory) -> None:
    """Copy provider stores into DIRECTORY (API keys are NOT encrypted)."""
    result = export_config(ctx.obj["paths"], directory)
    for name in result.files:
        info(f"Exported {styled(name, fg='cyan')}")
    warn("Exported files contain plaintext API keys.")
    success(f"Exported to {result.directory}")


@cli.command("import")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@handle_errors
def import_cmd(ctx, directory, yes) -> None:
    """Replace provider stores with the files in DIRECTORY (current files are backed up)."""
    if not yes and not click.confirm(f"  Import provider stores from {directory}?", default=False):
        info("Cancelled.")
        return
    result = import_config(ctx.obj["paths"], directory)
    for name in result.files:
        info(f"Imported {styled(name, fg='cyan')}")
    for path in result.backups:
        info(f"Backup: {path}")
    success("Import complete.")
