"""Shared utilities for all CLI command modules.

Provides the Rich console instance, the shared store/workspace
options, password resolution, and the machine-readable JSON block.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import click
import requests
from rich.console import Console

from ..backup import BackupError, BackupManager
from ..config import MembaseConfig, load_config
from ..encryption import DecryptionError, PasswordTooWeakError
from ..store import MembaseError, create_store

console = Console()

JSON_START = "---JSON_OUTPUT---"
JSON_END = "---END_JSON---"
PASSWORD_ENV_VAR = "MEMBASE_BACKUP_PASSWORD"
LOCAL_SCHEME = "file://"

# Everything a command reports as a failure and exits 1 on
CLI_ERRORS = (
    BackupError,
    DecryptionError,
    PasswordTooWeakError,
    MembaseError,
    requests.RequestException,
    OSError,
    ValueError,
)


def store_options(func: Callable) -> Callable:
    """Add the --endpoint/--workspace/--agent/--no-json options."""
    options = [
        click.option("--endpoint", default=None, help="Membase Hub URL or file:///path store."),
        click.option("--workspace", default=None, type=click.Path(), help="Workspace directory."),
        click.option("--agent", "agent_name", default=None, help="Agent name (backup namespace)."),
        click.option("--no-json", is_flag=True, help="Suppress the machine-readable JSON block."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def get_config(
    endpoint: Optional[str] = None,
    workspace: Optional[str] = None,
    agent_name: Optional[str] = None,
) -> MembaseConfig:
    """Load config for the current invocation and apply CLI overrides."""
    ctx = click.get_current_context()
    config_path = (ctx.obj or {}).get("config_path")
    config = load_config(config_path)

    updates: dict[str, Any] = {}
    if endpoint:
        updates["endpoint"] = endpoint
    if workspace:
        updates["workspace_dir"] = workspace
    if agent_name:
        updates["agent_name"] = agent_name
    return MembaseConfig(**{**config.model_dump(), **updates}) if updates else config


def require_credentials(config: MembaseConfig) -> None:
    """Exit 1 unless a hub endpoint has an account and secret key.

    ``file://`` stores need no credentials.
    """
    if config.endpoint.startswith(LOCAL_SCHEME) or config.credentials_configured:
        return
    console.print("[red]✗ Membase credentials not configured[/]")
    console.print("  Set MEMBASE_ACCOUNT and MEMBASE_SECRET_KEY environment variables")
    raise SystemExit(1)


def build_manager(config: MembaseConfig) -> BackupManager:
    """Wire a BackupManager from config."""
    require_credentials(config)
    store = create_store(config.endpoint, timeout=config.timeout)
    return BackupManager(store, config.workspace_path, config.agent_name)


def resolve_password(password: Optional[str], confirm: bool = False) -> str:
    """Use the given password or prompt for one.

    Args:
        password: Value from --password or the environment.
        confirm: Ask twice (used when creating a backup).

    Returns:
        str: The password.
    """
    if password:
        return password
    return click.prompt(
        "Enter encryption password" if confirm else "Enter decryption password",
        hide_input=True,
        confirmation_prompt=confirm,
    )


def emit_json(data: Any, no_json: bool = False) -> None:
    """Print the machine-readable result block for agent parsing."""
    if no_json:
        return
    click.echo(f"\n{JSON_START}")
    click.echo(json.dumps(data, indent=2, default=str))
    click.echo(JSON_END)


def fail(action: str, exc: BaseException) -> None:
    """Report a failed command and exit 1."""
    console.print(f"\n[bold red]✗ {action} failed:[/] {exc}")
    raise SystemExit(1)


def kb(size: int) -> str:
    return f"{round(size / 1024)} KB"
