"""Overview commands: list, status."""

from __future__ import annotations

from typing import Optional

import click

from ._common import CLI_ERRORS, build_manager, console, emit_json, fail, get_config, kb, store_options

from rich.table import Table


def register_status_commands(main: click.Group) -> None:
    """Register list and status on the main group."""

    @main.command("list")
    @store_options
    def list_cmd(
        endpoint: Optional[str],
        workspace: Optional[str],
        agent_name: Optional[str],
        no_json: bool,
    ):
        """List available backups, newest first."""
        try:
            config = get_config(endpoint, workspace, agent_name)
            backups = build_manager(config).list_backups()
        except CLI_ERRORS as exc:
            fail("List", exc)

        if not backups:
            console.print("\n[dim]No backups found.[/]\n")
        else:
            table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
            table.add_column("ID", style="cyan")
            table.add_column("Timestamp", style="dim")
            table.add_column("Files", justify="right")
            table.add_column("Size", justify="right")

            for b in backups:
                when = b.timestamp.isoformat() if b.timestamp else "unknown"
                table.add_row(b.id, when, str(b.file_count), kb(b.total_size))

            console.print(f"\n[bold]{len(backups)}[/] backup(s):\n")
            console.print(table)
            console.print()

        emit_json([b.model_dump(mode="json") for b in backups], no_json)

    @main.command("status")
    @store_options
    def status_cmd(
        endpoint: Optional[str],
        workspace: Optional[str],
        agent_name: Optional[str],
        no_json: bool,
    ):
        """Show local memory files and remote backup count."""
        try:
            config = get_config(endpoint, workspace, agent_name)
            report = build_manager(config).get_status()
        except CLI_ERRORS as exc:
            fail("Status", exc)

        console.print("\n[bold]Backup Status[/]\n")
        console.print("[bold]Local:[/]")
        console.print(f"  Files: {report.local.file_count}")
        console.print(f"  Size: {kb(report.local.total_size)}")
        console.print("\n[bold]Remote:[/]")
        console.print(f"  Backups: {report.remote.backup_count}")
        console.print("\n[bold]Configuration:[/]")
        console.print(f"  Endpoint: {config.endpoint}")
        console.print(f"  Agent: {config.agent_name}")
        console.print(f"  Workspace: {config.workspace_path}")

        emit_json({
            "status": report.model_dump(mode="json"),
            "config": {
                "endpoint": config.endpoint,
                "account": config.account,
                "agent_name": config.agent_name,
                "workspace_dir": str(config.workspace_path),
            },
        }, no_json)
