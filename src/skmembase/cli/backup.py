"""Backup commands: backup, restore, diff, cleanup."""

from __future__ import annotations

from typing import Optional

import click

from ._common import (
    CLI_ERRORS,
    PASSWORD_ENV_VAR,
    build_manager,
    console,
    emit_json,
    fail,
    get_config,
    kb,
    resolve_password,
    store_options,
)
from ..encryption import validate_password

from rich.panel import Panel


def register_backup_commands(main: click.Group) -> None:
    """Register backup, restore, diff and cleanup on the main group."""

    @main.command("backup")
    @click.option("-p", "--password", envvar=PASSWORD_ENV_VAR, default=None, help="Encryption password.")
    @click.option("-i", "--incremental", is_flag=True, help="Only back up files changed since the last backup.")
    @click.option("--no-validate", is_flag=True, help="Skip password strength validation.")
    @store_options
    def backup_cmd(
        password: Optional[str],
        incremental: bool,
        no_validate: bool,
        endpoint: Optional[str],
        workspace: Optional[str],
        agent_name: Optional[str],
        no_json: bool,
    ):
        """Back up local memories to Membase (encrypted).

        Examples:

            skmembase backup

            skmembase backup --incremental -p "$MEMBASE_BACKUP_PASSWORD"
        """
        password = resolve_password(password, confirm=True)

        if not no_validate:
            try:
                validate_password(password)
            except ValueError as exc:
                console.print(f"[red]✗ {exc}[/]")
                console.print("  Use --no-validate to skip password strength check")
                raise SystemExit(1)

        try:
            config = get_config(endpoint, workspace, agent_name)
            manager = build_manager(config)
            console.print("\n[cyan]Scanning memory files...[/]")
            result = manager.backup(password, incremental=incremental)
        except CLI_ERRORS as exc:
            fail("Backup", exc)

        lines = [
            "[bold green]Backup completed[/]" if result.created
            else "[bold yellow]No files changed since last backup[/]",
            f"Backup ID: {result.backup_id}",
            f"Files: {result.file_count}",
        ]
        if result.incremental and result.skipped_files:
            lines.append(f"Skipped: {result.skipped_files} unchanged files")
        lines.append(f"Size: {kb(result.total_size)}")
        lines.append(f"Timestamp: {result.timestamp.isoformat()}")
        if result.incremental:
            lines.append("Type: Incremental")

        console.print(Panel("\n".join(lines), title="Backup", border_style="green"))
        console.print("[yellow]Save your backup ID and password securely![/]")
        emit_json(result.model_dump(mode="json"), no_json)

    @main.command("restore")
    @click.argument("backup_id")
    @click.option("-p", "--password", envvar=PASSWORD_ENV_VAR, default=None, help="Decryption password.")
    @store_options
    def restore_cmd(
        backup_id: str,
        password: Optional[str],
        endpoint: Optional[str],
        workspace: Optional[str],
        agent_name: Optional[str],
        no_json: bool,
    ):
        """Restore memories from a Membase backup.

        Examples:

            skmembase restore backup-2026-02-01T09-02-38-381Z
        """
        password = resolve_password(password)

        try:
            config = get_config(endpoint, workspace, agent_name)
            manager = build_manager(config)
            console.print(f"\n[cyan]Downloading backup {backup_id}...[/]")
            result = manager.restore(backup_id, password)
        except CLI_ERRORS as exc:
            fail("Restore", exc)

        console.print(Panel(
            f"[bold green]Restore completed[/]\n"
            f"Files restored: {result.file_count}\n"
            f"Total size: {kb(result.total_size)}\n"
            f"Agent: {result.agent_name}\n"
            f"Backup date: {result.timestamp}\n"
            f"Location: [cyan]{config.workspace_path}[/]",
            title="Restore",
            border_style="green",
        ))
        emit_json(result.model_dump(mode="json"), no_json)

    @main.command("diff")
    @click.argument("backup_id1")
    @click.argument("backup_id2")
    @click.option("-p", "--password", envvar=PASSWORD_ENV_VAR, default=None, help="Decryption password.")
    @store_options
    def diff_cmd(
        backup_id1: str,
        backup_id2: str,
        password: Optional[str],
        endpoint: Optional[str],
        workspace: Optional[str],
        agent_name: Optional[str],
        no_json: bool,
    ):
        """Compare the contents of two backups.

        Examples:

            skmembase diff backup-2026-02-01T09-02-38-381Z backup-2026-02-02T10-00-00-000Z
        """
        password = resolve_password(password)

        try:
            config = get_config(endpoint, workspace, agent_name)
            manager = build_manager(config)
            diff = manager.diff_backups(backup_id1, backup_id2, password)
        except CLI_ERRORS as exc:
            fail("Diff", exc)

        console.print(f"\n[bold]Comparing backups:[/]\n  {backup_id1}\n  {backup_id2}\n")

        if diff.added:
            console.print(f"[green]Added files ({len(diff.added)}):[/]")
            for path in diff.added:
                console.print(f"  [green]+ {path}[/]")
        if diff.removed:
            console.print(f"[red]Removed files ({len(diff.removed)}):[/]")
            for path in diff.removed:
                console.print(f"  [red]- {path}[/]")
        if diff.modified:
            console.print(f"[yellow]Modified files ({len(diff.modified)}):[/]")
            for path in diff.modified:
                console.print(f"  [yellow]~ {path}[/]")
        if diff.unreadable:
            console.print("[yellow]Could not decrypt any file in:[/]")
            for backup_id in diff.unreadable:
                console.print(f"  [yellow]{backup_id}[/]")
            console.print("  Check the password.")
        elif not diff.has_changes:
            console.print("[dim]No differences found.[/]")

        emit_json(diff.to_dict(), no_json)

    @main.command("cleanup")
    @click.option("--keep-last", default=10, type=click.IntRange(min=0), show_default=True, help="Keep the newest N backups.")
    @click.option("--dry-run", is_flag=True, help="Only show what would be deleted.")
    @store_options
    def cleanup_cmd(
        keep_last: int,
        dry_run: bool,
        endpoint: Optional[str],
        workspace: Optional[str],
        agent_name: Optional[str],
        no_json: bool,
    ):
        """Report old backups beyond --keep-last.

        Membase Hub has no delete API, so nothing is ever deleted.
        Remove old backups through the Hub UI instead.
        """
        try:
            config = get_config(endpoint, workspace, agent_name)
            manager = build_manager(config)
            plan = manager.plan_cleanup(keep_last)
        except CLI_ERRORS as exc:
            fail("Cleanup", exc)

        if not plan.candidates:
            console.print(
                f"\n[dim]Only {plan.total} backups exist (keeping last {keep_last}). "
                f"Nothing to clean up.[/]"
            )
        else:
            console.print(
                f"\nFound {plan.total} backups, keeping the newest {keep_last}."
            )
            console.print(f"\nBackups to delete ({len(plan.candidates)}):\n")
            for summary in plan.candidates:
                when = summary.timestamp.isoformat() if summary.timestamp else "unknown"
                console.print(f"  - {summary.id} ({when})")

            if dry_run:
                console.print("\n[dim](Dry run - no backups deleted)[/]")
            else:
                console.print("\n[yellow]Membase does not support deleting backups.[/]")
                console.print("   Please clean up manually via the Membase Hub UI.")
                if config.account:
                    console.print(f"   URL: {config.endpoint}/account/{config.account}")

        payload = plan.model_dump(mode="json")
        payload["dry_run"] = dry_run
        emit_json(payload, no_json)
