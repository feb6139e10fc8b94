"""CLI entry point for themesync."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from themesync.config import ThemeSyncConfig, load_config
from themesync.config.loader import DEFAULT_CONFIG_TEMPLATE
from themesync.context import RepoContext, build_repo_context
from themesync.github.auth import token_client
from themesync.logs import configure_logging
from themesync.sync.models import RebaseStrategy, SyncPlan, SyncStatus

app = typer.Typer(
    name="themesync",
    help="Keep production, staging and their Shopify mirror branches in sync.",
)

config_app = typer.Typer(help="Manage themesync configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: ThemeSyncConfig | None = None


def _get_config() -> ThemeSyncConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to themesync.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


def _validate_repo_id(repo_id: str) -> tuple[str, str]:
    """Split ``owner/repo``; raises ValueError if the format is invalid."""
    parts = repo_id.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid repo identifier '{repo_id}': expected 'owner/repo'")
    return parts[0], parts[1]


def _repo_context(repo: str, token: str | None, cfg: ThemeSyncConfig) -> RepoContext:
    _validate_repo_id(repo)
    client = token_client(cfg.github, token)
    return build_repo_context(client.get_repo(repo), cfg)


def _display_plan(plan: SyncPlan) -> None:
    table = Table(title=f"{plan.source} -> {plan.destination} ({len(plan.changes)} changes)")
    table.add_column("Action")
    table.add_column("Path", style="cyan")
    table.add_column("Blob", style="dim")
    styles = {"add": "green", "update": "yellow", "delete": "red"}
    for change in plan.changes:
        style = styles[change.action]
        table.add_row(
            f"[{style}]{change.action}[/{style}]",
            change.path,
            change.source_sha[:7] if change.source_sha else "-",
        )
    rprint(table)


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
) -> None:
    """Run the webhook server."""
    import uvicorn

    from themesync.webhook.server import app_from_config

    cfg = _get_config()
    try:
        web_app = app_from_config(cfg)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    rprint(f"[bold]Listening[/bold] on http://{bind_host}:{bind_port}{cfg.server.path}")
    uvicorn.run(web_app, host=bind_host, port=bind_port, log_config=None)


@app.command()
def sync(
    repo: str = typer.Argument(..., help="Repository as owner/repo"),
    source: str = typer.Argument(..., help="Branch to copy files from"),
    destination: str = typer.Argument(..., help="Branch to commit files to"),
    allow_deletes: bool = typer.Option(
        False, "--allow-deletes", help="Delete destination files missing from source"
    ),
    include_json: bool = typer.Option(
        True, "--include-json/--exclude-json", help="Sync JSON files other than the schema"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without writing"),
    token: Annotated[str | None, typer.Option("--token", help="GitHub token")] = None,
) -> None:
    """Sync theme files from one branch to another."""
    cfg = _get_config()
    try:
        ctx = _repo_context(repo, token, cfg)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    scope = cfg.sync.scope(exclude_json=not include_json)
    try:
        if dry_run:
            plan = asyncio.run(ctx.engine.plan(source, destination, scope, allow_deletes))
            rprint("[yellow](dry run: nothing written)[/yellow]\n")
            if plan.is_empty:
                rprint("[green]Already in sync.[/green]")
            else:
                _display_plan(plan)
            return
        result = asyncio.run(ctx.engine.sync_branch(source, destination, scope, allow_deletes))
    except Exception as e:
        rprint(f"[red]Sync failed:[/red] {e}")
        raise typer.Exit(1)

    if result.status is SyncStatus.failed:
        rprint(f"[red]Sync failed:[/red] {result.error}")
        raise typer.Exit(1)
    rprint(Panel(
        f"[dim]Status:[/dim]   {result.status.value}\n"
        f"[dim]Added:[/dim]    {result.added}\n"
        f"[dim]Updated:[/dim]  {result.updated}\n"
        f"[dim]Deleted:[/dim]  {result.deleted}\n"
        f"[dim]Commit:[/dim]   {result.commit_sha or '-'}",
        title=f"{source} -> {destination}",
        border_style="green",
    ))


@app.command()
def rebase(
    repo: str = typer.Argument(..., help="Repository as owner/repo"),
    branch: str = typer.Argument(..., help="Branch to move"),
    onto: str = typer.Argument(..., help="Branch to rebase onto"),
    strategy: Annotated[
        RebaseStrategy | None, typer.Option("--strategy", help="squash or replay")
    ] = None,
    token: Annotated[str | None, typer.Option("--token", help="GitHub token")] = None,
) -> None:
    """Rebase a branch onto the latest commit of another."""
    cfg = _get_config()
    if strategy is not None:
        cfg = cfg.model_copy(
            update={"sync": cfg.sync.model_copy(update={"rebase_strategy": strategy})}
        )
    try:
        ctx = _repo_context(repo, token, cfg)
        result = asyncio.run(ctx.rebaser.rebase_onto_latest(branch, onto))
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        rprint(f"[red]Rebase failed:[/red] {e}")
        raise typer.Exit(1)

    if not result.rebased:
        rprint(f"[yellow]{branch} not rebased[/yellow] (missing or already at {onto}).")
        return
    rprint(
        f"[green]Rebased[/green] {branch} onto {onto}: {result.new_sha} "
        f"({result.strategy.value}, {result.commits_created} commit(s) created)"
    )


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    path: str = typer.Option("themesync.yaml", "--path", help="Where to write the config"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create a default themesync.yaml."""
    target = Path(path)
    if target.exists() and not force:
        rprint(f"[yellow]{target} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
