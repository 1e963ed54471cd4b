"""CLI for the cmdrunner MCP server and one-shot tool runs."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
import typer

app = typer.Typer(
    name="cmdrunner-mcp",
    help="cmdrunner MCP Server - guarded ls/git execution over MCP",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _load(config_path: str | None):
    from cmdrunner_mcp.config import load_config

    try:
        return load_config(config_path)
    except ValueError as e:
        err_console.print(f"[red]✗[/] Invalid configuration: {escape(str(e))}")
        raise typer.Exit(2) from None


def _common_args(
    grep: str | None,
    invert_grep: bool,
    head: int | None,
    tail: int | None,
    sort: bool,
    unique: bool,
    order: list[str] | None,
    working_dir: str | None,
    timeout_ms: int | None,
    env: list[str] | None,
) -> dict[str, Any]:
    args: dict[str, Any] = {
        "grep_pattern": grep,
        "invert_grep": invert_grep,
        "head": head,
        "tail": tail,
        "sort": sort,
        "unique": unique,
        "transform_order": order or None,
        "working_dir": working_dir,
        "timeout_ms": timeout_ms,
    }
    if env:
        pairs = {}
        for item in env:
            key, sep, value = item.partition("=")
            if not sep:
                err_console.print(f"[red]✗[/] --env expects KEY=VALUE, got {escape(item)}")
                raise typer.Exit(2)
            pairs[key] = value
        args["env"] = pairs
    return {k: v for k, v in args.items() if v is not None}


def _run(tool: str, args: dict[str, Any], config_path: str | None) -> None:
    from cmdrunner_mcp.tools.request import run_tool
    from cmdrunner_mcp.tools.security import SecurityPolicy

    config = _load(config_path)
    policy = SecurityPolicy.from_paths(config.security.blocked_paths)
    text = run_tool(tool, args, policy, config.tools)

    if text.startswith("Error:"):
        err_console.print(f"[red]✗[/] {escape(text)}", soft_wrap=True)
        raise typer.Exit(1)
    typer.echo(text, nl=not text.endswith("\n"))


GrepOpt = typer.Option(None, "--grep", "-g", help="Keep lines matching this regex")
InvertOpt = typer.Option(False, "--invert-grep", "-v", help="Drop matching lines instead")
HeadOpt = typer.Option(None, "--head", min=0, help="Keep only the first N lines")
TailOpt = typer.Option(None, "--tail", min=0, help="Keep only the last N lines")
SortOpt = typer.Option(False, "--sort", help="Sort lines")
UniqueOpt = typer.Option(False, "--unique", help="Drop consecutive duplicate lines")
OrderOpt = typer.Option(
    None, "--order", help="Transformation order (repeatable): grep, sort, unique, head, tail"
)
WorkdirOpt = typer.Option(None, "--working-dir", "-C", help="Absolute working directory")
TimeoutOpt = typer.Option(None, "--timeout-ms", min=0, help="Command timeout in milliseconds")
EnvOpt = typer.Option(None, "--env", "-e", help="Environment override KEY=VALUE (repeatable)")
ConfigOpt = typer.Option(None, "--config", "-c", help="Path to cmdrunner.toml")


@app.command()
def serve(
    config_path: str | None = ConfigOpt,
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Override log level (debug, info, warning, error)"
    ),
) -> None:
    """Run the MCP server on stdio."""
    from cmdrunner_mcp.config import LOG_LEVELS
    from cmdrunner_mcp.server import serve as run_server

    config = _load(config_path)
    if log_level:
        if log_level.lower() not in LOG_LEVELS:
            err_console.print(f"[red]✗[/] Invalid log level: {escape(log_level)}")
            raise typer.Exit(2)
        config.server.log_level = log_level
        config.observability.log_level = log_level

    if not config.enabled:
        err_console.print("[yellow]![/] Server disabled in config (cmdrunner.enabled = false)")
        raise typer.Exit(1)

    run_server(config)


@app.command()
def ls(
    path: str = typer.Argument(".", help="Path to list"),
    grep: str | None = GrepOpt,
    invert_grep: bool = InvertOpt,
    head: int | None = HeadOpt,
    tail: int | None = TailOpt,
    sort: bool = SortOpt,
    unique: bool = UniqueOpt,
    order: list[str] | None = OrderOpt,
    working_dir: str | None = WorkdirOpt,
    timeout_ms: int | None = TimeoutOpt,
    env: list[str] | None = EnvOpt,
    config_path: str | None = ConfigOpt,
) -> None:
    """List a directory with `ls -al` through the validation pipeline."""
    args = _common_args(
        grep, invert_grep, head, tail, sort, unique, order, working_dir, timeout_ms, env
    )
    args["path"] = path
    _run("ls_tool", args, config_path)


@app.command(context_settings={"ignore_unknown_options": True})
def git(
    subcommand: str = typer.Argument(..., help="status, add, commit or checkout"),
    git_args: list[str] | None = typer.Argument(None, help="Arguments for the subcommand"),
    grep: str | None = GrepOpt,
    invert_grep: bool = InvertOpt,
    head: int | None = HeadOpt,
    tail: int | None = TailOpt,
    sort: bool = SortOpt,
    unique: bool = UniqueOpt,
    order: list[str] | None = OrderOpt,
    working_dir: str | None = WorkdirOpt,
    timeout_ms: int | None = TimeoutOpt,
    env: list[str] | None = EnvOpt,
    config_path: str | None = ConfigOpt,
) -> None:
    """Run an allow-listed git subcommand."""
    args = _common_args(
        grep, invert_grep, head, tail, sort, unique, order, working_dir, timeout_ms, env
    )
    args["subcommand"] = subcommand
    args["args"] = list(git_args or [])
    _run("git", args, config_path)


@app.command(name="show-config")
def show_config(config_path: str | None = ConfigOpt) -> None:
    """Print the effective configuration (TOML merged with environment)."""
    config = _load(config_path)

    table = Table(title="cmdrunner configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("enabled", str(config.enabled))
    table.add_row("config_version", config.config_version)
    table.add_row("server.transport", config.server.transport)
    table.add_row("server.log_level", config.server.log_level)
    table.add_row(
        "security.blocked_paths",
        escape(", ".join(config.security.blocked_paths) or "(none)"),
    )
    table.add_row("tools.default_timeout_ms", str(config.tools.default_timeout_ms))
    table.add_row(
        "tools.max_timeout_ms",
        str(config.tools.max_timeout_ms) if config.tools.max_timeout_ms else "0 (no cap)",
    )
    table.add_row("tools.ls_executable", config.tools.ls_executable)
    table.add_row("tools.git_executable", config.tools.git_executable)
    table.add_row("observability.log_format", config.observability.log_format)
    table.add_row("observability.log_level", config.observability.log_level)
    table.add_row(
        "observability.include_correlation_id", str(config.observability.include_correlation_id)
    )
    console.print(table)


def main() -> None:
    """Entry point for cmdrunner-mcp CLI."""
    app()


if __name__ == "__main__":
    main()
