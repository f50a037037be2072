"""
CLI entry point for claimai.
"""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from claimai import __version__
from claimai.core.context import CallerContext
from claimai.models.config import ConfigError, load_config

console = Console()
console_err = Console(stderr=True)


def _build_orchestrator(ctx: click.Context):
    from claimai.core.orchestrator import create_orchestrator

    if "orchestrator" not in ctx.obj:
        try:
            config = load_config(ctx.obj.get("config_path"))
            ctx.obj["orchestrator"] = create_orchestrator(config)
        except ConfigError as e:
            console_err.print(f"[red]{e}[/red]")
            sys.exit(1)
    return ctx.obj["orchestrator"]


def _print_turn(result) -> None:
    console.print(Markdown(result.response))
    if result.ui_resource is not None:
        console.print(f"[dim]Interactive resource: {result.ui_resource.uri}[/dim]")


# =============================================================================
# Root CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="claimai")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Configuration file (default: $CLAIMAI_CONFIG or ./claimai.yaml)",
)
@click.option("--debug", is_flag=True, hidden=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool):
    """
    claimai: a supervisor that routes requests to tool-using workers.

    \b
        claimai ask "Was steht in der neuesten E-Mail?"
        claimai chat                 # Interactive session
        claimai tools --worker general
        claimai route "Liste alle offenen Schadenfälle"
        claimai serve --port 8000
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = config_path

    if debug:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(name)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("LiteLLM").setLevel(logging.WARNING)


# =============================================================================
# Conversation Commands
# =============================================================================


@cli.command()
@click.argument("prompt")
@click.option("--thread", "-t", "thread_id", default=None, help="Thread id (default: session_<user>)")
@click.option("--user", "-u", default="cli", help="Caller user id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ask(ctx: click.Context, prompt: str, thread_id: str | None, user: str, as_json: bool):
    """Run a single turn and print the answer."""
    orchestrator = _build_orchestrator(ctx)
    try:
        result = orchestrator.handle(prompt, thread_id=thread_id, caller=CallerContext(user_id=user))
    except ValueError as e:
        console_err.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({**result.to_dict(), "threadId": result.thread_id, "workers": result.workers}))
        return
    _print_turn(result)
    if ctx.obj["debug"]:
        console.print(f"[dim]Workers: {' -> '.join(result.workers)}[/dim]")


@cli.command()
@click.option("--thread", "-t", "thread_id", default=None, help="Thread id (default: session_<user>)")
@click.option("--user", "-u", default="cli", help="Caller user id")
@click.pass_context
def chat(ctx: click.Context, thread_id: str | None, user: str):
    """
    Start an interactive session.

    Type /quit (or press Ctrl-D) to leave.
    """
    orchestrator = _build_orchestrator(ctx)
    caller = CallerContext(user_id=user)
    thread_id = thread_id or caller.default_thread_id()

    console.print(
        Panel(
            f"[bold]claimai[/bold] ({orchestrator.backend})\nThread: [cyan]{thread_id}[/cyan]",
            border_style="blue",
        )
    )
    while True:
        try:
            prompt = console.input("[bold green]>[/bold green] ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        if prompt.strip() in ("/quit", "/exit"):
            break
        if not prompt.strip():
            continue
        with console.status("Thinking..."):
            result = orchestrator.handle(prompt, thread_id=thread_id, caller=caller)
        _print_turn(result)


# =============================================================================
# Inspection Commands
# =============================================================================


@cli.command()
@click.option("--worker", "-w", default=None, help="Only show tools this worker may use")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tools(ctx: click.Context, worker: str | None, as_json: bool):
    """List registered tools."""
    orchestrator = _build_orchestrator(ctx)
    permissions = orchestrator.permissions

    if worker:
        if worker not in orchestrator.workers:
            console_err.print(
                f"[red]Unknown worker '{worker}'.[/red] Available: {', '.join(orchestrator.workers)}"
            )
            sys.exit(1)
        listed = permissions.resolve_tools(worker)
    else:
        listed = orchestrator.registry.tools()

    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "name": t.name,
                        "provider": t.provider,
                        "description": t.description,
                        "blocked": permissions.is_blocked(t.name),
                    }
                    for t in listed
                ]
            )
        )
        return

    if not listed:
        console.print("[yellow]No tools available.[/yellow]")
        return

    table = Table(title=f"Tools for {worker}" if worker else "Registered tools")
    table.add_column("Name", style="cyan")
    table.add_column("Provider")
    table.add_column("Description")
    table.add_column("Blocked", justify="center")
    for t in listed:
        blocked = "[red]yes[/red]" if permissions.is_blocked(t.name) else ""
        table.add_row(t.name, t.provider, t.description, blocked)
    console.print(table)


@cli.command()
@click.argument("prompt")
@click.pass_context
def route(ctx: click.Context, prompt: str):
    """Show which worker would answer PROMPT first (no model calls)."""
    from claimai.core.router import Router
    from claimai.models.conversation import Conversation, Message

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        console_err.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not config.settings.use_supervisor:
        console.print("general [dim](supervisor disabled)[/dim]")
        return

    router = Router(max_hops=config.settings.max_hops, workers=[w.name for w in config.workers])
    conversation = Conversation(id="dry-run", messages=[Message(role="user", content=prompt)])
    decision = router.decide(conversation)
    console.print(f"{decision.next_worker} [dim]({decision.reason})[/dim]")


# =============================================================================
# Server
# =============================================================================


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", "-p", default=8000, type=int, help="Port")
@click.option("--cors-origin", "cors_origins", multiple=True, help="Allowed CORS origin (repeatable)")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, cors_origins: tuple[str, ...]):
    """Run the HTTP API."""
    import uvicorn

    from claimai.server.app import create_app
    from claimai.server.dependencies import set_orchestrator

    set_orchestrator(_build_orchestrator(ctx))
    app = create_app(list(cors_origins) or None)
    console.print(f"[green]Serving claimai on http://{host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port, log_level="debug" if ctx.obj["debug"] else "info")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
