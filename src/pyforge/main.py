from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import typer
from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from .app_context import AppContext
from .errors import ForgeError
from .events.store import EventStore, list_sessions
from .mode import MODE_CHOICES, OperationMode
from .tools.presenter import RichPresenter
from .util.fs import display_path, resolve_path

app = typer.Typer(add_completion=False, help="pyforge: mode-gated tool execution core for a coding agent.")
console = Console()


def _resolve_cwd(cwd: Path | None) -> Path:
    cwd = Path(str(cwd or Path.cwd())).expanduser()
    if not cwd.is_absolute():
        cwd = (Path.cwd() / cwd).resolve()
    else:
        cwd = cwd.resolve()
    if not cwd.is_dir():
        raise typer.BadParameter(f"--cwd must be an existing directory: {cwd}")
    return cwd


def _parse_mode(mode: str | None) -> OperationMode | None:
    if mode is None:
        return None
    try:
        return OperationMode.parse(mode)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _open_context(cwd: Path | None, config: Path | None, mode: str | None, session: str | None = None) -> AppContext:
    parsed = _parse_mode(mode)
    try:
        return AppContext.from_env(cwd=_resolve_cwd(cwd), config_path=config, mode=parsed, session_id=session)
    except (FileNotFoundError, ValueError) as e:
        raise typer.BadParameter(str(e)) from None


def _tools_table(ctx: AppContext) -> Table:
    table = Table(title="Tools", show_lines=False)
    table.add_column("name", style="bold")
    table.add_column("mutating")
    table.add_column("description")
    for d in ctx.registry.list_descriptors():
        table.add_row(d.name, "[yellow]yes[/yellow]" if d.mutating else "no", d.description)
    return table


def _print_header(ctx: AppContext) -> None:
    grid = Table.grid(padding=(0, 2))
    grid.add_row("📁 [bold green]cwd[/bold green]", f"[bright_cyan]{ctx.cwd}[/bright_cyan]")
    grid.add_row("🆔 [bold green]session[/bold green]", f"[bright_cyan]{ctx.session_id}[/bright_cyan]")
    grid.add_row("🔒 [bold green]mode[/bold green]", f"[bright_cyan]{ctx.modes.mode.value}[/bright_cyan]")
    grid.add_row("⚙️ [bold green]config[/bold green]", f"[bright_cyan]{ctx.config.loaded_from or '(defaults)'}[/bright_cyan]")
    console.print(
        Align.center(
            Panel(grid, title="[bold magenta]pyforge[/bold magenta]", border_style="bright_blue")
        )
    )


@app.command()
def tools(
    cwd: Path = typer.Option(None, "--cwd", help="Working directory (project root). Defaults to current directory."),
    config: Path = typer.Option(None, "--config", help="Optional config file (JSON or YAML)."),
):
    """List registered tools and whether each one mutates state."""
    ctx = _open_context(cwd, config, None)
    try:
        console.print(_tools_table(ctx))
    finally:
        ctx.close()


@app.command()
def call(
    tool: str = typer.Argument(..., help="Tool name, e.g. fs_read."),
    input: str = typer.Option("{}", "--input", "-i", help="Tool input as a JSON object."),
    mode: str = typer.Option(None, "--mode", help="plan (restricted) or act (unrestricted). Defaults to config."),
    cwd: Path = typer.Option(None, "--cwd", help="Working directory (project root). Defaults to current directory."),
    config: Path = typer.Option(None, "--config", help="Optional config file (JSON or YAML)."),
    session: str = typer.Option(None, "--session", help="Session id used for the event log."),
):
    """Dispatch a single tool call and print the JSON result."""
    try:
        payload = json.loads(input)
    except ValueError as e:
        raise typer.BadParameter(f"--input is not valid JSON: {e}") from None
    ctx = _open_context(cwd, config, mode, session)
    try:
        result = ctx.call(tool, payload)
    finally:
        ctx.close()
    typer.echo(json.dumps(result, ensure_ascii=False, indent=2, default=str))
    if "error" in result:
        raise typer.Exit(code=1)


def _show_history(ctx: AppContext, arg: str) -> None:
    try:
        path = resolve_path(ctx.cwd, arg)
    except ForgeError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        return
    entries = ctx.ledger.history(path)
    if not entries:
        console.print(f"No undo history for {escape(display_path(ctx.cwd, path))}.")
        return
    table = Table(title=f"Undo history: {display_path(ctx.cwd, path)}")
    table.add_column("#")
    table.add_column("operation")
    table.add_column("time")
    table.add_column("before")
    for e in entries:
        ts = datetime.fromtimestamp(e.timestamp).strftime("%H:%M:%S")
        before = f"{len(e.snapshot)} bytes" if e.snapshot is not None else "(absent)"
        table.add_row(str(e.sequence), e.operation.value, ts, before)
    console.print(table)


def _choose_mode(ctx: AppContext) -> None:
    for m, desc in MODE_CHOICES.items():
        marker = "*" if m is ctx.modes.mode else " "
        console.print(f" {marker} [bold]{m.value}[/bold]: {desc}")
    try:
        choice = Prompt.ask("Mode", choices=[m.value for m in MODE_CHOICES], default=ctx.modes.mode.value, console=console)
    except (EOFError, KeyboardInterrupt):
        return
    ctx.select_mode(choice)


def _run_line(ctx: AppContext, presenter: RichPresenter, line: str) -> None:
    name, _, raw = line.partition(" ")
    raw = raw.strip()
    try:
        payload = json.loads(raw) if raw else {}
    except ValueError as e:
        console.print(f"[red]Invalid JSON input:[/red] {escape(str(e))}")
        return
    try:
        with presenter.around(name, payload if isinstance(payload, dict) else {}):
            result = ctx.call(name, payload)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        return
    presenter.report(name, result)


@app.command()
def repl(
    mode: str = typer.Option(None, "--mode", help="Initial mode: plan or act. Defaults to config."),
    cwd: Path = typer.Option(None, "--cwd", help="Working directory (project root). Defaults to current directory."),
    config: Path = typer.Option(None, "--config", help="Optional config file (JSON or YAML)."),
    session: str = typer.Option(None, "--session", help="Session id used for the event log."),
):
    """Interactive loop: `/plan`, `/act`, `/mode`, `/tools`, `/history PATH`, `/exit` or `TOOL {json}`."""
    ctx = _open_context(cwd, config, mode, session)
    presenter = RichPresenter(console)
    _print_header(ctx)
    try:
        while True:
            try:
                line = typer.prompt(f"pyforge[{ctx.modes.mode.value}]").strip()
            except (EOFError, KeyboardInterrupt, typer.Abort):
                break
            if not line:
                continue
            if line in {"/exit", "/quit", "exit", "quit"}:
                break
            if line in {"/plan", "/act"}:
                ctx.select_mode(line)
                console.print(f"Mode: [bold]{ctx.modes.mode.value}[/bold]")
            elif line == "/mode":
                _choose_mode(ctx)
                console.print(f"Mode: [bold]{ctx.modes.mode.value}[/bold]")
            elif line == "/tools":
                console.print(_tools_table(ctx))
            elif line.startswith("/history"):
                arg = line[len("/history"):].strip()
                if not arg:
                    console.print("[red]Usage: /history PATH[/red]")
                else:
                    _show_history(ctx, arg)
            elif line.startswith("/"):
                console.print(f"[red]Unknown command:[/red] {escape(line)}")
            else:
                _run_line(ctx, presenter, line)
    finally:
        ctx.close()


@app.command()
def events(
    session: str = typer.Option(None, "--session", help="Session id to inspect. Lists sessions when omitted."),
    tail: int = typer.Option(200, "--tail", help="Show last N events."),
    event_type: str = typer.Option(None, "--type", help="Only events of this type or family, e.g. tool or undo.restore."),
    summary: bool = typer.Option(False, "--summary", help="Per-tool call counts instead of raw events."),
):
    """Show recent structured events (tool calls, mode switches, undo) recorded for a session."""
    if not session:
        sessions = list_sessions()
        if not sessions:
            console.print("No recorded sessions.")
            return
        table = Table(title="Sessions")
        table.add_column("session", style="bold")
        for sid in sessions[: tail if tail and tail > 0 else None]:
            table.add_row(sid)
        console.print(table)
        return

    es = EventStore.open(session)
    if summary:
        table = Table(title=f"Tool calls: {session}")
        for col in ("tool", "calls", "ok", "errors", "denied", "avg ms"):
            table.add_column(col)
        for s in es.tool_stats():
            avg = s.total_ms // s.ok if s.ok else 0
            table.add_row(s.tool, str(s.calls), str(s.ok), str(s.errors), str(s.denied), str(avg))
        console.print(table)
        return

    evs = es.of_type(event_type) if event_type else list(es.iter_events())
    evs = evs[-tail:] if tail and tail > 0 else evs
    console.print(Panel.fit(f"session: {session}\nfile: {es.path}\nevents: {len(evs)}", title="Events"))
    for e in evs:
        ts = datetime.fromtimestamp(e.ts).strftime("%Y-%m-%d %H:%M:%S")
        console.print(Panel.fit(json.dumps(e.data, ensure_ascii=False, indent=2)[:4000], title=f"{ts}  {e.type}"))


if __name__ == "__main__":
    app()
