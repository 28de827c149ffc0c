"""CLI entry point for consoleproc."""

from __future__ import annotations

import getpass
import logging
import sys

import typer
from rich.console import Console
from rich.table import Table

from consoleproc import __version__
from consoleproc.config import ConsoleProcConfig
from consoleproc.errors import ConsoleProcError, LaunchError
from consoleproc.process.events import EventType, ProcessEvent, drain
from consoleproc.process.info import NO_TERMINAL, ProcessSessionInfo
from consoleproc.process.options import Input, ProcessOptions, ProcessSpec
from consoleproc.process.password import PasswordCache
from consoleproc.process.registry import SessionRegistry
from consoleproc.process.session import ProcessSession
from consoleproc.process.supervisor import PtyProcessSupervisor
from consoleproc.service import ConsoleProcService

app = typer.Typer(
    name="consoleproc",
    help="Run and inspect supervised interactive console processes.",
    no_args_is_help=True,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _ask_password(prompt: str, allow_remember: bool) -> tuple[str, bool] | None:
    """Interactive password callback for the cache; None means cancelled."""
    try:
        password = getpass.getpass(prompt)
        remember = allow_remember and typer.confirm("Remember password?", default=False)
    except (EOFError, KeyboardInterrupt):
        return None
    return password, remember


def _render(event: ProcessEvent, session: ProcessSession) -> None:
    if event.type == EventType.OUTPUT:
        typer.echo(event.data["output"], nl=False)
    elif event.type == EventType.PROMPT:
        typer.echo(event.data["prompt"], nl=False)
        line = sys.stdin.readline()
        if line:
            session.enqueue_input(Input(text=line, echo_input=True))
        else:
            session.enqueue_input(Input.interrupt_signal())
    elif event.type == EventType.SUBPROCS:
        logging.getLogger(__name__).debug(
            "Session %s subprocesses: %s", event.handle, event.data["subprocs"]
        )


def _open_registry(
    config_file: str | None, supervisor: PtyProcessSupervisor | None = None
) -> SessionRegistry:
    config = ConsoleProcConfig.load(config_file)
    registry = SessionRegistry(config, supervisor=supervisor)
    registry.load()
    return registry


@app.command()
def run(
    command: list[str] = typer.Argument(help="Program and arguments to run."),
    caption: str = typer.Option("", "--caption", help="Caption shown for the session."),
    terminal: bool = typer.Option(
        False,
        "--terminal",
        "-t",
        help="Run as a terminal tab (output logged to a file instead of the index).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run a program under supervision, answering password prompts."""
    setup_logging(verbose)

    supervisor = PtyProcessSupervisor()
    registry = _open_registry(config_file, supervisor)
    config = registry.config
    cache = PasswordCache(_ask_password, config.password.prompt_pattern)

    spec = ProcessSpec.exec(
        command[0],
        command[1:],
        ProcessOptions(
            cols=config.terminal.cols,
            rows=config.terminal.rows,
            report_has_subprocs=verbose,
        ),
    )
    info = ProcessSessionInfo(
        caption=caption or " ".join(command),
        terminal_sequence=1 if terminal else NO_TERMINAL,
        max_output_lines=config.output.max_output_lines,
        buffer_capacity=config.output.embedded_buffer_size,
    )
    session = registry.create(spec, info)
    cache.attach(session)
    events = registry.bus.subscribe()

    try:
        session.start()
    except LaunchError as e:
        typer.echo(f"Error: {e}", err=True)
        registry.shutdown()
        raise typer.Exit(1)

    try:
        while supervisor.active:
            supervisor.poll()
            for event in drain(events):
                _render(event, session)
    except KeyboardInterrupt:
        supervisor.shutdown()
    for event in drain(events):
        _render(event, session)

    registry.shutdown()
    typer.echo(f"[{session.handle}] exited with code {session.info.exit_code}", err=True)
    raise typer.Exit(session.info.exit_code or 0)


@app.command("list")
def list_sessions(
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """List persisted console sessions."""
    setup_logging()
    registry = _open_registry(config_file)

    table = Table(title=f"consoleproc v{__version__}")
    for column in ("handle", "caption", "title", "kind", "exit code"):
        table.add_column(column)
    for entry in registry.list_sessions():
        exit_code = entry["exit_code"]
        table.add_row(
            entry["handle"],
            entry["caption"],
            entry["title"],
            "terminal" if entry["terminal"] else "modal",
            "" if exit_code is None else str(exit_code),
        )
    console.print(table)


@app.command()
def buffer(
    handle: str = typer.Argument(help="Session handle."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Print the stored output of a session."""
    setup_logging()
    service = ConsoleProcService(_open_registry(config_file))
    try:
        typer.echo(service.get_buffer(handle), nl=False)
    except ConsoleProcError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def reap(
    handle: str = typer.Argument(help="Session handle."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Remove a session and delete its stored output."""
    setup_logging()
    service = ConsoleProcService(_open_registry(config_file))
    try:
        service.reap(handle)
    except ConsoleProcError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Reaped {handle}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
