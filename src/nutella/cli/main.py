import typer
from pathlib import Path
from typing import List, Optional, Tuple

from nutella.bots.notifier import RunListNotifier
from nutella.bots.responder import RunListResponder
from nutella.cli.formatter import OutputFormatter
from nutella.core.context import FrameworkContext
from nutella.core.project import is_nutella_project, load_project
from nutella.net.line_broker import LineBroker, LineBrokerClient
from nutella.runtime.lifecycle import RunOutcome
from nutella.utils.diagnostics import StorageError, TransportError

app = typer.Typer(name="nutella", help="Nutella run management", rich_markup_mode=None)

EXTRA_ARGS = {"allow_extra_args": True, "ignore_unknown_options": True}


def _build_context() -> FrameworkContext:
    return FrameworkContext.from_home()


def _read_option_value(tokens: list[str], index: int, option_name: str) -> tuple[str, int]:
    if index + 1 >= len(tokens):
        raise typer.BadParameter(f"Option {option_name} requires a value.")
    return tokens[index + 1], index + 2


def _split_run_tokens(tokens: List[str]) -> Tuple[Path, bool, List[str]]:
    """Pull ``--root`` and ``--abort-on-failure`` out, keep everything else in order."""
    root_dir = Path(".")
    abort_on_failure = False
    remaining: list[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token in ("--root", "-r"):
            root_value, index = _read_option_value(tokens, index, token)
            root_dir = Path(root_value)
            continue
        if token.startswith("--root="):
            root_dir = Path(token.split("=", 1)[1])
            index += 1
            continue
        if token == "--abort-on-failure":
            abort_on_failure = True
            index += 1
            continue
        remaining.append(token)
        index += 1
    return root_dir, abort_on_failure, remaining


def _require_project(root_dir: Path) -> None:
    if not is_nutella_project(root_dir):
        OutputFormatter.log(
            f"{root_dir.resolve()} is not a nutella project: nutella.json not found.",
            severity="error",
        )
        raise typer.Exit(code=1)


def _report_outcome(outcome: RunOutcome) -> None:
    for report in outcome.reports:
        for failure in report.failures():
            detail = failure.stderr.strip() or failure.stdout.strip()
            message = f"Bot {failure.actor}: '{failure.script}' failed with status {failure.returncode}."
            if detail:
                message = f"{message} {detail}"
            OutputFormatter.log(message, severity="warning")

    if not outcome.ok:
        OutputFormatter.log(outcome.message, severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.log(outcome.message, severity="success")


@app.command(context_settings=EXTRA_ARGS)
def runs(
    ctx: typer.Context,
):
    """
    List the registered runs, or the runs of one application.
    """
    app_id: Optional[str] = None
    as_json = False

    tokens = list(ctx.args)
    extras: list[str] = []
    for token in tokens:
        if token == "--json":
            as_json = True
            continue
        if token.startswith("-"):
            raise typer.BadParameter(f"Unknown option: {token}")
        extras.append(token)

    if extras:
        app_id = extras.pop(0)
    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    try:
        registry = _build_context().runlist()
        if app_id is not None:
            OutputFormatter.print_data(registry.runs_for_app(app_id))
            return

        all_runs = registry.all_runs()
    except StorageError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    if as_json:
        OutputFormatter.print_data({name: entry.model_dump() for name, entry in all_runs.items()})
    else:
        OutputFormatter.print_runs(all_runs)


@app.command(context_settings=EXTRA_ARGS)
def start(
    ctx: typer.Context,
):
    """
    Start a run of the current project: nutella start [RUN] [-w a,b] [-wo c].
    """
    root_dir, abort_on_failure, tokens = _split_run_tokens(list(ctx.args))
    _require_project(root_dir)
    project = load_project(root_dir)

    try:
        orchestrator = _build_context().orchestrator(abort_on_failure=abort_on_failure)
        outcome = orchestrator.start_run(root_dir, project.name, tokens)
    except StorageError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    _report_outcome(outcome)


@app.command(context_settings=EXTRA_ARGS)
def stop(
    ctx: typer.Context,
):
    """
    Stop a run of the current project: nutella stop [RUN].
    """
    root_dir, _, tokens = _split_run_tokens(list(ctx.args))
    _require_project(root_dir)
    project = load_project(root_dir)

    try:
        outcome = _build_context().orchestrator().stop_run(project.name, tokens)
    except StorageError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    _report_outcome(outcome)


@app.command()
def reset():
    """
    Remove the run list file.
    """
    try:
        removed = _build_context().runlist(reconcile=False).remove_file()
    except StorageError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    if removed:
        OutputFormatter.log("Run list removed.", severity="success")
    else:
        OutputFormatter.log("There is no run list to remove.", severity="info")


@app.command(context_settings=EXTRA_ARGS)
def broker(
    ctx: typer.Context,
):
    """
    Serve the JSON-lines broker in the foreground.
    """
    context = _build_context()
    host = context.broker.host
    port = context.broker.port

    tokens = list(ctx.args)
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token in ("--host", "-h"):
            host, index = _read_option_value(tokens, index, token)
            continue
        if token in ("--port", "-p"):
            port_value, index = _read_option_value(tokens, index, token)
            try:
                port = int(port_value)
            except ValueError:
                raise typer.BadParameter(f"Invalid port: {port_value}")
            continue
        raise typer.BadParameter(f"Unexpected argument: {token}")

    try:
        line_broker = LineBroker(host, port)
    except OSError as exc:
        OutputFormatter.log(f"Cannot listen on {host}:{port}: {exc}", severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.log(f"Broker listening on {host}:{port}.", severity="success")
    try:
        line_broker.serve_forever()
    except KeyboardInterrupt:
        OutputFormatter.log("Broker shutting down.", severity="info")
    finally:
        line_broker.shutdown()


@app.command("runs-list-bot")
def runs_list_bot():
    """
    Answer app_runs_list requests and broadcast run list changes to every app.
    """
    context = _build_context()
    try:
        client = LineBrokerClient(context.broker.host, context.broker.port)
    except TransportError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    registry = context.runlist(reconcile=False)
    RunListResponder(registry, client).register()
    notifier = RunListNotifier(registry, client, interval_ms=context.settings.poll_interval_ms)

    OutputFormatter.log(
        f"Runs list bot connected to {context.broker.host}:{context.broker.port}.",
        severity="success",
    )
    try:
        notifier.run()
    except KeyboardInterrupt:
        OutputFormatter.log("Runs list bot shutting down.", severity="info")
    except (StorageError, TransportError) as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)
    finally:
        client.close()


if __name__ == "__main__":
    app()
