"\"\"\"Typer CLI entrypoint for the personality assessment.\"\"\""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any, Optional

import pendulum
import typer

from .config import ConfigManager
from .container import create_container
from .core import InvalidInput, InvalidOption, LoadError, NoSelection, TestFlowController, format_remaining
from .logging import bind_session, configure_logging, unbind_session
from .pipeline import AuditLogger
from .schemas import SessionState, Stage, TestResponse
from .schemas.config import AppConfig

app = typer.Typer(help="Timed personality assessment CLI.")

HELP_LINE = "Type an option number to answer, 'n' next, 'p' previous, 'g N' go to question N, 'q' quit."


def _load_app_config(
    config: Optional[Path],
    base_url: Optional[str],
    token: Optional[str],
) -> AppConfig:
    if config:
        manager, name = ConfigManager.for_file(config)
        try:
            app_config = manager.load_app_config(name)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_name="config") from exc
    else:
        app_config = AppConfig()
    if base_url:
        app_config.api.base_url = base_url
    if token:
        app_config.api.token = token
    return app_config


@app.command()
def take(
    candidate_id: int = typer.Option(..., help="Candidate identifier."),
    offer_id: int = typer.Option(..., help="Job offer identifier."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("WARNING", help="Log level for structured logging."),
    base_url: Optional[str] = typer.Option(None, help="Assessment API base URL."),
    token: Optional[str] = typer.Option(None, envvar="HRASSESS_API_TOKEN", help="Bearer token for the API."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Take the timed personality test in the terminal."""
    app_config = _load_app_config(config, base_url, token)
    configure_logging(log_level)

    container = create_container(settings=app_config.to_settings())
    audit_logger = AuditLogger(audit_log) if audit_log else None

    try:
        state = asyncio.run(_run_session(container, candidate_id, offer_id, audit_logger))
    except InvalidInput as exc:
        raise typer.BadParameter(str(exc)) from exc

    if state.stage is Stage.COMPLETED:
        typer.echo(f"Test completed. Total score: {state.total_score}.")
    elif state.stage is Stage.TIMED_OUT:
        typer.echo("Time is up. The test could not be completed.")
        raise typer.Exit(code=2)
    else:
        typer.echo("Test abandoned.")
        raise typer.Exit(code=1)


@app.command()
def show(
    candidate_id: int = typer.Option(..., help="Candidate identifier."),
    offer_id: int = typer.Option(..., help="Job offer identifier."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    base_url: Optional[str] = typer.Option(None, help="Assessment API base URL."),
    token: Optional[str] = typer.Option(None, envvar="HRASSESS_API_TOKEN", help="Bearer token for the API."),
    log_level: str = typer.Option("WARNING", help="Log level for structured logging."),
) -> None:
    """Print the stored test answers and trait scores of a candidate."""
    app_config = _load_app_config(config, base_url, token)
    configure_logging(log_level)
    container = create_container(settings=app_config.to_settings())

    async def fetch() -> TestResponse | None:
        client = container.api_client()
        try:
            return await client.fetch_test_response(candidate_id, offer_id)
        finally:
            await client.aclose()

    try:
        response = asyncio.run(fetch())
    except (InvalidInput, LoadError) as exc:
        typer.echo(f"Unable to fetch test response: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if response is None:
        typer.echo("No test response stored for this candidate.")
        raise typer.Exit(code=1)
    for line in render_test_response(response):
        typer.echo(line)


def render_test_response(response: TestResponse) -> list[str]:
    scores = response.scores
    lines = [
        f"Candidate {response.candidat_id} / offer {response.offre_id}",
        f"Completed: {format_completed_at(response.completed_at)}",
        f"Total: {scores.total:g}",
        f"  Ouverture: {scores.ouverture:g}",
        f"  Conscience: {scores.conscience:g}",
        f"  Extraversion: {scores.extraversion:g}",
        f"  Agreabilite: {scores.agreabilite:g}",
        f"  Stabilite: {scores.stabilite:g}",
    ]
    for position, question in enumerate(response.questions):
        answer = response.answer_for(position)
        lines.append(f"{position + 1}. [{question.trait}] {question.prompt}")
        if answer is None:
            lines.append("   (no answer)")
            continue
        option = question.option_at(answer.selected_option_index)
        text = option.text if option else "?"
        lines.append(f"   -> {text} ({answer.score})")
    return lines


def format_completed_at(value: str | None) -> str:
    if not value:
        return "not specified"
    try:
        parsed = pendulum.parse(value, strict=False)
    except ValueError:
        return "not specified"
    return parsed.format("DD/MM/YYYY HH:mm")


async def _run_session(container: Any, candidate_id: int, offer_id: int, audit_logger: AuditLogger | None) -> SessionState:
    bind_session(candidate_id, offer_id)
    client = container.api_client()
    pipeline = container.pipeline()
    try:
        return await pipeline.run(
            candidate_id=candidate_id,
            offer_id=offer_id,
            driver=terminal_driver,
            on_complete=lambda: typer.echo("Your application has been recorded."),
            audit_logger=audit_logger,
            wait_for_retries=True,
        )
    finally:
        await client.aclose()
        unbind_session()


async def terminal_driver(controller: TestFlowController) -> None:
    """Feed terminal input into the controller until the session leaves in_progress."""
    stage = await controller.wait_for(Stage.IN_PROGRESS, Stage.ERROR)
    while stage is Stage.ERROR:
        typer.echo(controller.state.error or "Unable to load the test.")
        answer = await _read_line("Retry? [y/N] ")
        if not answer or not answer.strip().lower().startswith("y"):
            return
        await controller.retry()
        stage = await controller.wait_for(Stage.IN_PROGRESS, Stage.ERROR)

    typer.echo(HELP_LINE)
    leave = asyncio.ensure_future(
        controller.wait_for(Stage.SUBMITTING, Stage.COMPLETED, Stage.TIMED_OUT)
    )
    try:
        while controller.stage is Stage.IN_PROGRESS:
            _render(controller)
            line = _read_line("> ")
            await asyncio.wait({line, leave}, return_when=asyncio.FIRST_COMPLETED)
            if leave.done():
                break
            command = line.result()
            if command is None or command.strip().lower() == "q":
                return
            await _apply(controller, command.strip())
    finally:
        if not leave.done():
            leave.cancel()

    if controller.stage is Stage.TIMED_OUT:
        typer.echo("\nTime is up.")
    elif controller.stage is Stage.SUBMITTING:
        typer.echo("Submitting your answers...")


async def _apply(controller: TestFlowController, command: str) -> None:
    question = controller.current_question
    try:
        if command.isdigit() and question is not None:
            option = question.option_at(int(command) - 1)
            if option is None:
                typer.echo("No such option.")
                return
            await controller.select(option)
        elif command == "n":
            await controller.advance()
        elif command == "p":
            await controller.retreat()
        elif command.startswith("g ") and command[2:].strip().isdigit():
            if not await controller.jump(int(command[2:].strip()) - 1):
                typer.echo("No such question.")
        else:
            typer.echo(HELP_LINE)
    except NoSelection:
        typer.echo(controller.state.error or "Please select an answer.")
    except InvalidOption as exc:
        typer.echo(str(exc))


def _render(controller: TestFlowController) -> None:
    state = controller.state
    question = controller.current_question
    if question is None:
        return
    selected = state.answers[state.current_index] if state.answers else None
    typer.echo("")
    typer.echo(f"Time remaining: {format_remaining(state.time_remaining)}")
    typer.echo(
        f"Question {state.current_index + 1} of {state.question_count}"
        f" ({round(state.progress_percent)}% complete)"
    )
    typer.echo(f"{question.prompt}  [trait: {question.trait}]")
    for option in question.options:
        marker = "(x)" if selected is not None and selected.index == option.index else "( )"
        typer.echo(f"  {option.index + 1}. {marker} {option.text}")
    pills = " ".join(
        f"[{position + 1}]" if position == state.current_index
        else (f"{position + 1}*" if answer is not None else f"{position + 1}")
        for position, answer in enumerate(state.answers)
    )
    typer.echo(pills)


def _read_line(prompt: str) -> asyncio.Future[str | None]:
    """Read one line on a daemon thread so a pending prompt never blocks shutdown."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str | None] = loop.create_future()

    def resolve(value: str | None) -> None:
        if not future.done():
            future.set_result(value)

    def worker() -> None:
        try:
            value: str | None = input(prompt)
        except EOFError:
            value = None
        try:
            loop.call_soon_threadsafe(resolve, value)
        except RuntimeError:
            # event loop already closed
            return

    threading.Thread(target=worker, daemon=True).start()
    return future


def main() -> None:
    app()


if __name__ == "__main__":
    main()
