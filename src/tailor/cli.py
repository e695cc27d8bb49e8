from __future__ import annotations
import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .bootstrap import build_app
from .config_loader import ConfigError
from .secrets.sources import MissingSecretError
from .core.resume_session import GenerationResult, TailoredResumeSession
from .resilience.cancellation import CancellationToken

app = typer.Typer(add_completion=False, help="Generate job-tailored resumes from a master profile.")
console = Console(stderr=True)

EXIT_CANCELLED = 130


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


async def _stream_to_terminal(session: TailoredResumeSession, profile: Dict[str, Any],
                              job_description: str) -> GenerationResult:
    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel)
        have_handler = True
    except (NotImplementedError, RuntimeError):
        # no signal support here (e.g. Windows); Ctrl+C falls back to KeyboardInterrupt
        have_handler = False

    shown_steps = 0
    try:
        async for update in session.updates(profile, job_description, cancel):
            if update.kind == "reset":
                shown_steps = 0
                console.print("\n[yellow]Generation restarted after a transient error.[/yellow]")
            elif update.kind == "thinking":
                for step in update.steps[shown_steps:]:
                    console.print(f"[dim]Thinking: {step.title}[/dim]")
                shown_steps = len(update.steps)
            else:
                typer.echo(update.text, nl=False)
    finally:
        if have_handler:
            loop.remove_signal_handler(signal.SIGINT)
    typer.echo("")
    return session.result


@app.command()
def generate(
    profile: Path = typer.Argument(..., help="Master profile JSON file."),
    job: Path = typer.Argument(..., help="Job description text file."),
    config: Path = typer.Option(Path("config/default.yaml"), "--config", "-c"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log retries, timings and heartbeats."),
):
    """Stream a tailored resume for JOB built from PROFILE."""
    _setup_logging(verbose)
    try:
        ctx = build_app(config)
    except (ConfigError, FileNotFoundError, MissingSecretError) as e:
        console.print(f"[red][config][/red] {e}")
        raise typer.Exit(2)

    try:
        profile_data = json.loads(profile.read_text(encoding="utf-8"))
        job_text = job.read_text(encoding="utf-8")
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red][input][/red] {e}")
        raise typer.Exit(2)

    session = TailoredResumeSession(ctx["provider"], system=ctx["system_prompt"])
    result = asyncio.run(_stream_to_terminal(session, profile_data, job_text))

    if result.state == "cancelled":
        console.print("[yellow]Resume generation cancelled.[/yellow]")
        raise typer.Exit(EXIT_CANCELLED)
    if result.state == "error":
        console.print(f"[red]{result.message}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    config: Path = typer.Option(Path("config/default.yaml"), "--config", "-c"),
    host: str = "127.0.0.1",
    port: int = 8000,
    provider: Optional[str] = typer.Option(None, help="Override model.provider."),
    model: Optional[str] = typer.Option(None, help="Override model.name."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Run the web API."""
    from .web.app import run

    _setup_logging(verbose)
    run(config=config, host=host, port=port, provider=provider, model=model)
