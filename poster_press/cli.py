# poster_press/cli.py
"""
CLI interface for poster-press.

Thin presentation layer over the queue, renderer and worker lifecycle.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import typer

app = typer.Typer(
    name="poster-press",
    help="Render LaTeX posters from queued jobs.",
    no_args_is_help=True,
)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config.yaml")


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _load(config_path: Path | None):
    from poster_press.config.loader import load_config

    try:
        return load_config(config_path)
    except Exception as e:
        typer.echo(f"Error: could not load config: {e}", err=True)
        raise typer.Exit(1)


async def _get_queue(config):
    """Open the configured job queue (no lifecycle needed for queue-only ops)."""
    from poster_press.config.loader import get_data_dir
    from poster_press.gateways.factory import create_queue

    queue = create_queue(config, get_data_dir())
    await queue.initialize()
    return queue


def _state_color(state: str) -> str:
    """Return ANSI color for job state."""
    colors = {
        "succeeded": typer.colors.GREEN,
        "claimed": typer.colors.YELLOW,
        "queued": typer.colors.CYAN,
        "failed": typer.colors.RED,
    }
    return colors.get(state, typer.colors.WHITE)


@app.command("run")
def run_worker(
    once: bool = typer.Option(False, "--once", help="Process at most one job, then exit"),
    json_logs: bool = typer.Option(False, "--json", help="Log JSON lines to stderr"),
    config_path: Path = ConfigOption,
):
    """Start the worker to process queued jobs. Ctrl+C to stop."""
    from poster_press.background.lifecycle import StartupError, WorkerLifecycle
    from poster_press.config.loader import get_data_dir
    from poster_press.logging_config import configure_logging

    config = _load(config_path)
    configure_logging(config.logging.level, json_output=json_logs or config.logging.json_output)

    async def _run_worker():
        lifecycle = WorkerLifecycle(config, get_data_dir())
        if once:
            try:
                await lifecycle.prepare()
                result = await lifecycle.worker.run_once()
            finally:
                await lifecycle.shutdown()
            if result is None:
                typer.echo("No queued jobs.")
            elif result.success:
                typer.echo(f"Succeeded: {', '.join(p for p in (result.pdf_path, result.zip_path) if p)}")
            else:
                typer.echo(f"Failed: {result.error_code}", err=True)
            return

        typer.echo("Worker started. Processing queued jobs... (Ctrl+C to stop)\n", err=True)
        await lifecycle.run_forever()

    try:
        _run(_run_worker())
    except StartupError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass


@app.command()
def submit(
    project_id: str = typer.Argument(..., help="Project whose input bundle is rendered"),
    template_id: str = typer.Argument(..., help="Template identifier"),
    mode: str = typer.Option("preview", "--mode", "-m", help="preview, final or paid"),
    config_path: Path = ConfigOption,
):
    """Queue a render job."""
    from poster_press.models.jobs import JobRecord, JobState, RenderMode, generate_job_id

    try:
        render_mode = RenderMode(mode)
    except ValueError:
        typer.echo(f"Error: invalid mode '{mode}' (expected preview, final or paid)", err=True)
        raise typer.Exit(1)

    config = _load(config_path)
    record = JobRecord(
        job_id=generate_job_id(),
        project_id=project_id,
        template_id=template_id,
        mode=render_mode,
        state=JobState.QUEUED,
        created_at=datetime.now(timezone.utc),
    )

    async def _submit():
        queue = await _get_queue(config)
        try:
            await queue.add(record)
        finally:
            await queue.close()

    try:
        _run(_submit())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(record.job_id)


@app.command("list")
def list_jobs(config_path: Path = ConfigOption):
    """List all render jobs."""
    config = _load(config_path)

    async def _list():
        queue = await _get_queue(config)
        try:
            return await queue.list_all()
        finally:
            await queue.close()

    jobs = _run(_list())

    if not jobs:
        typer.echo("No jobs found.")
        return

    typer.echo(f"{'JOB ID':<14} {'STATE':<11} {'MODE':<8} {'PROJECT':<20} ERROR")
    typer.echo("-" * 80)

    for job in jobs:
        state = job.state.value
        typer.echo(
            typer.style(f"{job.job_id:<14} {state:<11} ", fg=_state_color(state))
            + f"{job.mode.value:<8} {job.project_id:<20} {job.error_code or ''}"
        )


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Job ID to check"),
    config_path: Path = ConfigOption,
):
    """Show one job's status, outputs and error."""
    config = _load(config_path)

    async def _status():
        queue = await _get_queue(config)
        try:
            return await queue.get(job_id)
        finally:
            await queue.close()

    job = _run(_status())
    if job is None:
        typer.echo(f"Error: job {job_id} not found", err=True)
        raise typer.Exit(1)

    state = job.state.value
    typer.echo(f"Job:      {job.job_id}")
    typer.echo("State:    " + typer.style(state, fg=_state_color(state)))
    typer.echo(f"Project:  {job.project_id}")
    typer.echo(f"Template: {job.template_id}")
    typer.echo(f"Mode:     {job.mode.value}")
    for path in job.output_paths:
        typer.echo(f"Output:   {path}")
    if job.error_code:
        typer.echo(f"Error:    {job.error_code}")
        if job.error_detail:
            typer.echo(job.error_detail)


@app.command()
def render(
    template_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Template .tex file"),
    bundle_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Input bundle JSON"),
    mode: str = typer.Option("preview", "--mode", "-m", help="preview, final or paid"),
    output: Path = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
):
    """Render a template locally without compiling (for template authors)."""
    from pydantic import ValidationError

    from poster_press.errors import PipelineError
    from poster_press.models.jobs import RenderMode
    from poster_press.rendering.renderer import render_document
    from poster_press.schemas.bundle import InputBundle

    try:
        render_mode = RenderMode(mode)
        bundle = InputBundle.model_validate(json.loads(bundle_file.read_text(encoding="utf-8")))
        rendered = render_document(template_file.read_text(encoding="utf-8"), bundle, render_mode)
    except (ValueError, ValidationError, PipelineError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if output is not None:
        output.write_text(rendered.source, encoding="utf-8")
        typer.echo(f"Wrote {output}", err=True)
    else:
        typer.echo(rendered.source, nl=False)

    for figure in rendered.figures:
        typer.echo(f"figure: {figure.storage_name} -> assets/{figure.asset_name}", err=True)


if __name__ == "__main__":
    app()
