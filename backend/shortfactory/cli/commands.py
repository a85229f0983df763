"""CLI commands for shortfactory using Typer and Rich.

Command groups:
- profiles: register and list channel profiles
- projects: create projects and drive them through the stage pipeline
- jobs: one-shot theme-to-video generation with a review stop before render
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shortfactory.db import shutdown
from shortfactory.errors import ShortFactoryError
from shortfactory.orchestrator.batch import BatchResult
from shortfactory.runtime import Runtime, build_runtime
from shortfactory.schemas.job import Job, JobStatus
from shortfactory.schemas.profile import ChannelProfile, VideoFormat
from shortfactory.schemas.project import ProjectStatus
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import ManualInput
from shortfactory.services.renderer import FFMPEG_INSTALL_HINT

app = typer.Typer(name="shortfactory", help="Staged short-form video production pipeline")
profiles_app = typer.Typer(help="Manage channel profiles")
projects_app = typer.Typer(help="Create projects and advance them through the stages")
jobs_app = typer.Typer(help="One-shot generation jobs")
app.add_typer(profiles_app, name="profiles")
app.add_typer(projects_app, name="projects")
app.add_typer(jobs_app, name="jobs")

console = Console()

_STATUS_COLORS = {
    ProjectStatus.PENDING: "white",
    ProjectStatus.PROCESSING: "yellow",
    ProjectStatus.READY: "green",
    ProjectStatus.ERROR: "red",
    ProjectStatus.REVIEW: "cyan",
}

_JOB_COLORS = {
    JobStatus.QUEUED: "white",
    JobStatus.PENDING: "white",
    JobStatus.PROCESSING: "yellow",
    JobStatus.REVIEW_PENDING: "cyan",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}

_LOG_COLORS = {"INFO": "white", "WARN": "yellow", "ERROR": "red", "SUCCESS": "green"}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(coro):
    """Run a command coroutine, always disposing the engine afterwards."""
    async def _wrapped():
        try:
            return await coro
        finally:
            await shutdown()

    return asyncio.run(_wrapped())


def _fail(message: str, code: int = 1):
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=code)


def _print_batch(result: BatchResult, title: str) -> None:
    table = Table(title=title)
    table.add_column("Project", style="cyan")
    table.add_column("Result")
    table.add_column("Stage")
    table.add_column("Detail")
    for outcome in result.outcomes:
        table.add_row(
            outcome.project_id,
            "[green]ok[/green]" if outcome.ok else "[red]failed[/red]",
            outcome.stage.value if outcome.stage else "-",
            outcome.error or "",
        )
    console.print(table)
    if result.review_ids:
        console.print(
            f"[cyan]{len(result.review_ids)} project(s) awaiting transcript review.[/cyan] "
            "Approve with: shortfactory projects approve"
        )


# --- profiles -------------------------------------------------------------


@profiles_app.command("add")
def profiles_add(
    name: str = typer.Argument(..., help="Channel name"),
    profile_id: Optional[str] = typer.Option(None, "--id", help="Profile id (generated when omitted)"),
    video_format: VideoFormat = typer.Option(VideoFormat.SHORTS, "--format", "-f", help="Video format"),
    visual_style: str = typer.Option("", "--style", "-s", help="Visual style appended to image prompts"),
    voice: str = typer.Option("Kore", "--voice", help="Voice id for narration"),
    persona: str = typer.Option("", "--persona", help="Narrator persona for scripting"),
    scripting_model: Optional[str] = typer.Option(None, "--model", help="Scripting model override"),
):
    """Register a channel profile."""
    _run(_profiles_add_async(name, profile_id, video_format, visual_style, voice, persona, scripting_model))


async def _profiles_add_async(name, profile_id, video_format, visual_style, voice, persona, scripting_model):
    runtime = await build_runtime()
    fields = dict(
        name=name,
        format=video_format,
        visual_style=visual_style,
        voice_profile=voice,
        llm_persona=persona,
        scripting_model=scripting_model,
    )
    if profile_id:
        fields["id"] = profile_id
    profile = await runtime.add_profile(ChannelProfile(**fields))
    console.print(f"[green]Created profile:[/green] {profile.id} ({profile.name})")


@profiles_app.command("list")
def profiles_list():
    """List channel profiles."""
    _run(_profiles_list_async())


async def _profiles_list_async():
    runtime = await build_runtime()
    if not runtime.profiles:
        console.print("[yellow]No profiles found.[/yellow]")
        return
    table = Table(title="Channel Profiles")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Format")
    table.add_column("Voice")
    table.add_column("Style")
    for profile in runtime.profiles.values():
        style = profile.visual_style
        table.add_row(
            profile.id,
            profile.name,
            profile.format.value,
            profile.voice_profile,
            style[:40] + "..." if len(style) > 40 else style,
        )
    console.print(table)


# --- projects -------------------------------------------------------------


@projects_app.command("create")
def projects_create(
    channel_id: str = typer.Argument(..., help="Channel profile id"),
    title: str = typer.Argument(..., help="Working title"),
    video_id: Optional[str] = typer.Option(None, "--video-id", help="Reference video id to scrape"),
    url: Optional[str] = typer.Option(None, "--url", help="Reference video URL"),
    transcript_file: Optional[Path] = typer.Option(
        None, "--transcript", exists=True, dir_okay=False, help="Transcript text file"
    ),
):
    """Create a project at the Reference stage."""
    transcript = transcript_file.read_text(encoding="utf-8") if transcript_file else None
    _run(_projects_create_async(channel_id, title, video_id, url, transcript))


async def _projects_create_async(channel_id, title, video_id, url, transcript):
    runtime = await build_runtime()
    if runtime.get_profile(channel_id) is None:
        _fail(f"Profile not found: {channel_id}")
    project = await runtime.projects.create_project(
        channel_id, title, video_id=video_id, url=url, transcript=transcript,
    )
    console.print(f"[green]Created project:[/green] {project.id}")


@projects_app.command("list")
def projects_list(
    channel_id: Optional[str] = typer.Option(None, "--channel", "-c", help="Filter by channel"),
):
    """List projects with their stage and status."""
    _run(_projects_list_async(channel_id))


async def _projects_list_async(channel_id: Optional[str]):
    runtime = await build_runtime()
    projects = runtime.projects.list_projects(channel_id)
    if not projects:
        console.print("[yellow]No projects found.[/yellow]")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Updated")
    for project in projects:
        status = project.status
        color = _STATUS_COLORS.get(status, "white")
        title = project.title[:40] + "..." if len(project.title) > 40 else project.title
        table.add_row(
            project.id,
            title,
            project.current_stage.value,
            f"[{color}]{status.value}[/{color}]",
            project.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    errors = [p for p in projects if p.error_message]
    for project in errors:
        console.print(f"[red]{project.id}:[/red] {project.error_message}")


@projects_app.command("auto")
def projects_auto(
    project_ids: list[str] = typer.Argument(..., help="Projects to advance"),
):
    """Advance projects by one automatic generation each."""
    _run(_projects_auto_async(project_ids))


async def _projects_auto_async(project_ids: list[str]):
    runtime = await build_runtime()
    with console.status("[bold green]Generating..."):
        result = await runtime.batch.batch_auto_advance(project_ids)
    _print_batch(result, "Automatic advance")
    if result.failed:
        raise typer.Exit(code=1)


@projects_app.command("manual")
def projects_manual(
    project_ids: list[str] = typer.Argument(..., help="Projects to advance (all at one stage)"),
    text_file: Optional[Path] = typer.Option(
        None, "--text", exists=True, dir_okay=False, help="File whose text becomes the payload"
    ),
    file_url: Optional[str] = typer.Option(None, "--file", help="Path or URL of an uploaded artifact"),
):
    """Advance projects with a manually supplied payload for their next stage."""
    text = text_file.read_text(encoding="utf-8") if text_file else None
    _run(_projects_manual_async(project_ids, ManualInput(text=text, file_url=file_url)))


async def _projects_manual_async(project_ids: list[str], manual: ManualInput):
    runtime = await build_runtime()
    try:
        result = await runtime.batch.batch_manual_advance(manual, project_ids)
    except ShortFactoryError as e:
        _fail(str(e))
    _print_batch(result, "Manual advance")
    if result.failed:
        raise typer.Exit(code=1)


@projects_app.command("approve")
def projects_approve(
    project_ids: Optional[list[str]] = typer.Argument(None, help="Projects to approve (default: all in review)"),
    transcript_file: Optional[Path] = typer.Option(
        None, "--transcript", exists=True, dir_okay=False,
        help="Edited transcript replacing the scraped one (single project only)",
    ),
):
    """Approve reviewed transcripts and move the projects to Script."""
    transcripts = None
    if transcript_file:
        if not project_ids or len(project_ids) != 1:
            _fail("--transcript needs exactly one project id")
        transcripts = {project_ids[0]: transcript_file.read_text(encoding="utf-8")}
    _run(_projects_approve_async(project_ids or None, transcripts))


async def _projects_approve_async(project_ids, transcripts):
    runtime = await build_runtime()
    if project_ids is None:
        reviews = runtime.batch.pending_reviews()
        if not reviews:
            console.print("[yellow]No projects awaiting review.[/yellow]")
            return
        for project in reviews:
            reference = project.payload(Stage.REFERENCE)
            text = (reference.transcript or "") if reference else ""
            console.print(Panel(
                text[:600] + ("..." if len(text) > 600 else ""),
                title=f"{project.title} ({project.id})",
                border_style="cyan",
            ))
    result = await runtime.batch.approve_reviews(project_ids, transcripts)
    _print_batch(result, "Review approval")
    if result.failed:
        raise typer.Exit(code=1)


@projects_app.command("reset")
def projects_reset(project_id: str = typer.Argument(..., help="Project id")):
    """Clear a project's error so it can be retried."""
    _run(_projects_reset_async(project_id))


async def _projects_reset_async(project_id: str):
    runtime = await build_runtime()
    try:
        project = await runtime.projects.reset(project_id)
    except ShortFactoryError as e:
        _fail(str(e))
    console.print(f"[green]Reset:[/green] {project.id} is {project.status.value} at {project.current_stage.value}")


@projects_app.command("move")
def projects_move(
    project_id: str = typer.Argument(..., help="Project id"),
    stage: Stage = typer.Argument(..., help="Target stage"),
):
    """Move a project to any stage, skipping prerequisite checks."""
    _run(_projects_move_async(project_id, stage))


async def _projects_move_async(project_id: str, stage: Stage):
    runtime = await build_runtime()
    try:
        project = await runtime.projects.move(project_id, stage)
    except ShortFactoryError as e:
        _fail(str(e))
    console.print(f"[yellow]Moved:[/yellow] {project.id} -> {project.current_stage.value}")


@projects_app.command("delete")
def projects_delete(project_ids: list[str] = typer.Argument(..., help="Projects to delete")):
    """Delete projects."""
    _run(_projects_delete_async(project_ids))


async def _projects_delete_async(project_ids: list[str]):
    runtime = await build_runtime()
    result = await runtime.batch.batch_delete(project_ids)
    _print_batch(result, "Delete")


# --- jobs -----------------------------------------------------------------


def _print_job(job: Job) -> None:
    color = _JOB_COLORS.get(job.status, "white")
    lines = [
        f"[bold]Theme:[/bold] {job.theme}",
        f"[bold]Status:[/bold] [{color}]{job.status.value}[/{color}]",
        f"[bold]Step:[/bold] {job.current_step.value}",
        f"[bold]Progress:[/bold] {job.progress}%",
    ]
    if job.result is not None:
        lines.append(f"[bold]Scenes:[/bold] {len(job.result.storyboard)}")
        lines.append(f"[bold]Audio:[/bold] {job.result.master_audio_url or '-'}")
    if job.metadata and job.metadata.titles:
        lines.append(f"[bold]Title:[/bold] {job.metadata.titles[0]}")
    if job.output_path:
        lines.append(f"[bold]Output:[/bold] {job.output_path}")
    console.print(Panel("\n".join(lines), title=f"Job {job.id}", border_style=color))
    for entry in job.logs:
        level_color = _LOG_COLORS.get(entry.level, "white")
        console.print(f"  [{level_color}]{entry.level:<7}[/{level_color}] {entry.message}")


def _get_job(runtime: Runtime, job_id: str) -> Job:
    job = runtime.jobs.jobs.get(job_id)
    if job is None:
        _fail(f"Job not found: {job_id}")
    return job


@jobs_app.command("run")
def jobs_run(
    channel_id: str = typer.Argument(..., help="Channel profile id"),
    theme: str = typer.Argument(..., help="Video theme"),
    model_channel: Optional[str] = typer.Option(None, "--model-channel", help="Channel to imitate"),
    reference_file: Optional[Path] = typer.Option(
        None, "--reference", exists=True, dir_okay=False, help="Reference script text file"
    ),
):
    """Generate script, images, narration and metadata, then stop for review."""
    reference = reference_file.read_text(encoding="utf-8") if reference_file else None
    _run(_jobs_run_async(channel_id, theme, model_channel, reference))


async def _jobs_run_async(channel_id, theme, model_channel, reference):
    runtime = await build_runtime()
    if runtime.get_profile(channel_id) is None:
        _fail(f"Profile not found: {channel_id}")
    job = runtime.jobs.create_job(theme, channel_id, model_channel=model_channel, reference_script=reference)
    with console.status("[bold green]Running job..."):
        await runtime.jobs.drain()
    job = runtime.jobs.jobs[job.id]
    _print_job(job)
    if job.status == JobStatus.FAILED:
        raise typer.Exit(code=1)
    console.print(f"[cyan]Review the job, then render with:[/cyan] shortfactory jobs render {job.id}")


@jobs_app.command("render")
def jobs_render(job_id: str = typer.Argument(..., help="Job id")):
    """Render a reviewed job into a video."""
    _run(_jobs_render_async(job_id))


async def _jobs_render_async(job_id: str):
    runtime = await build_runtime()
    if not await asyncio.to_thread(runtime.providers.renderer.is_available):
        _fail(FFMPEG_INSTALL_HINT)
    job = _get_job(runtime, job_id)
    try:
        with console.status("[bold green]Rendering..."):
            job = await runtime.jobs.render_job(job)
    except ShortFactoryError as e:
        _fail(str(e))
    _print_job(job)
    if job.status == JobStatus.FAILED:
        raise typer.Exit(code=1)


@jobs_app.command("list")
def jobs_list():
    """List jobs."""
    _run(_jobs_list_async())


async def _jobs_list_async():
    runtime = await build_runtime()
    jobs = sorted(runtime.jobs.jobs.values(), key=lambda j: j.created_at, reverse=True)
    if not jobs:
        console.print("[yellow]No jobs found.[/yellow]")
        return
    table = Table(title="Jobs")
    table.add_column("ID", style="cyan")
    table.add_column("Theme")
    table.add_column("Status")
    table.add_column("Progress")
    table.add_column("Warnings")
    for job in jobs:
        color = _JOB_COLORS.get(job.status, "white")
        table.add_row(
            job.id,
            job.theme[:40],
            f"[{color}]{job.status.value}[/{color}]",
            f"{job.progress}%",
            str(len(job.warnings())),
        )
    console.print(table)


@jobs_app.command("show")
def jobs_show(job_id: str = typer.Argument(..., help="Job id")):
    """Show a job with its full log."""
    _run(_jobs_show_async(job_id))


async def _jobs_show_async(job_id: str):
    runtime = await build_runtime()
    _print_job(_get_job(runtime, job_id))
