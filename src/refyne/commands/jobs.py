"""Job commands -- inspect crawl and extraction jobs.

Provides the ``refyne jobs`` group: ``list``, ``get`` and ``results``.
"""

from __future__ import annotations

import typer

from refyne.commands import build_client
from refyne.output import format_response, print_table

jobs_app = typer.Typer(no_args_is_help=True)


@jobs_app.command("list")
def jobs_list(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Maximum jobs to show."),
    offset: int = typer.Option(0, "--offset", min=0, help="Skip this many jobs."),
) -> None:
    """List recent jobs, newest first.

    Example::

        refyne jobs list --limit 5
    """
    with build_client(ctx) as client:
        result = client.jobs.list(limit=limit, offset=offset)
    rows = [
        [job.id, job.type, job.status, job.url, str(job.page_count), job.created_at]
        for job in result.jobs
    ]
    print_table(["ID", "Type", "Status", "URL", "Pages", "Created"], rows, title="Jobs")


@jobs_app.command("get")
def jobs_get(
    ctx: typer.Context,
    job_id: str = typer.Argument(help="Job id."),
) -> None:
    """Show one job's status and usage."""
    with build_client(ctx) as client:
        job = client.jobs.get(job_id)
    format_response(job)


@jobs_app.command("results")
def jobs_results(
    ctx: typer.Context,
    job_id: str = typer.Argument(help="Job id."),
    merge: bool = typer.Option(
        False, "--merge", help="Merge per-page results into one object."
    ),
) -> None:
    """Print the extracted results of a job."""
    with build_client(ctx) as client:
        results = client.jobs.results(job_id, merge=merge)
    format_response(results.merged if merge else results.results or [])
