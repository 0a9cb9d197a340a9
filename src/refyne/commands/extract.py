"""Extraction commands -- ``extract``, ``crawl``, ``analyze`` and ``usage``.

Each command maps one-to-one onto a client method and prints the decoded
response with :func:`~refyne.output.format_response`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer

from refyne.commands import build_client
from refyne.models import CrawlOptions
from refyne.output import format_response, info, success


def load_schema(value: str) -> dict[str, Any]:
    """Parse a ``--schema`` value: inline JSON, or ``@path`` to a JSON file.

    Raises:
        typer.BadParameter: If the file is missing or the JSON is not an object.
    """
    if value.startswith("@"):
        path = Path(value[1:]).expanduser()
        try:
            value = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise typer.BadParameter(f"cannot read schema file {path}: {exc}") from exc
    try:
        schema = json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"schema is not valid JSON: {exc}") from exc
    if not isinstance(schema, dict):
        raise typer.BadParameter("schema must be a JSON object")
    return schema


def extract_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Page to extract from."),
    schema: str = typer.Option(
        ..., "--schema", "-s", help="Schema as JSON, or @file.json."
    ),
    fetch_mode: Optional[str] = typer.Option(
        None, "--fetch-mode", help="auto, static, or dynamic."
    ),
) -> None:
    """Extract structured data from a single page.

    Example::

        refyne extract https://example.com/product --schema '{"name": "string"}'
    """
    parsed = load_schema(schema)
    with build_client(ctx) as client:
        result = client.extract(url, parsed, fetch_mode=fetch_mode)
    if result.usage is not None:
        info(
            f"Tokens: {result.usage.input_tokens} in / {result.usage.output_tokens} out, "
            f"cost ${result.usage.cost_usd:.4f}"
        )
    format_response(result.data)


def crawl_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Seed URL."),
    schema: str = typer.Option(
        ..., "--schema", "-s", help="Schema as JSON, or @file.json."
    ),
    max_pages: Optional[int] = typer.Option(
        None, "--max-pages", min=1, help="Stop after this many pages."
    ),
    follow_selector: Optional[str] = typer.Option(
        None, "--follow-selector", help="CSS selector for links to follow."
    ),
    webhook_url: Optional[str] = typer.Option(
        None, "--webhook-url", help="Notified when the job completes."
    ),
) -> None:
    """Start a crawl job and print its id.

    Example::

        refyne crawl https://example.com/blog --schema @post.json --max-pages 20
    """
    parsed = load_schema(schema)
    options = None
    if max_pages is not None or follow_selector is not None:
        options = CrawlOptions(max_pages=max_pages, follow_selector=follow_selector)
    with build_client(ctx) as client:
        job = client.crawl(url, parsed, options=options, webhook_url=webhook_url)
    success(f"Crawl job {job.job_id} started ({job.status}).")
    format_response(job)


def analyze_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Page to analyze."),
    depth: Optional[int] = typer.Option(None, "--depth", min=0, help="Link depth."),
) -> None:
    """Suggest an extraction schema for a page."""
    with build_client(ctx) as client:
        result = client.analyze(url, depth=depth)
    format_response(result)


def usage_command(ctx: typer.Context) -> None:
    """Show credit usage for the current billing period."""
    with build_client(ctx) as client:
        usage = client.get_usage()
    format_response(usage)
