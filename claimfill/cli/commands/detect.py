"""Show how every field of a page would be classified."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from .common import load_known_values, resolve_settings

console = Console()


@click.command(name="detect")
@click.argument("source")
@click.option("--profile", "profile_path", type=click.Path(exists=True, dir_okay=False), help="Profile or claim packet JSON")
@click.option("--answers", "answers_path", type=click.Path(exists=True, dir_okay=False), help="Case answers JSON")
@click.option("--triage", type=click.Choice(["none", "http", "openai"]), help="Override the triage backend")
@click.option("--explain", "explain_field", help="Print the per-tier trace for one field id")
@click.option("--headless/--headed", default=True, help="Browser mode when SOURCE is a URL")
def detect_command(
    source: str,
    profile_path: Optional[str],
    answers_path: Optional[str],
    triage: Optional[str],
    explain_field: Optional[str],
    headless: bool,
):
    """
    Classify the fields of a saved page or a URL without writing anything.

    SOURCE: Path to an HTML file, or an http(s) URL.

    Examples:

      claimfill detect claim_form.html

      claimfill detect https://example.com/claim --explain email
    """
    asyncio.run(_detect(source, profile_path, answers_path, triage, explain_field, headless))


async def _load_source(source: str, headless: bool):
    if source.startswith(("http://", "https://")):
        from claimfill.browser.snapshot import open_page, snapshot_page

        async with open_page(source, headless=headless) as page:
            return await snapshot_page(page)
    path = Path(source)
    if not path.is_file():
        raise click.BadParameter(f"{source} is neither a file nor an http(s) URL", param_hint="SOURCE")
    return path.read_text(encoding="utf-8")


async def _detect(
    source: str,
    profile_path: Optional[str],
    answers_path: Optional[str],
    triage: Optional[str],
    explain_field: Optional[str],
    headless: bool,
):
    from claimfill.autofill import AutofillEngine
    from claimfill.forms.records import FieldCategory

    known_values = load_known_values(profile_path, answers_path)
    engine = AutofillEngine(settings=resolve_settings(triage))

    page = await _load_source(source, headless)
    descriptors = engine.describe(page)
    if not descriptors:
        console.print("[yellow]No fillable fields found[/yellow]")
        return

    classifications, method = await engine.classify(descriptors, known_values)

    table = Table(
        title=f"Detected Fields (triage: {method})",
        show_header=True,
        header_style="bold cyan",
        border_style="cyan",
    )
    table.add_column("Field", style="yellow")
    table.add_column("Type")
    table.add_column("Label")
    table.add_column("Source", style="dim")
    table.add_column("Category", style="magenta")
    table.add_column("Tier")
    table.add_column("Key", style="green")
    table.add_column("Confidence", justify="right")

    rows: List[Tuple[str, ...]] = []
    for descriptor in descriptors:
        classification = classifications[descriptor.field_id]
        tier = key = confidence = ""
        if classification.category == FieldCategory.PROFILE and not descriptor.is_file:
            match = engine.matcher.match(descriptor, suggested_key=classification.suggested_key)
            if match is not None:
                tier, key, confidence = str(match.tier), match.key, f"{match.confidence:.2f}"
        elif classification.suggested_key:
            key = classification.suggested_key
        rows.append(
            (
                descriptor.field_id,
                descriptor.input_type if descriptor.tag == "input" else descriptor.tag,
                descriptor.label[:40],
                descriptor.accessible_name.source,
                classification.category.value,
                tier,
                key,
                confidence,
            )
        )
    for row in rows:
        table.add_row(*row)
    console.print(table)

    if explain_field:
        target = next((d for d in descriptors if d.field_id == explain_field), None)
        if target is None:
            console.print(f"[red]No field with id {explain_field!r}[/red]")
            return
        trace = engine.matcher.explain(target, suggested_key=classifications[target.field_id].suggested_key)
        trace_table = Table(title=f"Tier trace for {explain_field}", header_style="bold magenta", border_style="magenta")
        trace_table.add_column("Tier", width=5)
        trace_table.add_column("Outcome", style="cyan")
        trace_table.add_column("Key", style="yellow")
        trace_table.add_column("Confidence", justify="right")
        trace_table.add_column("Detail", style="dim")
        for step in trace:
            trace_table.add_row(
                step["tier"],
                step["outcome"],
                step["key"] or "",
                "" if step["confidence"] is None else f"{step['confidence']:.2f}",
                step["detail"],
            )
        console.print(trace_table)
