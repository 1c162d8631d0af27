"""Offline sweep over a saved HTML page."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from .common import load_known_values, print_summary, resolve_settings

console = Console()


@click.command(name="fill")
@click.argument("html_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--profile", "profile_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Profile or claim packet JSON")
@click.option("--answers", "answers_path", type=click.Path(exists=True, dir_okay=False), help="Case answers JSON")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False), help="Where to write the filled HTML")
@click.option("--triage", type=click.Choice(["none", "http", "openai"]), help="Override the triage backend")
@click.option("--max-fills", type=int, help="Maximum number of writes for this sweep (0 = unlimited)")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def fill_command(
    html_path: str,
    profile_path: str,
    answers_path: Optional[str],
    output_path: Optional[str],
    triage: Optional[str],
    max_fills: Optional[int],
    as_json: bool,
):
    """
    Fill a saved claim form from a profile.

    HTML_PATH: The saved page to fill.

    Examples:

      claimfill fill claim_form.html --profile me.json -o filled.html

      claimfill fill claim_form.html --profile packet.json --triage http --json
    """
    asyncio.run(_fill(html_path, profile_path, answers_path, output_path, triage, max_fills, as_json))


async def _fill(
    html_path: str,
    profile_path: str,
    answers_path: Optional[str],
    output_path: Optional[str],
    triage: Optional[str],
    max_fills: Optional[int],
    as_json: bool,
):
    from claimfill.autofill import AutofillEngine
    from claimfill.browser.writers import SoupPageWriter
    from claimfill.forms.descriptors import parse_html

    known_values = load_known_values(profile_path, answers_path)
    engine = AutofillEngine(settings=resolve_settings(triage, max_fills))

    document = parse_html(Path(html_path).read_text(encoding="utf-8"))
    writer = SoupPageWriter(document)
    _, result = await engine.run_sweep(document, writer, known_values)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print_summary(result)

    if output_path:
        Path(output_path).write_text(writer.html(), encoding="utf-8")
        if not as_json:
            console.print(f"\n[green]✓[/green] Filled page written to {output_path}")
