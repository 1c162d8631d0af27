"""Sweep a live page in a Playwright browser."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

import click
from rich.console import Console
from rich.panel import Panel

from .common import load_known_values, print_summary, resolve_settings

console = Console()


@click.command(name="live")
@click.argument("url")
@click.option("--profile", "profile_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Profile or claim packet JSON")
@click.option("--answers", "answers_path", type=click.Path(exists=True, dir_okay=False), help="Case answers JSON")
@click.option("--triage", type=click.Choice(["none", "http", "openai"]), help="Override the triage backend")
@click.option("--headless/--headed", default=True, help="Run browser in headless mode")
@click.option("--review", is_flag=True, help="Confirm each low-confidence fill interactively")
@click.option("--hold", type=float, default=0.0, help="Seconds to keep the page open after the sweep")
@click.option("--clear", "clear_after", is_flag=True, help="Revert every write before closing")
def live_command(
    url: str,
    profile_path: str,
    answers_path: Optional[str],
    triage: Optional[str],
    headless: bool,
    review: bool,
    hold: float,
    clear_after: bool,
):
    """
    Open URL in a browser and fill the claim form on it.

    Examples:

      claimfill live https://example.com/claim --profile me.json --headed --review
    """
    asyncio.run(_live(url, profile_path, answers_path, triage, headless, review, hold, clear_after))


async def _live(
    url: str,
    profile_path: str,
    answers_path: Optional[str],
    triage: Optional[str],
    headless: bool,
    review: bool,
    hold: float,
    clear_after: bool,
):
    from claimfill.autofill import AutofillEngine
    from claimfill.browser.snapshot import open_page, snapshot_page
    from claimfill.browser.writers import PlaywrightPageWriter

    known_values = load_known_values(profile_path, answers_path)
    settings = resolve_settings(triage)
    engine = AutofillEngine(settings=settings)

    console.print(Panel(
        f"[bold cyan]Live Sweep[/bold cyan]\n\n"
        f"URL: [yellow]{url}[/yellow]\n"
        f"Triage: [yellow]{settings.triage_backend}[/yellow]\n"
        f"Headless: [yellow]{headless}[/yellow]",
        border_style="cyan"
    ))

    async with open_page(url, settings=settings, headless=headless) as page:
        console.print(f"[green]✓[/green] Navigated to {url}")
        snapshot = await snapshot_page(page)
        context, result = await engine.run_sweep(snapshot, PlaywrightPageWriter(page), known_values)
        print_summary(result)

        if review:
            await review_low_confidence(context, result)

        if hold > 0:
            console.print(f"[dim]Holding the page open for {hold:g}s...[/dim]")
            await asyncio.sleep(hold)

        if clear_after:
            await engine.clear(context)
            console.print("[green]✓[/green] All writes reverted")


async def review_low_confidence(context, result, confirm: Callable[..., bool] = click.confirm) -> None:
    """Ask about each low-confidence fill; rejected fills are reverted in the page.

    ``confirm`` runs in a worker thread so the browser keeps serving events
    while the prompt waits for input.
    """
    for record in list(result.low_confidence):
        question = f"Keep {record.key} = {record.value!r} in '{record.field.label or record.field.field_id}'?"
        if await asyncio.to_thread(confirm, question, default=True):
            context.accept(record)
        elif await context.reject(record):
            console.print(f"[yellow]↺[/yellow] Reverted {record.field.field_id}")
        else:
            console.print(f"[red]✗[/red] Could not revert {record.field.field_id}")
