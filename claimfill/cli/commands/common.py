"""Helpers shared by the sweep commands: input loading and rich rendering."""
from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table

from claimfill.config import Settings, get_settings
from claimfill.forms.records import SweepResult
from claimfill.values import KnownValues

console = Console()

_PACKET_KEYS = {"userData", "user_data", "caseAnswers", "case_answers", "caseAnswerMeta", "case_answer_meta"}


def load_json(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a JSON object")
    return data


def load_known_values(profile_path: Optional[str], answers_path: Optional[str]) -> KnownValues:
    """Build known values from a profile file and an optional answers file.

    Either file may also be a whole claim packet with ``userData`` /
    ``caseAnswers`` / ``caseAnswerMeta`` sections.
    """

    profile = load_json(profile_path)
    answers = load_json(answers_path)

    packet: Dict[str, Any] = {}
    if _PACKET_KEYS & profile.keys():
        packet.update(profile)
    else:
        packet["userData"] = profile
    if _PACKET_KEYS & answers.keys():
        packet.update({key: value for key, value in answers.items() if key not in ("userData", "user_data")})
    elif answers:
        packet["caseAnswers"] = answers
    return KnownValues.from_packet(packet)


def resolve_settings(triage: Optional[str] = None, max_fills: Optional[int] = None) -> Settings:
    settings = get_settings()
    overrides: Dict[str, Any] = {}
    if triage:
        overrides["triage_backend"] = triage
    if max_fills is not None:
        overrides["max_fills_per_sweep"] = max_fills
    return dataclasses.replace(settings, **overrides) if overrides else settings


def print_summary(result: SweepResult, title: str = "Sweep Summary") -> None:
    """Render the sweep result as rich tables."""

    counts = result.counts()
    summary = Table(title=title, show_header=False, border_style="blue")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="yellow")
    summary.add_row("Triage", result.triage_method)
    summary.add_row("Filled", str(counts["filled"]))
    summary.add_row("Low confidence", str(counts["lowConfidence"]))
    summary.add_row("Pending", str(counts["pending"]))
    summary.add_row("Questions for user", str(counts["userQuestions"]))
    summary.add_row("File uploads", str(counts["fileUploads"]))
    summary.add_row("Suspicious duplicates", str(counts["duplicates"]))
    console.print(summary)

    if result.filled:
        low = {id(record) for record in result.low_confidence}
        filled = Table(title="Filled", header_style="bold green", border_style="green")
        filled.add_column("Field", style="cyan")
        filled.add_column("Label")
        filled.add_column("Key", style="yellow")
        filled.add_column("Tier")
        filled.add_column("Confidence", justify="right")
        filled.add_column("Value")
        for record in result.filled:
            confidence = f"{record.confidence:.2f}"
            if id(record) in low:
                confidence = f"[red]{confidence}[/red]"
            filled.add_row(
                record.field.field_id,
                record.field.label[:40],
                record.key,
                str(record.tier) if record.tier is not None else record.provenance,
                confidence,
                str(record.value)[:40],
            )
        console.print(filled)

    if result.pending:
        pending = Table(title="Pending", header_style="bold yellow", border_style="yellow")
        pending.add_column("Field", style="cyan")
        pending.add_column("Label")
        pending.add_column("Key")
        pending.add_column("Reason", style="yellow")
        for item in result.pending:
            pending.add_row(item.field.field_id, item.field.label[:40], item.key or "", item.reason.value)
        console.print(pending)

    prompts = result.user_questions + result.file_uploads
    if prompts:
        table = Table(title="Needs the claimant", header_style="bold magenta", border_style="magenta")
        table.add_column("Field", style="cyan")
        table.add_column("Category")
        table.add_column("Prompt")
        for prompt in prompts:
            table.add_row(prompt.field.field_id, prompt.category.value, prompt.prompt[:80])
        console.print(table)

    for group in result.duplicates:
        labels = ", ".join(record.field.label or record.field.field_id for record in group.records)
        console.print(f"[red]⚠[/red] Same value [yellow]{group.value}[/yellow] written to: {labels}")
