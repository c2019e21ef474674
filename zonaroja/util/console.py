"""Rich console helpers for CLI output."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models.schemas import Answer, WeaknessTopic

console = Console()


def print_banner(exam_type: str, offline: bool) -> None:
    mode = "offline (deterministic ranking)" if offline else "online"
    console.print(
        Panel(
            "[bold red]Zona Roja[/bold red] — diagnóstico de admisión\n"
            f"[dim]Examen: {exam_type.upper()}  •  Modo: {mode}[/dim]",
            border_style="red",
        )
    )


def print_answer_summary(answers: Sequence[Answer]) -> None:
    table = Table(title="Respuestas por tema", show_lines=False)
    table.add_column("Tema", style="bold")
    table.add_column("Correctas", justify="right")
    table.add_column("Total", justify="right")

    totals: dict = {}
    for answer in answers:
        name = answer.topic_name.strip() or answer.topic_id
        correct, total = totals.get(name, (0, 0))
        totals[name] = (correct + int(answer.is_correct), total + 1)
    for name, (correct, total) in totals.items():
        table.add_row(name, str(correct), str(total))
    console.print(table)


def print_weakness_topics(topics: Sequence[WeaknessTopic]) -> None:
    console.print("\n[bold red]Tus Zonas Rojas[/bold red]")
    for rank, topic in enumerate(topics, 1):
        console.print(
            Panel(
                topic.description,
                title=f"{rank}. {topic.title}",
                title_align="left",
                border_style="yellow",
            )
        )
