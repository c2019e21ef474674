"""Zona Roja CLI entrypoint — ``zonaroja-diagnose answers.json [--offline]``.

The answers file holds either a list of answers or an object with
``examType`` and ``answers`` keys, in the same shape the HTTP API accepts.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import Settings
from .errors import ValidationError
from .generation_client import get_generation_runner
from .agents.weakness import run_weakness_analysis
from .orchestration.submission import validate_submission
from .util.console import (
    console,
    print_answer_summary,
    print_banner,
    print_weakness_topics,
)
from .util.jsonio import load_json


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="zonaroja-diagnose",
        description="Rank the three weakest topics in an answer batch.",
    )
    parser.add_argument("answers_file", type=Path)
    parser.add_argument("--exam-type", default=None, help="ucr or tec")
    parser.add_argument("--offline", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    settings = Settings.from_env()

    data = load_json(args.answers_file)
    if isinstance(data, dict):
        exam_type = args.exam_type or data.get("examType", "ucr")
        raw_answers = data.get("answers", [])
    else:
        exam_type = args.exam_type or "ucr"
        raw_answers = data or []

    try:
        answers = validate_submission(
            exam_type, raw_answers, settings.max_answers_per_submission
        )
    except ValidationError as exc:
        console.print(f"[bold red]Invalid answers file:[/bold red] {exc}")
        if exc.details:
            console.print(exc.details)
        return 2

    offline = args.offline
    generation_run = None
    if not offline:
        generation_run = get_generation_runner(
            timeout=settings.generation_timeout_seconds
        )
        if generation_run is None:
            console.print(
                "[yellow]No generation backend configured — switching to offline mode.[/yellow]"
            )
            offline = True

    print_banner(exam_type, offline)
    print_answer_summary(answers)
    try:
        topics = run_weakness_analysis(
            answers,
            exam_type=exam_type.strip().lower(),
            offline=offline,
            generation_run=generation_run,
        )
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    print_weakness_topics(topics)
    return 0


if __name__ == "__main__":
    sys.exit(main())
