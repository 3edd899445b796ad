"""
Failure scenario runner.

Executes every scenario against the service at ``TARGET_URL`` (default
http://localhost:8080), writes JSON to results/failure_results.json and
prints a Rich summary table. Exits non-zero if any scenario fails.
"""
from __future__ import annotations

import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.table import Table

from failure_scenarios import FailureResult
from failure_scenarios.scenarios import (
    client_retry,
    concurrent_identical,
    independent_keys,
    malformed_request,
    user_roundtrip,
)

SERVICE_NAME = "payments"
DEFAULT_TARGET_URL = "http://localhost:8080"

SCENARIO_MODULES = [
    client_retry,
    concurrent_identical,
    independent_keys,
    malformed_request,
    user_roundtrip,
]

RESULTS_DIR = Path(os.getenv("RESULTS_DIR", Path.cwd() / "results"))


async def run_all(base_url: str) -> list[FailureResult]:
    """Run every scenario against ``base_url`` and return all results."""
    all_results: list[FailureResult] = []

    for module in SCENARIO_MODULES:
        try:
            result: FailureResult = await module.run(
                base_url=base_url, service_name=SERVICE_NAME
            )
        except Exception as exc:
            result = FailureResult(
                scenario_name=getattr(module, "SCENARIO_NAME", None)
                or getattr(module, "__name__", repr(module)),
                service=SERVICE_NAME,
                expected_outcome="no exception",
                actual_outcome="runner exception",
                correct=False,
                error=str(exc),
            )
        all_results.append(result)

    return all_results


def save_results(results: list[FailureResult], results_dir: Path = RESULTS_DIR) -> Path:
    """Serialise results to JSON."""
    results_dir.mkdir(parents=True, exist_ok=True)
    output_path = results_dir / "failure_results.json"
    serialisable = [
        {
            "scenario_name": r.scenario_name,
            "service": r.service,
            "expected_outcome": r.expected_outcome,
            "actual_outcome": r.actual_outcome,
            "correct": r.correct,
            "details": r.details,
            "error": r.error,
        }
        for r in results
    ]
    with open(output_path, "w") as fh:
        json.dump(
            {
                "run_at": datetime.now(timezone.utc).isoformat(),
                "results": serialisable,
            },
            fh,
            indent=2,
        )
    return output_path


def print_table(results: list[FailureResult], console: Console | None = None) -> None:
    """Print Rich summary table."""
    console = console or Console()
    table = Table(title="Failure Scenario Results", show_lines=True)
    table.add_column("Scenario", style="cyan", no_wrap=True)
    table.add_column("Expected", style="white")
    table.add_column("Actual", style="white")
    table.add_column("Pass/Fail", justify="center")

    for r in results:
        status = "[green]✓ PASS[/green]" if r.correct else "[red]✗ FAIL[/red]"
        table.add_row(
            r.scenario_name,
            r.expected_outcome,
            r.actual_outcome or (r.error or ""),
            status,
        )

    console.print(table)
    total = len(results)
    passed = sum(1 for r in results if r.correct)
    console.print(f"\n[bold]Total: {total}  Passed: {passed}  Failed: {total - passed}[/bold]")


async def main(base_url: str) -> bool:
    results = await run_all(base_url)
    path = save_results(results)
    print_table(results)
    print(f"\nResults written to {path}")
    return all(r.correct for r in results)


def cli() -> None:
    base_url = sys.argv[1] if len(sys.argv) > 1 else os.getenv("TARGET_URL", DEFAULT_TARGET_URL)
    sys.exit(0 if asyncio.run(main(base_url)) else 1)


if __name__ == "__main__":
    cli()
