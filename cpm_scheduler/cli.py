"""
Command-line interface for the CPM scheduler.

Usage:
    python -m cpm_scheduler schedule project.json [options]

Options:
    --today YYYY-MM-DD  Status date (default: "today" in the file, else the current date)
    --output PATH       Write the annotated task table as CSV
    --json              Print the full result as JSON instead of the report
    --verbose           Debug logging
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd
from pydantic import ValidationError

from .config.settings import settings
from .cpm.engine import CPMEngine
from .cpm.models import CalculationError, CalculationResult
from .schemas.project import ProjectPayload

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def load_project(path: Path) -> ProjectPayload:
    """Read and validate a project JSON file."""
    with open(path, encoding='utf-8') as f:
        return ProjectPayload.model_validate(json.load(f))


def result_to_dataframe(result: CalculationResult) -> pd.DataFrame:
    """Annotated tasks as a flat table (one row per input row)."""
    return pd.DataFrame([t.to_dict() for t in result.tasks])


def print_report(result: CalculationResult) -> None:
    """Print schedule summary, critical path and warnings."""
    stats = result.stats

    print(f"\n{'='*80}")
    print("SCHEDULE SUMMARY")
    print(f"{'='*80}")
    print(f"  Tasks: {stats.task_count}")
    print(f"  Project Start: {stats.project_start}")
    print(f"  Project Finish: {stats.project_finish}")
    print(f"  Duration: {stats.project_duration_days} work days")
    print(f"  Critical Tasks: {stats.critical_count}")

    critical = result.get_critical_tasks()
    print(f"\n{'='*80}")
    print(f"CRITICAL PATH ({len(critical)} tasks)")
    print(f"{'='*80}")
    if critical:
        df = pd.DataFrame([{
            'id': t.id,
            'name': t.task.name,
            'start': t.start,
            'end': t.end,
            'duration': t.duration,
            'milestone': t.task.is_milestone(),
            'total_float': t.total_float,
        } for t in critical])
        print(df.to_string(index=False))
    else:
        print("  (none)")

    if result.warnings:
        print(f"\n{'='*80}")
        print(f"WARNINGS ({len(result.warnings)})")
        print(f"{'='*80}")
        for warning in result.warnings:
            print(f"  [{warning.kind.value}] {warning.message}")


def cmd_schedule(args) -> int:
    """Calculate a project file."""
    for problem in settings.validate_required_settings():
        logger.warning("Settings: %s", problem)

    try:
        project = load_project(Path(args.project))
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON in {args.project}: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print("ERROR: Project validation failed:", file=sys.stderr)
        for err in e.errors():
            location = '.'.join(str(part) for part in err['loc'])
            print(f"  - {location}: {err['msg']}", file=sys.stderr)
        return 1

    today = args.today or project.today or date.today()
    tasks, calendar = project.to_engine_input()

    try:
        result = CPMEngine(calendar).calculate(tasks, today, project.project_start)
    except CalculationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_report(result)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        result_to_dataframe(result).to_csv(output_path, index=False)
        logger.info("Schedule saved to: %s", output_path)

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="cpm_scheduler",
        description="Critical Path Method scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    schedule = subparsers.add_parser("schedule", help="Calculate a project file")
    schedule.add_argument(
        "project",
        help="Path to project JSON (tasks, calendar, optional today/projectStart)",
    )
    schedule.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        metavar="YYYY-MM-DD",
        help="Status date",
    )
    schedule.add_argument(
        "--output", "-o",
        default=None,
        help="Write annotated tasks to this CSV file",
    )
    schedule.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    schedule.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.command == "schedule":
        return cmd_schedule(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
