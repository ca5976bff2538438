import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from testtrend.adapters.storage import SQLiteStorage
from testtrend.core.engine import TrendEngine
from testtrend.core.errors import TrendError
from testtrend.core.models import BuildTestRecord, TrendConfig, TrendQuery
from testtrend.reporter import RichReporter

MAX_BUILDS_ENV = "TESTTREND_TREND_MAX"


def _max_builds(value: str) -> int | None:
    # Anything below one means no cap.
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid build count: {value!r}") from exc
    return number if number > 0 else None


def _default_max_builds() -> int | None:
    value = os.environ.get(MAX_BUILDS_ENV)
    if not value:
        return None
    try:
        return _max_builds(value)
    except argparse.ArgumentTypeError:
        return None


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--db", default=".testtrend/history.db", help="Database path")
    parser.add_argument(
        "--build", type=int, default=None, help="Build to start from (default: latest)"
    )
    parser.add_argument("--kind", default="junit", help="Result kind to follow")


def _start_record(
    engine: TrendEngine, storage: SQLiteStorage, build_number: int | None
) -> BuildTestRecord | None:
    if build_number is None:
        return engine.last_record()
    return storage.load_record(build_number, engine.config.kind)


def trend_command(
    db_path: str,
    trend_type: str,
    project_level: str,
    metric_name: str,
    order_by: str,
    failure_only: bool,
    build_number: int | None = None,
    max_builds: int | None = None,
    kind: str = "junit",
) -> None:
    config = TrendConfig(db_path=Path(db_path), max_builds=max_builds, kind=kind)
    query = TrendQuery.from_options(
        {
            "trendType": trend_type,
            "projectLevel": project_level,
            "metricName": metric_name,
            "orderBy": order_by,
            "failureOnly": failure_only,
        }
    )

    storage = SQLiteStorage(config)
    engine = TrendEngine(storage, config)
    start = _start_record(engine, storage, build_number)

    if start is None:
        Console().print("[yellow]No test history recorded.[/yellow]")
    else:
        dataset = engine.render_dataset(query, start)
        RichReporter().report(dataset, title=f"{query.trend_type.value} ({query.project_level})")

    storage.close()


def projects_command(db_path: str, build_number: int | None = None, kind: str = "junit") -> None:
    config = TrendConfig(db_path=Path(db_path), kind=kind)
    storage = SQLiteStorage(config)
    engine = TrendEngine(storage, config)
    start = _start_record(engine, storage, build_number)

    if start is None:
        Console().print("[yellow]No test history recorded.[/yellow]")
    else:
        RichReporter().report_projects(engine.project_list(start))

    storage.close()


def summary_command(db_path: str, build_number: int | None = None, kind: str = "junit") -> None:
    config = TrendConfig(db_path=Path(db_path), kind=kind)
    storage = SQLiteStorage(config)
    engine = TrendEngine(storage, config)
    start = _start_record(engine, storage, build_number)

    if start is None:
        Console().print("[yellow]No test history recorded.[/yellow]")
    else:
        summary, diff = engine.summary(start)
        RichReporter().report_summary(start, summary, diff)

    storage.close()


def clear_command(db_path: str, force: bool) -> None:
    console = Console()
    if not force:
        console.print("[yellow]This will delete all recorded builds.[/yellow]")
        response = input("Are you sure? (yes/no): ").strip().lower()
        if response != "yes":
            console.print("[red]Aborted.[/red]")
            return

    config = TrendConfig(db_path=Path(db_path))
    storage = SQLiteStorage(config)
    storage.clear()
    storage.close()

    console.print("[green]Test history cleared successfully.[/green]")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="testtrend - Test result trends over CI build history"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    trend_parser = subparsers.add_parser("trend", help="Show a test result trend")
    _add_common_args(trend_parser)
    trend_parser.add_argument(
        "--type",
        default="BuildAnalysis",
        help="BuildAnalysis, LengthyTests or FlakyTests",
    )
    trend_parser.add_argument(
        "--project", default="AllProjects", help="Package prefix to analyse"
    )
    trend_parser.add_argument(
        "--metric", default="mean", help="Lengthy test metric: mean, max, prev or threshold"
    )
    trend_parser.add_argument(
        "--order-by", default="fail", help="Flaky test ranking: fail or flap"
    )
    trend_parser.add_argument(
        "--failure-only", action="store_true", help="Only count failed tests"
    )
    trend_parser.add_argument(
        "--max-builds",
        type=_max_builds,
        default=_default_max_builds(),
        help=f"Maximum builds to visit (default: ${MAX_BUILDS_ENV} or unbounded)",
    )

    projects_parser = subparsers.add_parser("projects", help="List project levels")
    _add_common_args(projects_parser)

    summary_parser = subparsers.add_parser("summary", help="Summarize a build against the previous one")
    _add_common_args(summary_parser)

    clear_parser = subparsers.add_parser("clear", help="Clear test history")
    clear_parser.add_argument("--db", default=".testtrend/history.db", help="Database path")
    clear_parser.add_argument("--force", action="store_true", help="Skip confirmation")

    args = parser.parse_args()
    _configure_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "trend":
            trend_command(
                args.db,
                args.type,
                args.project,
                args.metric,
                args.order_by,
                args.failure_only,
                args.build,
                args.max_builds,
                args.kind,
            )
        elif args.command == "projects":
            projects_command(args.db, args.build, args.kind)
        elif args.command == "summary":
            summary_command(args.db, args.build, args.kind)
        elif args.command == "clear":
            clear_command(args.db, args.force)
        else:
            parser.print_help()
            sys.exit(1)
    except TrendError as exc:
        Console(stderr=True).print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
