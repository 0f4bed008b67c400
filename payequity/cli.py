"""Command line entrypoint: run imports, risk computations and reports without the HTTP API."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from payequity.container import ServiceContainer, build_container
from payequity.core import get_settings
from payequity.core.errors import PayEquityError
from payequity.core.log import get_logger, init_logging, log_context, progress_manager, timeit
from payequity.models import SYSTEM_TRIGGER, RiskRunStatus
from payequity.services import RiskResultsService

logger = get_logger(__name__)
console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="payequity", description=__doc__)
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    import_cmd = commands.add_parser("import", help="Import an employee CSV export")
    import_cmd.add_argument("file", type=Path, help="CSV file to import")
    import_cmd.add_argument("--org", required=True, help="Organization id")
    import_cmd.add_argument("--user", default=SYSTEM_TRIGGER, help="User id recorded on the import")
    import_cmd.add_argument(
        "--mapping", type=Path, default=None, help="JSON file with a field-to-column mapping to use"
    )

    risk_cmd = commands.add_parser("risk", help="Run the risk computation and print the groups")
    risk_cmd.add_argument("--org", required=True, help="Organization id")

    report_cmd = commands.add_parser("report", help="Generate a narrative report for a completed run")
    report_cmd.add_argument("--org", required=True, help="Organization id")
    report_cmd.add_argument("--run-id", default=None, help="Risk run id (defaults to the latest)")

    return parser.parse_args(argv)


def _print_mapping(mapping: dict[str, str | None], confidence: dict[str, float]) -> None:
    table = Table(title="Column mapping")
    table.add_column("Field")
    table.add_column("Column")
    table.add_column("Confidence", justify="right")
    for field, column in mapping.items():
        table.add_row(field, column or "-", f"{confidence.get(field, 0):.2f}")
    console.print(table)


def run_import(container: ServiceContainer, args: argparse.Namespace) -> int:
    service = container.import_service
    stored = service.store_upload(args.file.name, args.file.read_bytes())

    result = asyncio.run(
        service.create_upload(
            organization_id=args.org,
            user_id=args.user,
            file_name=args.file.name,
            file_path=stored,
        )
    )
    _print_mapping(result.mapping.mapping, result.mapping.confidence)

    mapping = result.mapping.mapping
    if args.mapping is not None:
        mapping = json.loads(args.mapping.read_text(encoding="utf-8"))

    with log_context.scoped(import_id=result.job.id):
        service.confirm_mapping(args.org, result.job.id, mapping, user_id=args.user)
        with progress_manager.spinner(f"Importing {result.sample.total_rows} rows"):
            container.runner.drain()

    job = service.get_import(args.org, result.job.id)
    console.print(
        f"Import {job.id}: {job.status} "
        f"(created={job.created_count}, updated={job.updated_count}, errors={job.error_count})"
    )
    for error in job.errors_json or []:
        console.print(f"  row {error['row']}: {error['message']}")
    return 0 if job.status != "FAILED" else 1


def run_risk(container: ServiceContainer, args: argparse.Namespace) -> int:
    with timeit("risk run", logger=logger):
        run_id = container.risk_engine.run_synchronously(args.org, SYSTEM_TRIGGER)

    session = container.session_factory()
    try:
        run, groups = RiskResultsService(session).get_run_with_groups(args.org, run_id)
    finally:
        session.close()

    table = Table(title=f"Risk run {run_id} ({run.status})")
    for header in ("Group", "Women", "Men", "Gap %", "State", "Notes"):
        table.add_column(header)
    for group in groups:
        table.add_row(
            group.group_key,
            str(group.women_count),
            str(group.men_count),
            f"{group.gap_pct:.1f}",
            group.risk_state,
            group.notes or "",
        )
    console.print(table)
    return 0 if run.status == RiskRunStatus.COMPLETED.value else 1


def run_report(container: ServiceContainer, args: argparse.Namespace) -> int:
    session = container.session_factory()
    try:
        results = RiskResultsService(session)
        run = results.get_run(args.org, args.run_id) if args.run_id else results.latest_completed_run(args.org)
        if run is None or run.status != RiskRunStatus.COMPLETED.value:
            console.print("No completed risk run available")
            return 1
        _, groups = results.get_run_with_groups(args.org, run.id)

        with progress_manager.spinner("Generating narrative report"):
            narrative = asyncio.run(container.narrative_builder.generate(groups))
        if narrative is None:
            console.print("No report was produced")
            return 1

        results.save_report(args.org, run.id, narrative)
    finally:
        session.close()

    console.print(narrative.summary)
    return 0


COMMANDS = {
    "import": run_import,
    "risk": run_risk,
    "report": run_report,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    init_logging(**({"level": args.log_level} if args.log_level else {}))
    log_context.bind(job=args.command, org_id=getattr(args, "org", None))

    container = build_container(get_settings())
    try:
        container.create_schema()
        if args.command == "init-db":
            logger.info("Database schema ready")
            return 0
        return COMMANDS[args.command](container, args)
    except PayEquityError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        container.shutdown(wait=True)


if __name__ == "__main__":
    sys.exit(main())
