"""
Dockhand Controller - Main entry point.

    python -m controller.src.main worker
    python -m controller.src.main run backend --event push --ref main --sha <sha>
"""

import argparse
import logging
import sys
from typing import List, Optional

from controller.src.config import get_settings
from controller.src.models.pipeline import Event, EventKind
from controller.src.errors import PipelineConfigError
from controller.src.services.orchestrator import RunOutcome, credentials_from_settings, run_pipeline
from controller.src.services.pipeline_parser import load_pipelines
from controller.src.services.status_reporter import DatabaseReporter
from controller.src.worker import run_worker

logger = logging.getLogger(__name__)

def configure_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dockhand", description="Dockhand pipeline controller")
    parser.add_argument("--pipelines-dir", help="Directory of pipeline definitions")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("worker", help="Consume queued runs from Redis")

    run = subparsers.add_parser("run", help="Run one pipeline against an event")
    run.add_argument("pipeline", help="Pipeline name")
    run.add_argument("--event", choices=[k.value for k in EventKind], default=EventKind.PUSH.value)
    run.add_argument("--ref", default="main", help="Branch or ref that was pushed")
    run.add_argument("--sha", default="", help="Commit SHA (used for the immutable image tag)")
    run.add_argument("--actor", default="", help="Who triggered the run")
    run.add_argument("--repository", default="", help="Clone URL; omit to build --workspace as-is")
    run.add_argument("--changed", action="append", default=[], help="Changed path (repeatable)")
    run.add_argument("--workspace", help="Source tree / workspace directory")

    return parser

def print_outcome(outcome: RunOutcome):
    for result in outcome.results:
        print(f"[{result.status.value:>9}] {result.step_order}: {result.name} (exit {result.exit_code})")
        if not result.succeeded:
            print(f"            {result.error_kind}: {result.error}")
            if result.output:
                print(result.output)
    print(f"Run {outcome.run_id} of '{outcome.pipeline}' {outcome.status.value}")

def run_cli(args) -> int:
    settings = get_settings()
    pipelines = load_pipelines(args.pipelines_dir or settings.pipelines_dir)

    definition = pipelines.get(args.pipeline)
    if definition is None:
        logger.error(f"Unknown pipeline '{args.pipeline}' (known: {', '.join(sorted(pipelines)) or 'none'})")
        return 2

    event = Event(
        kind=EventKind(args.event),
        ref=args.ref,
        sha=args.sha,
        actor=args.actor or settings.registry_actor,
        repository=args.repository,
        changed_paths=tuple(args.changed),
    )

    outcome = run_pipeline(
        definition,
        event,
        credentials_from_settings(settings),
        workspace=args.workspace,
    )

    if outcome is None:
        print(f"Event {event.kind.value} on '{event.branch}' does not trigger '{definition.name}'; nothing to do")
        return 0

    print_outcome(outcome)
    return 0 if outcome.succeeded else 1

def worker_cli(args) -> int:
    settings = get_settings()
    pipelines = load_pipelines(args.pipelines_dir or settings.pipelines_dir)

    logger.info("Starting Dockhand Controller")
    logger.info(f"Pipelines: {', '.join(sorted(pipelines)) or 'none'}")
    logger.info(f"Redis URL: {settings.redis_url}")

    reporter = DatabaseReporter() if settings.report_status else None

    logger.info("Starting worker...")
    run_worker(pipelines, reporter)
    return 0

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "worker":
            return worker_cli(args)
        return run_cli(args)
    except PipelineConfigError as e:
        logger.error(f"Invalid pipeline configuration: {e}")
        return 2

if __name__ == "__main__":
    sys.exit(main())
