"""CLI entry point for sending recorded test results."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from result_relay.host import CompletedTest, RunStart
from result_relay.models.errors import RelayError
from result_relay.models.result import RelayMetrics
from result_relay.pipeline import PipelineCoordinator

COMPLETED_TESTS = TypeAdapter(list[CompletedTest])


def load_completed_tests(path: Path) -> Sequence[CompletedTest]:
    """Read a JSON array of completed tests."""
    return COMPLETED_TESTS.validate_json(path.read_bytes())


def format_output(
    tests: Sequence[CompletedTest],
    metrics: RelayMetrics | None,
    errors: Sequence[RelayError],
) -> dict[str, Any]:
    """Format the delivery outcome for JSON output."""
    return {
        "total": len(tests),
        "metrics": asdict(metrics) if metrics else None,
        "errors": [
            {
                "type": error.kind,
                "message": error.message,
                "request_id": error.request_id,
                "results_affected": error.results_affected,
            }
            for error in errors
        ],
    }


async def run(
    results_path: Path,
    source: str | None = None,
    api_url: str | None = None,
    debug: bool = False,
) -> int:
    """Send the results in ``results_path`` and return exit code."""
    log = logging.getLogger("result_relay")

    try:
        tests = load_completed_tests(results_path)
    except (OSError, ValidationError) as exc:
        log.error("Cannot read %s: %s", results_path, exc)
        return 2

    errors: list[RelayError] = []
    metrics: list[RelayMetrics] = []
    options: dict[str, Any] = {
        "debug": debug,
        "on_error": errors.append,
        "on_metrics": metrics.append,
    }
    if source:
        options["source"] = source
    if api_url:
        options["api_url"] = api_url

    coordinator = PipelineCoordinator.from_options(options, framework="cli")
    coordinator.on_run_start(RunStart())
    if not coordinator.enabled:
        print(json.dumps(format_output(tests, None, errors), indent=2))
        return 1

    log.info("Sending %d result(s) from %s", len(tests), results_path)
    for test in tests:
        coordinator.on_record(test)
    await coordinator.on_run_end()

    output = format_output(tests, metrics[-1] if metrics else None, errors)
    print(json.dumps(output, indent=2))
    return 1 if errors else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Send recorded test results to the ingestion API"
    )
    parser.add_argument(
        "results",
        type=Path,
        help="JSON file containing a list of completed tests",
    )
    parser.add_argument(
        "--source",
        default=None,
        help="Source label for this run (defaults to RESULT_RELAY_SOURCE)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Ingestion API endpoint",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            results_path=args.results,
            source=args.source,
            api_url=args.api_url,
            debug=args.debug,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
