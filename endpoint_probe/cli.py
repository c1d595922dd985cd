"""CLI entry point for the endpoint connectivity benchmark."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from endpoint_probe.config import ConfigurationError, ProbeSettings
from endpoint_probe.orchestrator import ProbeOrchestrator
from endpoint_probe.report import format_output, log_configuration, log_report

log = logging.getLogger("endpoint_probe")


def load_settings(
    env_file: Path, environ: Mapping[str, str] = os.environ
) -> ProbeSettings:
    """Load the env file, if any, then read settings from the environment.

    Variables already set in the environment take precedence over the file.
    """
    if env_file.is_file():
        load_dotenv(env_file, override=False)
    return ProbeSettings.from_environ(environ)


async def run(settings: ProbeSettings) -> int:
    """Run all enabled probes and return exit code."""
    log_configuration(log, settings)

    report = await ProbeOrchestrator(settings=settings).run()

    log_report(log, report)
    print(json.dumps(format_output(report), indent=2))

    return 1 if any(result.failed for result in report.results.values()) else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Benchmark gRPC, WebSocket and HTTP blockchain endpoints"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to a .env file with the test configuration",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_settings(args.env_file)
    except (ConfigurationError, ValidationError) as e:
        log.error("Invalid configuration: %s", e)
        sys.exit(1)

    try:
        exit_code = asyncio.run(run(settings))
    except KeyboardInterrupt:
        log.warning("Interrupted, aborting remaining tests")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
