"""Rendering of run reports for operators and machines."""

import logging
from typing import Any

from endpoint_probe.config import ProbeSettings
from endpoint_probe.models.result import ProbeResult
from endpoint_probe.orchestrator import RunReport

OUTCOME_SYMBOLS = {
    "success": "✅",
    "partial": "⚠️",
    "failure": "❌",
}

FAILURE_TEXT = "0 - Error occurred"


def _enabled(flag: bool) -> str:
    return "Enabled" if flag else "Disabled"


def log_configuration(log: logging.Logger, settings: ProbeSettings) -> None:
    """Log the configuration banner."""
    log.info("Configuration:")
    log.info("gRPC URL: %s", settings.grpc_url)
    log.info("HTTP URL: %s", settings.http_url)
    log.info("WebSocket URL: %s", settings.ws_url)
    log.info("Test Duration: %d seconds", settings.test_duration)
    log.info("Test Interval: %d seconds", settings.test_interval)
    log.info("Tracked Accounts: %s", ", ".join(settings.copy_accounts))
    log.info("Test gRPC Stream: %s", _enabled(settings.test_grpc_stream))
    log.info("Test gRPC Calls: %s", _enabled(settings.test_grpc_calls))
    log.info("Test WebSocket Stream: %s", _enabled(settings.test_websocket_stream))
    log.info("Test HTTP Calls: %s", _enabled(settings.test_http_calls))


def render_values(result: ProbeResult) -> tuple[str, str]:
    """Return the displayed run time and data count of a result."""
    if result.outcome == "failure":
        return FAILURE_TEXT, FAILURE_TEXT
    elapsed = result.elapsed or "0 seconds"
    if result.outcome == "partial":
        return (
            f"{elapsed} - Error occurred",
            f"{result.event_count} - Error occurred",
        )
    return elapsed, str(result.event_count)


def log_report(log: logging.Logger, report: RunReport) -> None:
    """Log the per-probe results followed by the configuration used."""
    log.info("=" * 80)
    log.info("Test Results:")
    log.info("=" * 80)

    for kind, result in report.results.items():
        symbol = OUTCOME_SYMBOLS[result.outcome]
        run_time, data_count = render_values(result)
        log.info("%s %s Results:", symbol, report.labels.get(kind, kind))
        log.info("  Run Time: %s", run_time)
        log.info("  Data Count: %s", data_count)
        if result.message:
            log.info("  Message: %s", result.message)

    log.info("Configuration used in tests:")
    log_configuration(log, report.settings)
    log.info("Done in %s", report.total_elapsed or "0 seconds")


def format_output(report: RunReport) -> dict[str, Any]:
    """Format a run report for JSON output."""
    results = [
        {
            "transport": kind,
            "outcome": result.outcome,
            "elapsed": result.elapsed,
            "event_count": result.event_count,
            "failed": result.failed,
            "message": result.message,
        }
        for kind, result in report.results.items()
    ]

    return {
        "total": len(results),
        "succeeded": sum(1 for r in results if r["outcome"] == "success"),
        "partial": sum(1 for r in results if r["outcome"] == "partial"),
        "failed": sum(1 for r in results if r["outcome"] == "failure"),
        "total_elapsed": report.total_elapsed,
        "results": results,
    }
