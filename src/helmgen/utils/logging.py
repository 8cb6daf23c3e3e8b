# ABOUTME: Structured logging with run IDs for helmgen
# ABOUTME: Implements the generation audit trail recorded per pipeline stage

"""
Structured logging with run IDs and a generation audit trail.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

1. STRUCTURED LOGGING: every log line is an event name plus key/value pairs,
   rendered for a terminal or as JSON.

2. RUN IDs: one short identifier per generation run, attached to every log
   line and audit entry, so two runs against the same directory can be told
   apart in a shared log.

3. AUDIT TRAIL: one entry per pipeline stage outcome (loaded, collected,
   committed, written, ...). Useful when a generated chart looks wrong and you
   want to know which answers produced it.

=============================================================================
WHY STDERR?
=============================================================================

The completion report and the interactive questions own stdout. Logs go to
stderr so `helmgen ... > report.txt` captures the report only.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# =============================================================================
# RUN ID MANAGEMENT
# =============================================================================

run_id: ContextVar[str] = ContextVar("run_id", default="")


def get_run_id() -> str:
    """
    Get the current run ID, generating one on first access.

    Returns:
        8-character run ID string.
    """
    rid = run_id.get()
    if not rid:
        rid = str(uuid.uuid4())[:8]
        run_id.set(rid)
    return rid


def set_run_id(rid: str) -> None:
    """Set the run ID for the current context ("" forces a new one on next access)."""
    run_id.set(rid)


def add_run_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor adding the run ID to every event."""
    event_dict["run_id"] = get_run_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging. Call once at startup.

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: values bound via structlog.contextvars
    2. add_log_level: "level" field
    3. TimeStamper: ISO 8601 timestamp
    4. add_run_id: the run ID
    5. Renderer: JSON or colored console text

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: JSON lines when True, console text otherwise.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_run_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.WARNING)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# GENERATION AUDIT
# =============================================================================


class GenerationAudit:
    """
    Records the outcome of each pipeline stage.

    EXAMPLE ENTRIES:
    ----------------
    {"timestamp": "...", "run_id": "1f0c2a9e", "stage": "collect",
     "target": "/work/k8s", "result": "success", "details": {"steps": 12}}

    {"timestamp": "...", "run_id": "1f0c2a9e", "stage": "reconcile",
     "target": "/work/k8s", "result": "error",
     "details": {"error": "Deployment plan failed validation - ..."}}

    With a log path, entries are appended to that file as JSON lines.
    Without one, they go through structlog like any other event.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        stage: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Record a stage outcome.

        Args:
            stage: Pipeline stage ("load", "collect", "reconcile", "commit", ...)
            target: What the stage acted on, usually the destination directory
            result: "success", "skipped" or "error"
            details: Extra context; never include secret values here
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "run_id": get_run_id(),
            "stage": stage,
            "target": target,
            "result": result,
        }
        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry) + "\n")
        else:
            self._logger.info(
                "audit",
                stage=stage,
                target=target,
                result=result,
                details=details,
            )

    def log_success(
        self,
        stage: str,
        target: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.log(stage, target, "success", details)

    def log_skipped(self, stage: str, target: str, reason: str) -> None:
        self.log(stage, target, "skipped", {"reason": reason})

    def log_error(self, stage: str, target: str, error: str) -> None:
        self.log(stage, target, "error", {"error": error})
