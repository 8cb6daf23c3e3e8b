# ABOUTME: Completion reporter printing the run summary and next steps
# ABOUTME: Push instructions, apply/upgrade hints and advisory warnings via rich

"""Completion Reporter."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

from helmgen.errors import AdvisoryWarning
from helmgen.images import IMAGE_CHECK_SOURCE
from helmgen.writer import APPLY_SCRIPT, UPGRADE_SCRIPT

if TYPE_CHECKING:
    from pathlib import Path

    from helmgen.errors import WarningLedger
    from helmgen.models import DeploymentPlan

logger = structlog.get_logger(__name__)

SCRIPT_SOURCE = "scripts"
EXECUTABLE_MODE = 0o755

SUCCESS_HEADLINE = "Helm configuration successfully generated!"
WARNING_HEADLINE = "Helm configuration generated, but no Jib cache found"


def push_instructions(plan: DeploymentPlan) -> list[str]:
    """Tag and push commands for every application, in folder order."""
    lines = []
    for folder in plan.apps_folders:
        app = plan.app_for(folder)
        if app.source_image_name != app.target_image_name:
            lines.append(f"docker image tag {app.source_image_name} {app.target_image_name}")
        lines.append(f"{plan.docker_push_command} {app.target_image_name}")
    return lines


def make_scripts_executable(destination: Path) -> list[AdvisoryWarning]:
    warnings = []
    for script in (APPLY_SCRIPT, UPGRADE_SCRIPT):
        path = destination / script
        try:
            os.chmod(path, EXECUTABLE_MODE)
        except OSError as e:
            logger.warning("Cannot make script executable", path=str(path), error=str(e))
            warnings.append(
                AdvisoryWarning(
                    source=SCRIPT_SOURCE,
                    message=f"Could not make {script} executable ({e.strerror or e})",
                    hint=f"Run it with: bash {script}",
                )
            )
    return warnings


class CompletionReporter:
    """Prints the final report; every advisory warning is shown exactly once."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def report(self, plan: DeploymentPlan, warnings: WarningLedger) -> None:
        """
        Print the headline, push and deploy instructions, then leftover warnings.

        Only missing image builds switch the headline to WARNING_HEADLINE, since
        they are the one gap that blocks deploying the generated charts. Probe
        and chmod warnings keep the success headline and are listed after the
        deploy instructions.
        """
        console = self._console
        image_warnings = warnings.from_source(IMAGE_CHECK_SOURCE)

        if image_warnings:
            console.print(f"\n[yellow bold]WARNING![/yellow bold] {WARNING_HEADLINE}")
            console.print("You will need to build your images before deploying. For each application, run:")
            for warning in image_warnings:
                if warning.hint:
                    console.print(f"  [cyan]{warning.hint}[/cyan]", highlight=False)
        else:
            console.print(f"\n[green bold]{SUCCESS_HEADLINE}[/green bold]")

        console.print("\nYou need to push your images to a registry:")
        for line in push_instructions(plan):
            console.print(f"  [cyan]{line}[/cyan]", highlight=False)

        console.print("\nDeploy all applications by running:")
        console.print(f"  [cyan]bash {APPLY_SCRIPT}[/cyan]")
        console.print("Upgrade all applications (if no chart changes) by running:")
        console.print(f"  [cyan]bash {UPGRADE_SCRIPT}[/cyan]")

        remaining = [w for w in warnings if w.source != IMAGE_CHECK_SOURCE]
        if remaining:
            console.print()
            for warning in remaining:
                console.print(f"[yellow]WARNING:[/yellow] {warning.format_message()}", highlight=False)

        logger.info(
            "Report printed",
            apps=len(plan.apps_folders),
            warnings=len(warnings),
            headline="warning" if image_warnings else "success",
        )
