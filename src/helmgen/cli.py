# ABOUTME: Command-line entry point for helmgen
# ABOUTME: Builds settings, logging and the prompter, then runs the generation pipeline

"""
helmgen command line.

    helmgen                             interactive run in the current directory
    helmgen -d k8s --answers ans.yaml   non-interactive run from a YAML file
    helmgen --regenerate                reuse the previous run's answers

Exit codes: 0 on success (including a report with warnings), 1 on a fatal
error, 130 when the questions are cancelled.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console

from helmgen import __version__
from helmgen.config import GeneratorSettings, load_settings
from helmgen.errors import CollectionAborted, ConfigurationError, HelmgenError
from helmgen.pipeline import GenerationPipeline
from helmgen.prompts import QuestionaryPrompter, ScriptedPrompter, load_answers_file
from helmgen.reporter import CompletionReporter
from helmgen.store import ConfigurationStore
from helmgen.utils.logging import configure_logging, get_run_id

logger = structlog.get_logger(__name__)

EXIT_FATAL = 1
EXIT_ABORTED = 130

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_prompter(
    settings: GeneratorSettings,
    destination: Path,
    answers_file: Path | None,
    regenerate: bool,
    console: Console,
) -> QuestionaryPrompter | ScriptedPrompter:
    """Interactive prompts unless answers come from a file or the previous run.

    Unanswered questions fall back to their defaults, which the collector
    derives from the stored configuration filtered against the applications
    discovered now.
    """
    if not answers_file and not regenerate:
        return QuestionaryPrompter(console)

    if regenerate:
        stored = ConfigurationStore(destination / settings.store_file, settings.store_section).load()
        if not stored.has_previous_run:
            raise ConfigurationError(
                "No previous configuration to regenerate from", destination / settings.store_file
            )
    answers = load_answers_file(answers_file) if answers_file else {}
    return ScriptedPrompter(answers, use_defaults=True)


@click.command()
@click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory receiving the charts and holding the configuration store",
)
@click.option(
    "--answers",
    "answers_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file of answers keyed by field name",
)
@click.option("--regenerate", is_flag=True, help="Reuse the stored answers without asking")
@click.option("--skip-checks", is_flag=True, help="Skip the helm client check")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), help="Override HELMGEN_LOG_LEVEL")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines on stderr")
@click.version_option(__version__, prog_name="helmgen")
def main(destination, answers_file, regenerate, skip_checks, log_level, json_logs):
    """Generate Helm charts for a set of JHipster applications."""
    console = Console()
    try:
        settings = load_settings()
    except SettingsValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}", highlight=False)
        sys.exit(EXIT_FATAL)

    overrides = {}
    if log_level:
        overrides["log_level"] = log_level.upper()
    if json_logs:
        overrides["json_logs"] = True
    if skip_checks:
        overrides["skip_checks"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    logger.info("helmgen starting", version=__version__, run=get_run_id())

    console.print(f"[bold cyan]helmgen[/bold cyan] {__version__}  Helm chart generator")
    console.print(f"Charts will be written to [bold]{destination.resolve()}[/bold]\n")

    try:
        destination.mkdir(parents=True, exist_ok=True)
        prompter = build_prompter(settings, destination, answers_file, regenerate, console)
        pipeline = GenerationPipeline(settings, prompter, reporter=CompletionReporter(console))
        asyncio.run(pipeline.run(destination))
    except (CollectionAborted, KeyboardInterrupt):
        logger.info("Generation aborted")
        console.print("\n[yellow]Aborted.[/yellow]")
        sys.exit(EXIT_ABORTED)
    except (HelmgenError, OSError) as e:
        logger.error("Generation failed", error=str(e))
        console.print(f"[red bold]Error:[/red bold] {e}", highlight=False)
        sys.exit(EXIT_FATAL)
