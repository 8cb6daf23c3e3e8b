# ABOUTME: Generation pipeline running every stage in order for one destination
# ABOUTME: probe, load, collect, resolve, reconcile, commit, write, report

"""
Generation pipeline.

=============================================================================
STAGES
=============================================================================

    probe      advisory helm client check (skipped with skip_checks)
    load       read the Configuration Store
    collect    ask the deployment questions
    images     load selected apps, check image builds, resolve image names
    reconcile  generate credentials and build the validated DeploymentPlan
    commit     persist the plan's durable subset (the only store write)
    write      render charts and scripts
    report     chmod scripts, print next steps and warnings

Stages run strictly in sequence. A fatal HelmgenError at any stage is
audited and re-raised; anything before "commit" leaves the store untouched.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from helmgen.collector import DeploymentIntentCollector
from helmgen.credentials import ensure_jwt_secret, generate_db_password
from helmgen.discovery import ApplicationCatalog
from helmgen.errors import HelmgenError, WarningLedger
from helmgen.images import check_images, resolve_images
from helmgen.models import DeploymentAnswers
from helmgen.probe import HelmClientProbe, NullProbe
from helmgen.reconciler import Credentials, commit_plan, merge_plan
from helmgen.reporter import CompletionReporter, make_scripts_executable
from helmgen.store import ConfigurationStore
from helmgen.utils.logging import GenerationAudit
from helmgen.writer import DescriptorWriter

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from helmgen.config import GeneratorSettings
    from helmgen.models import DeploymentPlan
    from helmgen.probe import ToolProbe
    from helmgen.prompts import Prompter

logger = structlog.get_logger(__name__)


@dataclass
class GenerationResult:
    plan: DeploymentPlan
    files: list[Path]
    warnings: WarningLedger
    steps: list[str] = field(default_factory=list)


class GenerationPipeline:
    """
    One generation run against a destination directory.

    Every collaborator except the prompter has a default built from settings,
    so tests only need to replace what they observe.
    """

    def __init__(
        self,
        settings: GeneratorSettings,
        prompter: Prompter,
        *,
        probe: ToolProbe | None = None,
        collector: DeploymentIntentCollector | None = None,
        writer: DescriptorWriter | None = None,
        reporter: CompletionReporter | None = None,
        audit: GenerationAudit | None = None,
    ) -> None:
        self._settings = settings
        self._prompter = prompter
        if probe is None:
            probe = (
                NullProbe()
                if settings.skip_checks
                else HelmClientProbe(settings.helm_binary, settings.probe_timeout)
            )
        self._probe = probe
        self._collector = collector or DeploymentIntentCollector()
        self._writer = writer or DescriptorWriter()
        self._reporter = reporter or CompletionReporter()
        self._audit = audit or GenerationAudit(settings.audit_log)

    def store_for(self, destination: Path) -> ConfigurationStore:
        return ConfigurationStore(destination / self._settings.store_file, self._settings.store_section)

    @contextmanager
    def _stage(self, stage: str, target: str) -> Iterator[None]:
        try:
            yield
        except (HelmgenError, OSError) as e:
            self._audit.log_error(stage, target, str(e))
            raise
        logger.debug("Stage complete", stage=stage)

    async def run(self, destination: Path) -> GenerationResult:
        settings = self._settings
        target = str(destination)
        ledger = WarningLedger()

        if settings.skip_checks:
            self._audit.log_skipped("probe", settings.helm_binary, "checks disabled")
        else:
            warning = await self._probe.check_installed()
            ledger.record(warning)
            self._audit.log_success("probe", settings.helm_binary, {"warning": warning is not None})

        store = self.store_for(destination)
        with self._stage("load", target):
            stored = store.load()
        self._audit.log_success("load", str(store.path), {"previous_run": stored.has_previous_run})

        catalog = ApplicationCatalog(destination, settings.app_config_file, settings.store_section)
        answers = DeploymentAnswers()
        with self._stage("collect", target):
            steps = await self._collector.collect(
                answers,
                stored=stored,
                prompter=self._prompter,
                catalog=catalog,
                settings=settings,
            )
        self._audit.log_success("collect", target, {"steps": len(steps)})

        with self._stage("images", target):
            directory_path = answers.directory_path or ""
            root = catalog.root(directory_path)
            apps = catalog.load_all(directory_path, list(answers.apps_folders))
            ledger.extend(check_images(apps, root))
            images = resolve_images(
                apps,
                answers.docker_repository_name,
                answers.docker_push_command,
                settings.default_push_command,
                root,
            )
        self._audit.log_success("images", target, {"apps": len(images.apps)})

        with self._stage("reconcile", target):
            credentials = Credentials(
                jwt_secret_key=ensure_jwt_secret(stored.jwt_secret_key, settings.jwt_secret_bytes),
                db_random_password=generate_db_password(settings.db_password_length),
            )
            plan = merge_plan(answers, images, credentials, base=destination)
        self._audit.log_success("reconcile", target, {"apps": list(plan.apps_folders)})

        with self._stage("commit", str(store.path)):
            commit_plan(plan, store)
        self._audit.log_success("commit", str(store.path))

        with self._stage("write", target):
            files = self._writer.write(plan, destination)
        self._audit.log_success("write", target, {"files": len(files)})

        with self._stage("report", target):
            ledger.extend(make_scripts_executable(destination))
            self._reporter.report(plan, ledger)
        self._audit.log_success("report", target, {"warnings": len(ledger)})

        logger.info("Generation finished", destination=target, files=len(files), warnings=len(ledger))
        return GenerationResult(plan=plan, files=files, warnings=ledger, steps=steps)
