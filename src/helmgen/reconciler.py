# ABOUTME: Cross-application reconciler producing the final DeploymentPlan
# ABOUTME: Enforces plan invariants before anything is committed or written

"""
Cross-Application Reconciler.

This is the single place where cross-cutting invariants are enforced. It
takes the collected answers, the resolved image configuration and the
generated credentials, and either returns a complete, frozen DeploymentPlan
or raises before any file is touched.
"""

from __future__ import annotations

import os
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from helmgen import __version__
from helmgen.errors import PathResolutionError, ValidationError
from helmgen.models import (
    CLUSTERED_DB_PEER_COUNT,
    SINGLE_DB_PEER_COUNT,
    ApplicationConfig,
    DeploymentAnswers,
    DeploymentPlan,
    ServiceType,
)
from helmgen.store import StoredConfig

if TYPE_CHECKING:
    from helmgen.images import ImageConfiguration
    from helmgen.store import ConfigurationStore

logger = structlog.get_logger(__name__)

KAFKA = "kafka"


@dataclass(frozen=True)
class Credentials:
    """Secret material for one run."""

    jwt_secret_key: str
    db_random_password: str


def derive_cluster_peer_count(app: ApplicationConfig) -> int:
    return CLUSTERED_DB_PEER_COUNT if app.clustered_db else SINGLE_DB_PEER_COUNT


def derive_use_kafka(apps: Iterable[ApplicationConfig]) -> bool:
    return any(app.message_broker == KAFKA for app in apps)


def assemble_folder_paths(
    apps_folders: Sequence[str],
    directory_root: str | None,
    base: Path | None = None,
) -> list[Path]:
    """
    Join each folder name with the configured root, preserving order.

    Args:
        apps_folders: Selected application folder names
        directory_root: Root directory, relative to base unless absolute
        base: Directory relative roots are resolved against

    Raises:
        PathResolutionError: Folders are selected but no root is configured.
    """
    if not apps_folders:
        return []
    if not directory_root:
        raise PathResolutionError(
            "Application root directory is not set",
            details=f"{len(apps_folders)} application folder(s) selected",
        )
    root = Path(directory_root)
    if base is not None:
        root = base / root
    return [Path(os.path.normpath(root / folder)) for folder in apps_folders]


def validate_plan(plan: DeploymentPlan) -> None:
    """
    Check every cross-application invariant at once.

    Raises:
        ValidationError: Listing all violations found.
    """
    violations: list[str] = []

    if not plan.apps:
        violations.append("no applications in plan")
    if [app.folder for app in plan.apps] != list(plan.apps_folders):
        violations.append("application order does not match folder order")

    registry = plan.docker_repository_name
    for app in plan.apps:
        if not app.target_image_name:
            violations.append(f"{app.folder}: empty target image name")
        elif registry and not app.target_image_name.startswith(f"{registry}/"):
            violations.append(
                f"{app.folder}: image '{app.target_image_name}' is not under registry '{registry}'"
            )
        if app.db_peer_count != derive_cluster_peer_count(app):
            violations.append(f"{app.folder}: database peer count {app.db_peer_count} does not match clustering")
        if app.clustered_db != (app.folder in plan.clustered_db_apps):
            violations.append(f"{app.folder}: clustered database flag does not match selection")

    duplicates = [
        name for name, count in Counter(app.target_image_name for app in plan.apps).items() if count > 1
    ]
    for name in duplicates:
        violations.append(f"image name '{name}' is used by more than one application")

    unknown_clustered = [f for f in plan.clustered_db_apps if f not in plan.apps_folders]
    if unknown_clustered:
        violations.append(f"clustered database apps not selected: {', '.join(unknown_clustered)}")

    if plan.use_kafka != derive_use_kafka(plan.apps):
        violations.append("Kafka flag does not match application message brokers")

    if plan.istio and plan.service_type is not None:
        violations.append("service type must be unset when Istio is enabled")
    if not plan.istio and plan.service_type is None:
        violations.append("service type is required when Istio is disabled")
    if plan.service_type is ServiceType.INGRESS and not plan.ingress_domain:
        violations.append("ingress domain is required for the Ingress service type")

    if not plan.jwt_secret_key.get_secret_value():
        violations.append("JWT secret is empty")
    if not plan.docker_push_command:
        violations.append("Docker push command is empty")

    if violations:
        raise ValidationError(violations)


def merge_plan(
    answers: DeploymentAnswers,
    images: ImageConfiguration,
    credentials: Credentials,
    base: Path | None = None,
) -> DeploymentPlan:
    """
    Build and validate the DeploymentPlan.

    Raises:
        PathResolutionError: No root directory for the selected folders.
        ValidationError: Any invariant breach; nothing is returned.
    """
    folder_paths = assemble_folder_paths(answers.apps_folders, answers.directory_path, base)
    by_folder = {app.folder: app for app in images.apps}

    missing = [folder for folder in answers.apps_folders if folder not in by_folder]
    if missing:
        raise ValidationError([f"{folder}: no application configuration" for folder in missing])

    apps = []
    for folder, path in zip(answers.apps_folders, folder_paths, strict=True):
        app = by_folder[folder].model_copy(
            update={"clustered_db": folder in answers.clustered_db_apps, "folder_path": str(path)}
        )
        apps.append(app.model_copy(update={"db_peer_count": derive_cluster_peer_count(app)}))

    service_type = None if answers.istio else answers.service_type
    try:
        plan = DeploymentPlan(
            deployment_application_type=answers.deployment_application_type,
            directory_path=answers.directory_path or "",
            apps_folders=tuple(answers.apps_folders),
            namespace=answers.namespace,
            service_type=service_type,
            ingress_domain=answers.ingress_domain if service_type is ServiceType.INGRESS else None,
            istio=answers.istio,
            istio_route=answers.istio and answers.istio_route,
            clustered_db_apps=tuple(answers.clustered_db_apps),
            service_discovery_type=answers.service_discovery_type,
            monitoring=answers.monitoring,
            admin_password=SecretStr(answers.admin_password),
            jwt_secret_key=SecretStr(credentials.jwt_secret_key),
            db_random_password=SecretStr(credentials.db_random_password),
            docker_repository_name=images.repository_name,
            docker_push_command=images.push_command,
            use_kafka=derive_use_kafka(apps),
            apps=tuple(apps),
            generator_version=__version__,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        ) from e

    validate_plan(plan)
    logger.info(
        "Deployment plan reconciled",
        apps=list(plan.apps_folders),
        namespace=plan.namespace,
        use_kafka=plan.use_kafka,
    )
    return plan


def commit_plan(plan: DeploymentPlan, store: ConfigurationStore) -> None:
    """Persist the plan's durable subset in one atomic store write."""
    store.commit(StoredConfig.from_plan(plan))
