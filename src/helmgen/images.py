# ABOUTME: Docker image configuration resolver
# ABOUTME: Maps applications to registry image names and checks for built images

"""
Docker/Image Configuration Resolver.

Pure functions over stored config and current answers; the only disk access
is the read-only image build cache check.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from helmgen.errors import AdvisoryWarning, ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path

    from helmgen.models import ApplicationConfig

logger = structlog.get_logger(__name__)

IMAGE_CHECK_SOURCE = "image-check"

# Build tool -> (Jib cache location inside the app folder, command that fills it)
IMAGE_BUILDS = {
    "maven": ("target/jib-cache", "./mvnw -ntp -Pprod verify jib:dockerBuild"),
    "gradle": ("build/jib-cache", "./gradlew bootJar -Pprod jibDockerBuild"),
}


@dataclass(frozen=True)
class ImageConfiguration:
    """Resolver output: apps with target image names, and the shared push command."""

    apps: tuple[ApplicationConfig, ...]
    repository_name: str | None
    push_command: str


def normalize_repository_name(repository_name: str | None) -> str | None:
    if repository_name is None:
        return None
    name = repository_name.strip().rstrip("/")
    return name or None


def resolve_target_image_name(base_name: str, repository_name: str | None) -> str:
    """`<registry>/<lowercased base name>`, or the lowercased base name alone."""
    image = base_name.lower()
    registry = normalize_repository_name(repository_name)
    if registry:
        return f"{registry}/{image}"
    return image


def resolve_push_command(configured: str | None, default: str = "docker push") -> str:
    command = " ".join((configured or "").split())
    return command or default


def configure_image_names(
    apps: list[ApplicationConfig],
    repository_name: str | None,
    root: Path | None = None,
) -> list[ApplicationConfig]:
    """
    Copies of the apps with target_image_name set.

    Raises:
        ConfigurationError: No applications, or an app without a base name.
    """
    if not apps:
        raise ConfigurationError("No applications selected for deployment", root)

    resolved = []
    for app in apps:
        if not app.base_name.strip():
            raise ConfigurationError(
                "Application cannot be mapped to an image name",
                root / app.folder if root is not None else app.folder,
            )
        target = resolve_target_image_name(app.base_name, repository_name)
        resolved.append(app.model_copy(update={"target_image_name": target}))
        logger.debug("Resolved image name", folder=app.folder, image=target)
    return resolved


def resolve_images(
    apps: list[ApplicationConfig],
    repository_name: str | None,
    push_command: str | None,
    default_push_command: str = "docker push",
    root: Path | None = None,
) -> ImageConfiguration:
    return ImageConfiguration(
        apps=tuple(configure_image_names(apps, repository_name, root)),
        repository_name=normalize_repository_name(repository_name),
        push_command=resolve_push_command(push_command, default_push_command),
    )


def check_images(apps: list[ApplicationConfig], root: Path) -> list[AdvisoryWarning]:
    """One warning per application whose local image build cache is missing or empty."""
    warnings = []
    for app in apps:
        cache_dir, build_command = IMAGE_BUILDS.get(app.build_tool, IMAGE_BUILDS["maven"])
        app_dir = root / app.folder
        cache = app_dir / cache_dir
        if cache.is_dir() and any(cache.iterdir()):
            continue
        logger.info("Missing image build cache", folder=app.folder, cache=str(cache))
        warnings.append(
            AdvisoryWarning(
                source=IMAGE_CHECK_SOURCE,
                message=f"No Docker image build found for '{app.base_name}'",
                hint=f"{build_command} in {app_dir}",
            )
        )
    return warnings
