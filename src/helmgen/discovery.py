# ABOUTME: Application discovery under the deployment root
# ABOUTME: Finds application folders and loads their build metadata into ApplicationConfig

"""Discover applications and read their per-application build metadata."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from helmgen.errors import ConfigurationError
from helmgen.models import (
    MICROSERVICE_APP_TYPES,
    MONOLITH_APP_TYPES,
    ApplicationConfig,
    DeploymentApplicationType,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)


class BuildMetadata(BaseModel):
    """The part of an application's build metadata that matters for deployment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    base_name: str = Field(default="", alias="baseName")
    application_type: str = Field(default="monolith", alias="applicationType")
    build_tool: str = Field(default="maven", alias="buildTool")
    message_broker: Any = Field(default=None, alias="messageBroker")
    prod_database_type: Any = Field(default=None, alias="prodDatabaseType")
    service_discovery_type: Any = Field(default=None, alias="serviceDiscoveryType")
    server_port: int = Field(default=8080, alias="serverPort")


def accepted_app_types(deployment_type: DeploymentApplicationType) -> frozenset[str]:
    if deployment_type is DeploymentApplicationType.MONOLITH:
        return MONOLITH_APP_TYPES
    return MICROSERVICE_APP_TYPES


def load_application(
    root: Path,
    folder: str,
    config_file: str = ".yo-rc.json",
    section: str = "generator-jhipster",
) -> ApplicationConfig:
    """
    Load one application's build metadata.

    Raises:
        ConfigurationError: The folder has no readable metadata or no base name.
            The message names the offending path.
    """
    path = root / folder / config_file
    if not path.is_file():
        raise ConfigurationError("No application configuration found", path)
    try:
        document = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError("Unreadable application configuration", path, str(e)) from e

    data = document.get(section) if isinstance(document, dict) else None
    if not isinstance(data, dict):
        raise ConfigurationError(f"Application configuration has no '{section}' section", path)

    try:
        meta = BuildMetadata.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError("Invalid application configuration", path, str(e)) from e

    if not meta.base_name.strip():
        raise ConfigurationError("Application has no base name", path)

    return ApplicationConfig(
        base_name=meta.base_name.strip(),
        folder=folder,
        application_type=meta.application_type,
        build_tool=meta.build_tool,
        message_broker=meta.message_broker,
        prod_database_type=meta.prod_database_type,
        service_discovery_type=meta.service_discovery_type,
        server_port=meta.server_port,
    )


def find_applications(
    root: Path,
    deployment_type: DeploymentApplicationType,
    config_file: str = ".yo-rc.json",
    section: str = "generator-jhipster",
) -> list[str]:
    """
    Folder names under root holding an application of a matching kind, sorted.

    Folders without usable metadata are skipped here; they only become an
    error if someone explicitly selects them.
    """
    if not root.is_dir():
        return []

    accepted = accepted_app_types(deployment_type)
    found = []
    for child in sorted(root.iterdir()):
        if not child.is_dir():
            continue
        try:
            app = load_application(root, child.name, config_file, section)
        except ConfigurationError as e:
            logger.debug("Skipping folder", folder=child.name, reason=e.message)
            continue
        if app.application_type in accepted:
            found.append(child.name)

    logger.info("Discovered applications", root=str(root), folders=found)
    return found


class ApplicationCatalog:
    """Caches loaded applications for one run, relative to the destination directory."""

    def __init__(
        self,
        destination: Path,
        config_file: str = ".yo-rc.json",
        section: str = "generator-jhipster",
    ) -> None:
        self._destination = destination
        self._config_file = config_file
        self._section = section
        self._cache: dict[tuple[str, str], ApplicationConfig] = {}

    def root(self, directory_path: str) -> Path:
        return self._destination / directory_path

    def find(self, directory_path: str, deployment_type: DeploymentApplicationType) -> list[str]:
        return find_applications(
            self.root(directory_path), deployment_type, self._config_file, self._section
        )

    def load(self, directory_path: str, folder: str) -> ApplicationConfig:
        key = (directory_path, folder)
        if key not in self._cache:
            self._cache[key] = load_application(
                self.root(directory_path), folder, self._config_file, self._section
            )
        return self._cache[key]

    def load_all(self, directory_path: str, folders: list[str]) -> list[ApplicationConfig]:
        """Load applications in the given order."""
        return [self.load(directory_path, folder) for folder in folders]
