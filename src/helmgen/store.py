# ABOUTME: Persistent Configuration Store backed by a JSON file
# ABOUTME: Loads prior deployment decisions and commits the plan's durable subset atomically

"""
Configuration Store.

=============================================================================
FILE LAYOUT
=============================================================================

The store is a JSON file in the destination directory, by default
.yo-rc.json. helmgen owns one top-level section of it:

    {
        "generator-jhipster": {
            "appsFolders": ["gateway", "store", "invoice"],
            "directoryPath": "../",
            "jwtSecretKey": "...",
            "kubernetesNamespace": "shop",
            ...
        },
        "some-other-tool": {...}      <- left untouched
    }

=============================================================================
COMMIT SEMANTICS
=============================================================================

- ONE write per run, after the plan has been validated.
- ATOMIC: the new content goes to a temporary file in the same directory,
  which then replaces the store with os.replace(). A crash mid-write leaves
  the old file intact.
- ADDITIVE: keys helmgen does not know about survive a commit.
- WHOLESALE: keys helmgen does write are replaced, never merged field by
  field. A key whose new value is None is removed.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from helmgen.errors import ConfigurationError

if TYPE_CHECKING:
    from helmgen.models import DeploymentPlan

logger = structlog.get_logger(__name__)


class StoredConfig(BaseModel):
    """
    Typed view of the store section.

    Field names are snake_case; the aliases are the camelCase keys written
    to disk. Unknown keys are kept (extra="allow") so a commit can write
    them back unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    deployment_application_type: str | None = Field(default=None, alias="deploymentApplicationType")
    apps_folders: list[str] | None = Field(default=None, alias="appsFolders")
    directory_path: str | None = Field(default=None, alias="directoryPath")
    clustered_db_apps: list[str] | None = Field(default=None, alias="clusteredDbApps")
    service_discovery_type: str | None = Field(default=None, alias="serviceDiscoveryType")
    admin_password: str | None = Field(default=None, alias="adminPassword")
    jwt_secret_key: str | None = Field(default=None, alias="jwtSecretKey")
    docker_repository_name: str | None = Field(default=None, alias="dockerRepositoryName")
    docker_push_command: str | None = Field(default=None, alias="dockerPushCommand")
    kubernetes_namespace: str | None = Field(default=None, alias="kubernetesNamespace")
    kubernetes_service_type: str | None = Field(default=None, alias="kubernetesServiceType")
    ingress_domain: str | None = Field(default=None, alias="ingressDomain")
    monitoring: str | None = Field(default=None, alias="monitoring")
    istio: bool | None = Field(default=None, alias="istio")
    istio_route: bool | None = Field(default=None, alias="istioRoute")

    @field_validator("service_discovery_type", mode="before")
    @classmethod
    def normalize_discovery(cls, v: Any) -> Any:
        # Older stores record "no service discovery" as false
        if v is False:
            return "no"
        return v

    @classmethod
    def from_plan(cls, plan: DeploymentPlan) -> StoredConfig:
        """Durable subset of a plan. Passwords other than the JWT secret are not persisted."""
        return cls(
            deployment_application_type=plan.deployment_application_type.value,
            apps_folders=list(plan.apps_folders),
            directory_path=plan.directory_path,
            clustered_db_apps=list(plan.clustered_db_apps),
            service_discovery_type=plan.service_discovery_type.value,
            jwt_secret_key=plan.jwt_secret_key.get_secret_value(),
            docker_repository_name=plan.docker_repository_name,
            docker_push_command=plan.docker_push_command,
            kubernetes_namespace=plan.namespace,
            kubernetes_service_type=plan.service_type.value if plan.service_type else None,
            ingress_domain=plan.ingress_domain,
            monitoring=plan.monitoring.value,
            istio=plan.istio,
            istio_route=plan.istio_route,
        )

    @property
    def has_previous_run(self) -> bool:
        return self.apps_folders is not None


class ConfigurationStore:
    """JSON-file Configuration Store for one deployment directory."""

    def __init__(self, path: Path, section: str = "generator-jhipster") -> None:
        self._path = path
        self._section = section

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigurationError("Configuration store is not valid JSON", self._path, str(e)) from e
        if not isinstance(document, dict):
            raise ConfigurationError("Configuration store must hold a JSON object", self._path)
        return document

    def load(self) -> StoredConfig:
        """
        Read prior decisions.

        A missing file is a first run and yields an empty StoredConfig.

        Raises:
            ConfigurationError: Unreadable or malformed store file.
        """
        section = self._read_document().get(self._section, {})
        if not isinstance(section, dict):
            raise ConfigurationError(f"Store section '{self._section}' must be a JSON object", self._path)
        try:
            stored = StoredConfig.model_validate(section)
        except PydanticValidationError as e:
            raise ConfigurationError("Configuration store has invalid values", self._path, str(e)) from e

        if stored.has_previous_run:
            logger.info("Found previous configuration", path=str(self._path), apps=stored.apps_folders)
        return stored

    def commit(self, record: StoredConfig) -> None:
        """Replace helmgen's keys with the record, in one atomic file write."""
        document = self._read_document()
        section = dict(document.get(self._section) or {})

        # adminPassword is read for defaults but never written by helmgen
        for key, value in record.model_dump(by_alias=True, exclude={"admin_password"}).items():
            if value is None:
                section.pop(key, None)
            else:
                section[key] = value
        document[self._section] = section

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(document, f, indent=2)
                f.write("\n")
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Committed configuration store", path=str(self._path), keys=sorted(section))
