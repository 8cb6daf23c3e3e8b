# ABOUTME: Data model for the helmgen pipeline
# ABOUTME: ApplicationConfig, the DeploymentAnswers builder, and the final DeploymentPlan

"""
Data model shared by every pipeline stage.

=============================================================================
THREE MODELS, THREE LIFETIMES
=============================================================================

1. ApplicationConfig (frozen)
   One per application folder. Discovery creates it from the folder's build
   metadata. Later stages never modify an instance; the Resolver and the
   Reconciler return COPIES with image names, peer counts and paths filled in:

       resolved = app.model_copy(update={"target_image_name": "myrepo/store"})

2. DeploymentAnswers (mutable builder)
   The working answer set. Every field is enumerated here with its default,
   so there is no "maybe the key exists" logic anywhere else. The collector
   passes one builder through its question steps; each step's output is
   merged with apply(), which rejects unknown field names.

3. DeploymentPlan (frozen)
   The reconciled, write-once configuration for one run. Only the
   Reconciler constructs it, and only after every invariant holds. The
   writer and the reporter read it; nothing writes to it.

=============================================================================
WHY SecretStr?
=============================================================================

The plan carries a JWT signing key and two passwords. The plan gets logged
(at DEBUG), printed in tracebacks, and compared in tests. SecretStr renders
as '**********' everywhere except get_secret_value(), and still compares by
value, so two plans with the same secrets are equal.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from helmgen.credentials import encode_admin_password
from helmgen.errors import ConfigurationError

# =============================================================================
# ENUMERATIONS
# =============================================================================


class DeploymentApplicationType(str, Enum):
    """What kind of system is being deployed."""

    MICROSERVICE = "microservice"
    MONOLITH = "monolith"


class ServiceType(str, Enum):
    """How services are exposed outside the cluster."""

    LOAD_BALANCER = "LoadBalancer"
    NODE_PORT = "NodePort"
    INGRESS = "Ingress"


class MonitoringMode(str, Enum):
    NO = "no"
    PROMETHEUS = "prometheus"


class ServiceDiscoveryType(str, Enum):
    """Shared service discovery and configuration backend."""

    EUREKA = "eureka"
    CONSUL = "consul"
    NO = "no"


# Application kinds accepted by each deployment type
MICROSERVICE_APP_TYPES = frozenset(["gateway", "microservice", "uaa"])
MONOLITH_APP_TYPES = frozenset(["monolith"])

# Production databases that can run as a replicated cluster
CLUSTERABLE_DATABASES = frozenset(["mongodb", "couchbase"])

CLUSTERED_DB_PEER_COUNT = 3
SINGLE_DB_PEER_COUNT = 1


def _falsy_to_none(v: Any) -> Any:
    # Build metadata stores "disabled" as false, "no" or an empty string
    if v is None or v is False or (isinstance(v, str) and v.strip().lower() in ("", "no", "false")):
        return None
    return v


# =============================================================================
# APPLICATION CONFIG
# =============================================================================


class ApplicationConfig(BaseModel):
    """
    Deployment-relevant view of one application.

    FIELDS EXPLAINED:
    -----------------
    - base_name: Application identity from its build metadata (e.g. "Store")
    - folder: Folder name under the deployment root (e.g. "store")
    - folder_path: Root-joined folder path, set by the Reconciler
    - application_type: gateway, microservice, uaa or monolith
    - build_tool: maven or gradle; decides where the image build cache lives
    - message_broker: "kafka", "rabbitmq", ... or None
    - prod_database_type: "mysql", "mongodb", ... or None
    - service_discovery_type: "eureka", "consul" or None
    - target_image_name: Image name after registry mapping, set by the Resolver
    - clustered_db: Whether this app's database runs as a cluster
    - db_peer_count: Database replicas, set by the Reconciler
    """

    model_config = ConfigDict(frozen=True)

    base_name: str
    folder: str
    folder_path: str = ""
    application_type: str = "monolith"
    build_tool: str = "maven"
    message_broker: str | None = None
    prod_database_type: str | None = None
    service_discovery_type: str | None = None
    server_port: int = 8080
    target_image_name: str = ""
    clustered_db: bool = False
    db_peer_count: int = SINGLE_DB_PEER_COUNT

    @field_validator("message_broker", "prod_database_type", "service_discovery_type", mode="before")
    @classmethod
    def normalize_disabled(cls, v: Any) -> Any:
        return _falsy_to_none(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def source_image_name(self) -> str:
        """Image name produced by the application's own build."""
        return self.base_name.lower()

    @property
    def clusterable(self) -> bool:
        return self.prod_database_type in CLUSTERABLE_DATABASES

    @property
    def is_gateway(self) -> bool:
        return self.application_type == "gateway"


# =============================================================================
# DEPLOYMENT ANSWERS (BUILDER)
# =============================================================================


class DeploymentAnswers(BaseModel):
    """
    Working answer set, filled in by the collector one step at a time.

    Defaults here are the values a step falls back to when it is skipped.
    For example, istio_route stays False when Istio is off, and service_type
    stays None when Istio is on.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    deployment_application_type: DeploymentApplicationType = DeploymentApplicationType.MICROSERVICE
    directory_path: str | None = None
    apps_folders: list[str] = Field(default_factory=list)
    monitoring: MonitoringMode = MonitoringMode.NO
    clustered_db_apps: list[str] = Field(default_factory=list)
    service_discovery_type: ServiceDiscoveryType = ServiceDiscoveryType.NO
    admin_password: str = "admin"
    namespace: str = "default"
    docker_repository_name: str | None = None
    docker_push_command: str = "docker push"
    istio: bool = False
    istio_route: bool = False
    service_type: ServiceType | None = None
    ingress_domain: str | None = None

    @field_validator("docker_repository_name", "ingress_domain", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    def apply(self, updates: Mapping[str, Any], step: str = "answers") -> None:
        """
        Merge one step's produced fields into the answer set.

        Raises:
            ConfigurationError: Unknown field, or a value of the wrong shape.
        """
        for name, value in updates.items():
            if name not in type(self).model_fields:
                raise ConfigurationError(f"Step '{step}' produced unknown answer '{name}'")
            try:
                setattr(self, name, value)
            except PydanticValidationError as e:
                raise ConfigurationError(
                    f"Invalid value for '{name}' from step '{step}'",
                    details=e.errors()[0]["msg"],
                ) from e

    def snapshot(self) -> DeploymentAnswers:
        """Independent copy handed to question predicates and steps."""
        return self.model_copy(deep=True)


# =============================================================================
# DEPLOYMENT PLAN
# =============================================================================


class DeploymentPlan(BaseModel):
    """
    Reconciled configuration for one generation run, covering all applications.

    Constructed by helmgen.reconciler.merge_plan() only.
    """

    model_config = ConfigDict(frozen=True)

    deployment_application_type: DeploymentApplicationType
    directory_path: str
    apps_folders: tuple[str, ...]
    namespace: str
    service_type: ServiceType | None
    ingress_domain: str | None
    istio: bool
    istio_route: bool
    clustered_db_apps: tuple[str, ...]
    service_discovery_type: ServiceDiscoveryType
    monitoring: MonitoringMode
    admin_password: SecretStr
    jwt_secret_key: SecretStr
    db_random_password: SecretStr
    docker_repository_name: str | None
    docker_push_command: str
    use_kafka: bool
    apps: tuple[ApplicationConfig, ...]
    generator_version: str

    @property
    def admin_password_base64(self) -> str:
        return encode_admin_password(self.admin_password.get_secret_value())

    def app_for(self, folder: str) -> ApplicationConfig:
        """Look up an application by its folder name."""
        for app in self.apps:
            if app.folder == folder:
                return app
        raise KeyError(folder)
