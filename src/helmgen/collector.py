# ABOUTME: Deployment intent collector built from ordered question steps
# ABOUTME: Each step declares when it applies and which answer fields it produces

"""
Deployment Intent Collector.

=============================================================================
HOW THE COLLECTOR WORKS
=============================================================================

The collector is a fixed, ordered list of QuestionStep values:

    QuestionStep(
        name="ingress_domain",
        produces=("ingress_domain",),
        ask=ask_ingress_domain,
        when=lambda ctx: ctx.answers.service_type is ServiceType.INGRESS,
    )

For each step, in order:

1. A fresh StepContext is built from a SNAPSHOT of the answers so far.
2. If `when(ctx)` is false the step is skipped and its fields keep their
   DeploymentAnswers defaults.
3. Otherwise `await ask(ctx)` returns a dict of produced fields, which is
   merged into the builder.

Steps read application metadata through the catalog but never modify it.
Given the same prior answers and the same user input, a step always
produces the same fields.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from helmgen.errors import ConfigurationError
from helmgen.models import (
    DeploymentAnswers,
    DeploymentApplicationType,
    MonitoringMode,
    ServiceDiscoveryType,
    ServiceType,
)
from helmgen.prompts import Choice

if TYPE_CHECKING:
    from helmgen.config import GeneratorSettings
    from helmgen.discovery import ApplicationCatalog
    from helmgen.models import ApplicationConfig
    from helmgen.prompts import Prompter
    from helmgen.store import StoredConfig

logger = structlog.get_logger(__name__)

DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)([a-z0-9]([-a-z0-9]*[a-z0-9])?\.)+[a-z0-9]([-a-z0-9]*[a-z0-9])?$",
    re.I,
)


@dataclass(frozen=True)
class StepContext:
    """Read-only view handed to each question step."""

    answers: DeploymentAnswers
    stored: StoredConfig
    prompter: Prompter
    catalog: ApplicationCatalog
    settings: GeneratorSettings

    def selected_apps(self) -> list[ApplicationConfig]:
        if not self.answers.directory_path or not self.answers.apps_folders:
            return []
        return self.catalog.load_all(self.answers.directory_path, self.answers.apps_folders)


def _always(_ctx: StepContext) -> bool:
    return True


@dataclass(frozen=True)
class QuestionStep:
    name: str
    produces: tuple[str, ...]
    ask: Callable[[StepContext], Awaitable[dict[str, Any]]]
    when: Callable[[StepContext], bool] = _always


def _pick_default(stored: Any, choices: Sequence[Choice], fallback: str) -> str:
    # Stored values from older runs may no longer be valid choices
    values = [c.value for c in choices]
    return stored if stored in values else fallback


def normalize_directory_path(path: str) -> str:
    path = path.strip()
    return path if path.endswith("/") else f"{path}/"


def validate_ingress_domain(value: str) -> bool | str:
    if DOMAIN_PATTERN.match(value.strip()):
        return True
    return "The domain must be a valid DNS name like example.com or 192.168.99.100.nip.io"


# =============================================================================
# QUESTION STEPS
# =============================================================================


APPLICATION_TYPE_CHOICES = [
    Choice("Microservice application", DeploymentApplicationType.MICROSERVICE.value),
    Choice("Monolithic application", DeploymentApplicationType.MONOLITH.value),
]


async def ask_application_type(ctx: StepContext) -> dict[str, Any]:
    default = _pick_default(
        ctx.stored.deployment_application_type,
        APPLICATION_TYPE_CHOICES,
        DeploymentApplicationType.MICROSERVICE.value,
    )
    value = await ctx.prompter.select(
        "deployment_application_type",
        "Which *type* of application would you like to deploy?",
        APPLICATION_TYPE_CHOICES,
        default,
    )
    return {"deployment_application_type": value}


async def ask_path(ctx: StepContext) -> dict[str, Any]:
    deployment_type = ctx.answers.deployment_application_type
    if deployment_type is DeploymentApplicationType.MONOLITH:
        message = "Enter the root directory where your applications are located"
    else:
        message = "Enter the root directory where your gateway(s) and microservices are located"

    def validate(value: str) -> bool | str:
        path = value.strip()
        if not path:
            return "Please enter a directory"
        if not ctx.catalog.root(path).is_dir():
            return f"{path} is not a directory or doesn't exist"
        if not ctx.catalog.find(path, deployment_type):
            return f"No {deployment_type.value} applications found in {path}"
        return True

    value = await ctx.prompter.text(
        "directory_path", message, ctx.stored.directory_path or "../", validate
    )
    return {"directory_path": normalize_directory_path(value)}


async def ask_apps(ctx: StepContext) -> dict[str, Any]:
    directory_path = ctx.answers.directory_path or "../"
    found = ctx.catalog.find(directory_path, ctx.answers.deployment_application_type)
    stored = [f for f in ctx.stored.apps_folders or [] if f in found]

    def validate(selection: list[str]) -> bool | str:
        return True if selection else "Please choose at least one application"

    selection = await ctx.prompter.checkbox(
        "apps_folders",
        f"Which applications do you want to include in your configuration? ({len(found)} found)",
        [Choice(folder, folder) for folder in found],
        stored or found,
        validate,
    )
    # Keep discovery order whatever order the answers came in
    return {"apps_folders": [f for f in found if f in selection]}


MONITORING_CHOICES = [
    Choice("No", MonitoringMode.NO.value),
    Choice("Yes, for metrics only with Prometheus", MonitoringMode.PROMETHEUS.value),
]


async def ask_monitoring(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.select(
        "monitoring",
        "Do you want to setup monitoring for your applications?",
        MONITORING_CHOICES,
        _pick_default(ctx.stored.monitoring, MONITORING_CHOICES, MonitoringMode.NO.value),
    )
    return {"monitoring": value}


def has_clusterable_apps(ctx: StepContext) -> bool:
    return any(app.clusterable for app in ctx.selected_apps())


async def ask_clusters_mode(ctx: StepContext) -> dict[str, Any]:
    clusterable = [app for app in ctx.selected_apps() if app.clusterable]
    values = [app.folder for app in clusterable]
    selection = await ctx.prompter.checkbox(
        "clustered_db_apps",
        "Which applications do you want to use with clustered databases (only available with MongoDB and Couchbase)?",
        [Choice(f"{app.folder} ({app.prod_database_type})", app.folder) for app in clusterable],
        [f for f in ctx.stored.clustered_db_apps or [] if f in values],
    )
    return {"clustered_db_apps": [f for f in values if f in selection]}


SERVICE_DISCOVERY_CHOICES = [
    Choice("Eureka registry", ServiceDiscoveryType.EUREKA.value),
    Choice("Consul", ServiceDiscoveryType.CONSUL.value),
    Choice("No service discovery and configuration solution", ServiceDiscoveryType.NO.value),
]


async def ask_service_discovery(ctx: StepContext) -> dict[str, Any]:
    enabled = [app for app in ctx.selected_apps() if app.service_discovery_type]
    if not enabled:
        return {"service_discovery_type": ServiceDiscoveryType.NO.value}

    kinds = {app.service_discovery_type for app in enabled}
    if kinds == {ServiceDiscoveryType.CONSUL.value}:
        ctx.prompter.notify("Consul detected as the service discovery and configuration provider used by your apps")
        return {"service_discovery_type": ServiceDiscoveryType.CONSUL.value}
    if kinds == {ServiceDiscoveryType.EUREKA.value}:
        ctx.prompter.notify(
            "Eureka registry detected as the service discovery and configuration provider used by your apps"
        )
        return {"service_discovery_type": ServiceDiscoveryType.EUREKA.value}

    ctx.prompter.notify(
        "Unable to determine the service discovery and configuration provider to use from your apps configuration."
    )
    for app in enabled:
        ctx.prompter.notify(f" - {app.base_name} ({app.service_discovery_type})")

    value = await ctx.prompter.select(
        "service_discovery_type",
        "Which Service Discovery registry and Configuration server would you like to use?",
        SERVICE_DISCOVERY_CHOICES,
        _pick_default(
            ctx.stored.service_discovery_type,
            SERVICE_DISCOVERY_CHOICES,
            ServiceDiscoveryType.EUREKA.value,
        ),
    )
    return {"service_discovery_type": value}


async def ask_admin_password(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.password(
        "admin_password",
        "Enter the admin password used to secure the registry",
        ctx.stored.admin_password or "admin",
        lambda v: True if v else "The admin password must not be empty",
    )
    return {"admin_password": value}


async def ask_namespace(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.text(
        "namespace",
        "What should we use for the Kubernetes namespace?",
        ctx.stored.kubernetes_namespace or "default",
        lambda v: True if v.strip() else "The namespace must not be empty",
    )
    return {"namespace": value.strip()}


async def ask_docker_repository_name(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.text(
        "docker_repository_name",
        "What should we use for the base Docker repository name?",
        ctx.stored.docker_repository_name or "",
    )
    return {"docker_repository_name": value}


async def ask_docker_push_command(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.text(
        "docker_push_command",
        "What command should we use for push Docker image to repository?",
        ctx.stored.docker_push_command or ctx.settings.default_push_command,
        lambda v: True if v.strip() else "The push command must not be empty",
    )
    return {"docker_push_command": " ".join(value.split())}


async def ask_istio_support(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.confirm(
        "istio", "Do you want to enable Istio?", bool(ctx.stored.istio)
    )
    return {"istio": value}


async def ask_istio_route_files(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.confirm(
        "istio_route", "Do you want to generate Istio route files?", bool(ctx.stored.istio_route)
    )
    return {"istio_route": value}


SERVICE_TYPE_CHOICES = [
    Choice(
        "LoadBalancer - Let a Kubernetes cloud provider automatically assign an IP",
        ServiceType.LOAD_BALANCER.value,
    ),
    Choice("NodePort - expose the service to a randomly assigned port", ServiceType.NODE_PORT.value),
    Choice(
        "Ingress - create ingresses for your services. Requires a running ingress controller",
        ServiceType.INGRESS.value,
    ),
]


async def ask_service_type(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.select(
        "service_type",
        "Choose the Kubernetes service type for your edge services",
        SERVICE_TYPE_CHOICES,
        _pick_default(
            ctx.stored.kubernetes_service_type, SERVICE_TYPE_CHOICES, ServiceType.LOAD_BALANCER.value
        ),
    )
    return {"service_type": value}


async def ask_ingress_domain(ctx: StepContext) -> dict[str, Any]:
    value = await ctx.prompter.text(
        "ingress_domain",
        "What is the root FQDN for your ingress services (e.g. example.com, sub.domain.co, 192.168.99.100.nip.io)?",
        ctx.stored.ingress_domain or ctx.settings.default_ingress_domain,
        validate_ingress_domain,
    )
    return {"ingress_domain": value.strip().lower()}


DEFAULT_STEPS: tuple[QuestionStep, ...] = (
    QuestionStep("application_type", ("deployment_application_type",), ask_application_type),
    QuestionStep("path", ("directory_path",), ask_path),
    QuestionStep("apps", ("apps_folders",), ask_apps),
    QuestionStep("monitoring", ("monitoring",), ask_monitoring),
    QuestionStep("clusters_mode", ("clustered_db_apps",), ask_clusters_mode, has_clusterable_apps),
    QuestionStep("service_discovery", ("service_discovery_type",), ask_service_discovery),
    QuestionStep(
        "admin_password",
        ("admin_password",),
        ask_admin_password,
        lambda ctx: ctx.answers.service_discovery_type is ServiceDiscoveryType.EUREKA,
    ),
    QuestionStep("namespace", ("namespace",), ask_namespace),
    QuestionStep("docker_repository_name", ("docker_repository_name",), ask_docker_repository_name),
    QuestionStep("docker_push_command", ("docker_push_command",), ask_docker_push_command),
    QuestionStep("istio_support", ("istio",), ask_istio_support),
    QuestionStep("istio_route_files", ("istio_route",), ask_istio_route_files, lambda ctx: ctx.answers.istio),
    QuestionStep("service_type", ("service_type",), ask_service_type, lambda ctx: not ctx.answers.istio),
    QuestionStep(
        "ingress_domain",
        ("ingress_domain",),
        ask_ingress_domain,
        lambda ctx: ctx.answers.service_type is ServiceType.INGRESS,
    ),
)


class DeploymentIntentCollector:
    """Runs question steps in order against one answers builder."""

    def __init__(self, steps: Sequence[QuestionStep] = DEFAULT_STEPS) -> None:
        self._steps = tuple(steps)

    @property
    def steps(self) -> tuple[QuestionStep, ...]:
        return self._steps

    async def collect(
        self,
        builder: DeploymentAnswers,
        *,
        stored: StoredConfig,
        prompter: Prompter,
        catalog: ApplicationCatalog,
        settings: GeneratorSettings,
    ) -> list[str]:
        """
        Fill the builder in place.

        Returns:
            Names of the steps that ran, in order.

        Raises:
            CollectionAborted: The user cancelled a question.
            ConfigurationError: A step produced a field it did not declare,
                or a scripted answer was missing or rejected.
        """
        ran = []
        for step in self._steps:
            ctx = StepContext(
                answers=builder.snapshot(),
                stored=stored,
                prompter=prompter,
                catalog=catalog,
                settings=settings,
            )
            if not step.when(ctx):
                logger.debug("Skipping question", step=step.name)
                continue

            updates = await step.ask(ctx)
            undeclared = set(updates) - set(step.produces)
            if undeclared:
                raise ConfigurationError(
                    f"Step '{step.name}' produced undeclared answers", details=", ".join(sorted(undeclared))
                )
            builder.apply(updates, step=step.name)
            ran.append(step.name)
            logger.debug("Collected answers", step=step.name, fields=sorted(updates))

        return ran
