# ABOUTME: Pytest fixtures and configuration for helmgen tests
# ABOUTME: Provides settings, application trees, scripted prompters and stub probes

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from pydantic import SecretStr

from helmgen.config import GeneratorSettings
from helmgen.errors import AdvisoryWarning
from helmgen.models import (
    ApplicationConfig,
    DeploymentApplicationType,
    DeploymentPlan,
    MonitoringMode,
    ServiceDiscoveryType,
    ServiceType,
)
from helmgen.prompts import ScriptedPrompter

AppWriter = Callable[..., Path]


@pytest.fixture
def settings() -> GeneratorSettings:
    """Settings isolated from the environment running the tests."""
    return GeneratorSettings(_env_file=None, skip_checks=True, log_level="WARNING")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """
    Layout used across tests:

        tmp_path/
            k8s/        destination (store + generated charts)
            apps/       application folders
    """
    (tmp_path / "k8s").mkdir()
    (tmp_path / "apps").mkdir()
    return tmp_path


@pytest.fixture
def destination(workspace: Path) -> Path:
    return workspace / "k8s"


@pytest.fixture
def write_app(workspace: Path) -> AppWriter:
    """Factory writing an application folder with a .yo-rc.json under apps/."""

    def _write(
        folder: str,
        base_name: str | None = None,
        application_type: str = "microservice",
        build_tool: str = "maven",
        jib_cache: bool = True,
        **extra: Any,
    ) -> Path:
        app_dir = workspace / "apps" / folder
        app_dir.mkdir(parents=True, exist_ok=True)
        section = {
            "baseName": base_name if base_name is not None else folder,
            "applicationType": application_type,
            "buildTool": build_tool,
            **extra,
        }
        (app_dir / ".yo-rc.json").write_text(json.dumps({"generator-jhipster": section}))
        if jib_cache:
            cache = app_dir / ("target/jib-cache" if build_tool == "maven" else "build/jib-cache")
            cache.mkdir(parents=True, exist_ok=True)
            (cache / "layer.tar").write_text("image layer")
        return app_dir

    return _write


@pytest.fixture
def shop_apps(write_app: AppWriter) -> list[str]:
    """A gateway plus two microservices, one clustered-capable with Kafka."""
    write_app("gateway", "Gateway", application_type="gateway", serviceDiscoveryType="eureka", serverPort=8080)
    write_app(
        "invoice",
        "Invoice",
        prodDatabaseType="mysql",
        messageBroker="rabbitmq",
        serviceDiscoveryType="eureka",
        serverPort=8081,
    )
    write_app(
        "store",
        "Store",
        prodDatabaseType="mongodb",
        messageBroker="kafka",
        serviceDiscoveryType="eureka",
        serverPort=8082,
    )
    return ["gateway", "invoice", "store"]


@pytest.fixture
def shop_answers() -> dict[str, Any]:
    """Scripted answers for a full run over shop_apps."""
    return {
        "deployment_application_type": "microservice",
        "directory_path": "../apps/",
        "apps_folders": ["gateway", "invoice", "store"],
        "monitoring": "no",
        "clustered_db_apps": ["store"],
        "admin_password": "s3cret",
        "namespace": "shop",
        "docker_repository_name": "myrepo",
        "docker_push_command": "docker push",
        "istio": False,
        "service_type": "LoadBalancer",
    }


@pytest.fixture
def scripted_prompter(shop_answers: dict[str, Any]) -> ScriptedPrompter:
    return ScriptedPrompter(shop_answers, use_defaults=True)


class StubProbe:
    """Tool probe returning a fixed result and counting calls."""

    def __init__(self, warning: AdvisoryWarning | None = None) -> None:
        self.warning = warning
        self.calls = 0

    async def check_installed(self) -> AdvisoryWarning | None:
        self.calls += 1
        return self.warning


@pytest.fixture
def stub_probe() -> StubProbe:
    return StubProbe()


@pytest.fixture
def make_app() -> Callable[..., ApplicationConfig]:
    def _make(folder: str, **overrides: Any) -> ApplicationConfig:
        fields: dict[str, Any] = {
            "base_name": folder.capitalize(),
            "folder": folder,
            "application_type": "microservice",
            "target_image_name": folder,
        }
        fields.update(overrides)
        return ApplicationConfig(**fields)

    return _make


@pytest.fixture
def make_plan(make_app: Callable[..., ApplicationConfig]) -> Callable[..., DeploymentPlan]:
    """Build a consistent DeploymentPlan directly, bypassing the reconciler."""

    def _make(**overrides: Any) -> DeploymentPlan:
        apps = overrides.pop(
            "apps",
            (
                make_app("gateway", application_type="gateway", target_image_name="myrepo/gateway"),
                make_app(
                    "store",
                    prod_database_type="mongodb",
                    message_broker="kafka",
                    target_image_name="myrepo/store",
                    clustered_db=True,
                    db_peer_count=3,
                ),
            ),
        )
        fields: dict[str, Any] = {
            "deployment_application_type": DeploymentApplicationType.MICROSERVICE,
            "directory_path": "../apps/",
            "apps_folders": tuple(app.folder for app in apps),
            "namespace": "shop",
            "service_type": ServiceType.LOAD_BALANCER,
            "ingress_domain": None,
            "istio": False,
            "istio_route": False,
            "clustered_db_apps": tuple(app.folder for app in apps if app.clustered_db),
            "service_discovery_type": ServiceDiscoveryType.EUREKA,
            "monitoring": MonitoringMode.NO,
            "admin_password": SecretStr("admin"),
            "jwt_secret_key": SecretStr("c2VjcmV0"),
            "db_random_password": SecretStr("abc12345"),
            "docker_repository_name": "myrepo",
            "docker_push_command": "docker push",
            "use_kafka": any(app.message_broker == "kafka" for app in apps),
            "apps": tuple(apps),
            "generator_version": "0.1.0",
        }
        fields.update(overrides)
        return DeploymentPlan(**fields)

    return _make
