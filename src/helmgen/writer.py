# ABOUTME: Descriptor writer rendering Helm charts and scripts from a DeploymentPlan
# ABOUTME: One chart per application, a shared services chart, and apply/upgrade scripts

"""
Descriptor Writer.

Consumes a finalized DeploymentPlan and writes:

    namespace.yml               (only for a non-default namespace)
    csvc-helm/                  shared services: JWT secret, registry or
                                consul, Kafka, Prometheus
    <app>-helm/                 one chart per application
        Chart.yaml
        requirements.yaml
        values.yaml
        templates/deployment.yml
        templates/service.yml
        templates/ingress.yml            (Ingress service type, edge apps)
        templates/destination-rule.yml   (Istio route files)
        templates/virtual-service.yml    (Istio route files)
        templates/gateway.yml            (Istio route files, gateways)
    helm-apply.sh
    helm-upgrade.sh

Every file is rewritten on each run, so re-running over partially generated
output converges on the same tree.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
import yaml

from helmgen.models import MonitoringMode, ServiceDiscoveryType, ServiceType

if TYPE_CHECKING:
    from pathlib import Path

    from helmgen.models import ApplicationConfig, DeploymentPlan

logger = structlog.get_logger(__name__)

CHART_REPOSITORY = "https://charts.helm.sh/stable"
INCUBATOR_REPOSITORY = "https://charts.helm.sh/incubator"
SHARED_CHART = "csvc"
APPLY_SCRIPT = "helm-apply.sh"
UPGRADE_SCRIPT = "helm-upgrade.sh"
CLUSTER_IP = "ClusterIP"
REGISTRY_SECRET = "registry-secret"
REGISTRY_SECRET_KEY = "registry-admin-password"
REGISTRY_PASSWORD_VAR = "REGISTRY_ADMIN_PASSWORD"

# prodDatabaseType -> (chart name, chart version, repository, values key holding the root password)
DATABASE_CHARTS = {
    "mysql": ("mysql", "1.6.9", CHART_REPOSITORY, "mysqlRootPassword"),
    "mariadb": ("mariadb", "7.3.14", CHART_REPOSITORY, "rootUser.password"),
    "postgresql": ("postgresql", "8.6.4", CHART_REPOSITORY, "postgresqlPassword"),
    "mongodb": ("mongodb-replicaset", "3.17.2", CHART_REPOSITORY, None),
    "couchbase": ("couchbase", "0.1.2", INCUBATOR_REPOSITORY, "couchbase.password"),
}
REPLICATED_CHARTS = frozenset(["mongodb-replicaset", "couchbase"])


def chart_name(app: ApplicationConfig) -> str:
    return app.source_image_name


def chart_dir(app: ApplicationConfig) -> str:
    return f"{chart_name(app)}-helm"


def _dump(document: Any) -> str:
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


def _labels(app: ApplicationConfig) -> dict[str, str]:
    return {"app": chart_name(app), "app.kubernetes.io/managed-by": "helmgen"}


def _is_edge(app: ApplicationConfig) -> bool:
    return app.application_type in ("gateway", "monolith")


def _set_dotted(values: dict[str, Any], dotted: str, value: Any) -> None:
    node = values
    *parents, leaf = dotted.split(".")
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value


class DescriptorWriter:
    """Renders the plan to disk; returns the paths it wrote."""

    def write(self, plan: DeploymentPlan, destination: Path) -> list[Path]:
        written: list[Path] = []

        def emit(relative: str, content: str) -> None:
            path = destination / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            written.append(path)

        if plan.namespace != "default":
            emit("namespace.yml", _dump(self.namespace(plan)))

        for relative, content in self.shared_chart(plan).items():
            emit(f"{SHARED_CHART}-helm/{relative}", content)

        for folder in plan.apps_folders:
            app = plan.app_for(folder)
            for relative, content in self.app_chart(plan, app).items():
                emit(f"{chart_dir(app)}/{relative}", content)

        emit(APPLY_SCRIPT, self.apply_script(plan))
        emit(UPGRADE_SCRIPT, self.upgrade_script(plan))

        logger.info("Descriptors written", destination=str(destination), files=len(written))
        return written

    # -------------------------------------------------------------------------
    # SHARED SERVICES
    # -------------------------------------------------------------------------

    def namespace(self, plan: DeploymentPlan) -> dict[str, Any]:
        return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": plan.namespace}}

    def shared_chart(self, plan: DeploymentPlan) -> dict[str, str]:
        dependencies = []
        values: dict[str, Any] = {}
        if plan.use_kafka:
            dependencies.append(
                {"name": "kafka", "version": "0.20.8", "repository": INCUBATOR_REPOSITORY, "condition": "kafka.enabled"}
            )
            values["kafka"] = {"enabled": True, "replicas": 1}
        if plan.monitoring is MonitoringMode.PROMETHEUS:
            dependencies.append(
                {
                    "name": "prometheus-operator",
                    "version": "8.13.12",
                    "repository": CHART_REPOSITORY,
                    "condition": "prometheus.enabled",
                }
            )
            values["prometheus"] = {"enabled": True}
        if plan.service_discovery_type is ServiceDiscoveryType.CONSUL:
            dependencies.append(
                {"name": "consul", "version": "3.9.6", "repository": CHART_REPOSITORY, "condition": "consul.enabled"}
            )
            values["consul"] = {"enabled": True, "Replicas": 3}

        files = {
            "Chart.yaml": _dump(
                {
                    "apiVersion": "v1",
                    "name": SHARED_CHART,
                    "version": "0.0.1",
                    "description": "Shared services for the deployed applications",
                }
            ),
            "requirements.yaml": _dump({"dependencies": dependencies}),
            "values.yaml": _dump(values),
            "templates/jwt-secret.yml": _dump(
                {
                    "apiVersion": "v1",
                    "kind": "Secret",
                    "metadata": {"name": "jwt-secret", "namespace": plan.namespace},
                    "type": "Opaque",
                    "stringData": {"secret": plan.jwt_secret_key.get_secret_value()},
                }
            ),
        }
        if plan.service_discovery_type is ServiceDiscoveryType.EUREKA:
            files["templates/registry.yml"] = self.registry(plan)
        return files

    def registry(self, plan: DeploymentPlan) -> str:
        labels = {"app": "registry", "app.kubernetes.io/managed-by": "helmgen"}
        documents = [
            {
                "apiVersion": "v1",
                "kind": "Secret",
                "metadata": {"name": REGISTRY_SECRET, "namespace": plan.namespace},
                "type": "Opaque",
                "data": {REGISTRY_SECRET_KEY: plan.admin_password_base64},
            },
            {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "metadata": {"name": "registry", "namespace": plan.namespace, "labels": labels},
                "spec": {
                    "replicas": 1,
                    "selector": {"matchLabels": {"app": "registry"}},
                    "template": {
                        "metadata": {"labels": labels},
                        "spec": {
                            "containers": [
                                {
                                    "name": "registry",
                                    "image": "jhipster/jhipster-registry:v6.1.2",
                                    "ports": [{"containerPort": 8761}],
                                    "env": [
                                        {"name": "SPRING_PROFILES_ACTIVE", "value": "prod,k8s"},
                                        {
                                            "name": "SPRING_SECURITY_USER_PASSWORD",
                                            "valueFrom": {
                                                "secretKeyRef": {
                                                    "name": REGISTRY_SECRET,
                                                    "key": REGISTRY_SECRET_KEY,
                                                }
                                            },
                                        },
                                    ],
                                }
                            ]
                        },
                    },
                },
            },
            {
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": {"name": "registry", "namespace": plan.namespace, "labels": labels},
                "spec": {"selector": {"app": "registry"}, "ports": [{"name": "http", "port": 8761}]},
            },
        ]
        return yaml.safe_dump_all(documents, sort_keys=False)

    # -------------------------------------------------------------------------
    # APPLICATION CHARTS
    # -------------------------------------------------------------------------

    def app_chart(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, str]:
        dependencies = []
        values: dict[str, Any] = {
            "replicaCount": 1,
            "image": {"repository": app.target_image_name, "tag": "latest", "pullPolicy": "IfNotPresent"},
            "service": {"type": self.service_type(plan, app), "port": app.server_port},
        }

        database = DATABASE_CHARTS.get(app.prod_database_type or "")
        if database:
            name, version, repository, password_key = database
            dependencies.append(
                {"name": name, "version": version, "repository": repository, "condition": f"{name}.enabled"}
            )
            db_values: dict[str, Any] = {"enabled": True}
            if app.clustered_db or name in REPLICATED_CHARTS:
                db_values["replicas"] = app.db_peer_count
            if password_key:
                _set_dotted(db_values, password_key, plan.db_random_password.get_secret_value())
            values[name] = db_values

        files = {
            "Chart.yaml": _dump(
                {
                    "apiVersion": "v1",
                    "name": chart_name(app),
                    "version": "0.0.1",
                    "appVersion": "latest",
                    "description": f"Helm chart for {app.base_name}",
                }
            ),
            "requirements.yaml": _dump({"dependencies": dependencies}),
            "values.yaml": _dump(values),
            "templates/deployment.yml": _dump(self.deployment(plan, app)),
            "templates/service.yml": _dump(self.service(plan, app)),
        }
        if plan.service_type is ServiceType.INGRESS and _is_edge(app):
            files["templates/ingress.yml"] = _dump(self.ingress(plan, app))
        if plan.istio_route:
            files["templates/destination-rule.yml"] = _dump(self.destination_rule(plan, app))
            files["templates/virtual-service.yml"] = _dump(self.virtual_service(plan, app))
            if app.is_gateway:
                files["templates/gateway.yml"] = _dump(self.istio_gateway(plan, app))
        return files

    def service_type(self, plan: DeploymentPlan, app: ApplicationConfig) -> str:
        """Only edge apps are exposed directly; Istio and Ingress route through ClusterIP."""
        if plan.istio or not _is_edge(app) or plan.service_type in (None, ServiceType.INGRESS):
            return CLUSTER_IP
        return plan.service_type.value

    def environment(self, plan: DeploymentPlan, app: ApplicationConfig) -> list[dict[str, Any]]:
        env: list[dict[str, Any]] = [
            {"name": "SPRING_PROFILES_ACTIVE", "value": "prod"},
            {
                "name": "JHIPSTER_SECURITY_AUTHENTICATION_JWT_BASE64_SECRET",
                "valueFrom": {"secretKeyRef": {"name": "jwt-secret", "key": "secret"}},
            },
        ]
        if plan.service_discovery_type is ServiceDiscoveryType.EUREKA:
            registry = f"registry.{plan.namespace}.svc.cluster.local:8761"
            # $(VAR) only expands variables declared earlier in the list
            env.append(
                {
                    "name": REGISTRY_PASSWORD_VAR,
                    "valueFrom": {"secretKeyRef": {"name": REGISTRY_SECRET, "key": REGISTRY_SECRET_KEY}},
                }
            )
            env.append(
                {
                    "name": "EUREKA_CLIENT_SERVICE_URL_DEFAULTZONE",
                    "value": f"http://admin:$({REGISTRY_PASSWORD_VAR})@{registry}/eureka/",
                }
            )
        elif plan.service_discovery_type is ServiceDiscoveryType.CONSUL:
            env.append({"name": "SPRING_CLOUD_CONSUL_HOST", "value": f"consul.{plan.namespace}.svc.cluster.local"})
            env.append({"name": "SPRING_CLOUD_CONSUL_PORT", "value": "8500"})
        if app.message_broker == "kafka":
            env.append(
                {"name": "KAFKA_BOOTSTRAPSERVERS", "value": f"kafka.{plan.namespace}.svc.cluster.local:9092"}
            )
        if plan.monitoring is MonitoringMode.PROMETHEUS:
            env.append({"name": "MANAGEMENT_METRICS_EXPORT_PROMETHEUS_ENABLED", "value": "true"})
        return env

    def deployment(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, Any]:
        name = chart_name(app)
        return {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": name, "namespace": plan.namespace, "labels": _labels(app)},
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": {"app": name}},
                "template": {
                    "metadata": {"labels": _labels(app)},
                    "spec": {
                        "containers": [
                            {
                                "name": f"{name}-app",
                                "image": app.target_image_name,
                                "env": self.environment(plan, app),
                                "ports": [{"name": "http", "containerPort": app.server_port}],
                                "readinessProbe": {
                                    "httpGet": {"path": "/management/health", "port": "http"},
                                    "initialDelaySeconds": 20,
                                    "periodSeconds": 15,
                                },
                                "livenessProbe": {
                                    "httpGet": {"path": "/management/health", "port": "http"},
                                    "initialDelaySeconds": 120,
                                },
                            }
                        ]
                    },
                },
            },
        }

    def service(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, Any]:
        name = chart_name(app)
        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {"name": name, "namespace": plan.namespace, "labels": _labels(app)},
            "spec": {
                "type": self.service_type(plan, app),
                "selector": {"app": name},
                "ports": [
                    {
                        "name": "http",
                        "port": 80 if _is_edge(app) else app.server_port,
                        "targetPort": app.server_port,
                    }
                ],
            },
        }

    def ingress_host(self, plan: DeploymentPlan, app: ApplicationConfig) -> str:
        return f"{chart_name(app)}.{plan.namespace}.{plan.ingress_domain}"

    def ingress(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, Any]:
        name = chart_name(app)
        return {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {"name": name, "namespace": plan.namespace},
            "spec": {
                "rules": [
                    {
                        "host": self.ingress_host(plan, app),
                        "http": {
                            "paths": [
                                {
                                    "path": "/",
                                    "pathType": "Prefix",
                                    "backend": {"service": {"name": name, "port": {"name": "http"}}},
                                }
                            ]
                        },
                    }
                ]
            },
        }

    def destination_rule(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, Any]:
        name = chart_name(app)
        return {
            "apiVersion": "networking.istio.io/v1alpha3",
            "kind": "DestinationRule",
            "metadata": {"name": f"{name}-destinationrule", "namespace": plan.namespace},
            "spec": {
                "host": name,
                "trafficPolicy": {
                    "loadBalancer": {"simple": "RANDOM"},
                    "connectionPool": {"tcp": {"maxConnections": 30, "connectTimeout": "100ms"}},
                    "outlierDetection": {"consecutiveErrors": 5, "interval": "30s", "baseEjectionTime": "60s"},
                },
                "subsets": [{"name": "v1", "labels": {"version": "v1"}}],
            },
        }

    def virtual_service(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, Any]:
        name = chart_name(app)
        return {
            "apiVersion": "networking.istio.io/v1alpha3",
            "kind": "VirtualService",
            "metadata": {"name": f"{name}-virtualservice", "namespace": plan.namespace},
            "spec": {
                "hosts": [name],
                "http": [
                    {
                        "route": [{"destination": {"host": name, "subset": "v1"}, "weight": 100}],
                        "retries": {"attempts": 3, "perTryTimeout": "2s"},
                    }
                ],
            },
        }

    def istio_gateway(self, plan: DeploymentPlan, app: ApplicationConfig) -> dict[str, Any]:
        name = chart_name(app)
        return {
            "apiVersion": "networking.istio.io/v1alpha3",
            "kind": "Gateway",
            "metadata": {"name": f"{name}-gateway", "namespace": plan.namespace},
            "spec": {
                "selector": {"istio": "ingressgateway"},
                "servers": [{"port": {"number": 80, "name": "http", "protocol": "HTTP"}, "hosts": ["*"]}],
            },
        }

    # -------------------------------------------------------------------------
    # SCRIPTS
    # -------------------------------------------------------------------------

    def _script(self, plan: DeploymentPlan, install: str) -> str:
        ns = plan.namespace
        lines = [
            "#!/bin/bash",
            "# Generated by helmgen; re-run helmgen instead of editing by hand",
            "set -e",
            "",
        ]
        if ns != "default":
            lines.append("kubectl apply -f namespace.yml")
        for chart in [SHARED_CHART, *(chart_name(plan.app_for(f)) for f in plan.apps_folders)]:
            lines.append(f"helm dependency update ./{chart}-helm")
            lines.append(install.format(chart=chart, ns=ns))
        return "\n".join(lines) + "\n"

    def apply_script(self, plan: DeploymentPlan) -> str:
        return self._script(
            plan, "helm uninstall {chart} --namespace {ns} 2>/dev/null || true\n"
            "helm install {chart} ./{chart}-helm --namespace {ns}"
        )

    def upgrade_script(self, plan: DeploymentPlan) -> str:
        return self._script(plan, "helm upgrade --install {chart} ./{chart}-helm --namespace {ns}")
