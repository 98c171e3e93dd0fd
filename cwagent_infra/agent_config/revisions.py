"""
Revisions of the CloudWatch agent sidecar configuration.

Each revision pairs a Prometheus scrape config with the agent config that turns
the scraped JVM series into EMF log records:

- ``static``: the agent runs inside the application task and scrapes
  ``localhost`` directly; ``ClusterName`` comes from a relabel rule.
- ``ecs-debug``: the agent runs as its own service and finds application tasks
  through ECS service discovery, with agent debug logging on.
- ``ecs``: same discovery as ``ecs-debug`` with debug off and units for every
  selected metric.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum

from cwagent_infra.agent_config.models import (
    AgentSection,
    CloudWatchAgentConfig,
    EcsServiceDiscovery,
    EmfProcessor,
    FileSdConfig,
    GlobalSettings,
    LogsSection,
    MetricDeclaration,
    MetricsCollected,
    PrometheusScrapeConfig,
    PrometheusSection,
    RelabelConfig,
    ScrapeJob,
    ServiceDiscoveryRule,
    StaticConfig,
    ENV_CONFIG_PREFIX,
)
from cwagent_infra.agent_config.rendering import render_agent_config, render_prometheus_config
from cwagent_infra.agent_config.validation import validate_sidecar_config

logger = logging.getLogger(__name__)

JOB_NAME = "prometheus-job"
SAMPLE_LIMIT = 10000
SD_RESULT_FILE = "/tmp/cwagent_ecs_auto_sd.yaml"
METRIC_NAMESPACE = "Prometheus"
DEFAULT_METRICS_PATH = "/actuator/prometheus"
DEFAULT_METRICS_PORT = 8080

PROMETHEUS_CONFIG_ENV = "PROMETHEUS_CONFIG_CONTENT"
AGENT_CONFIG_ENV = "CW_CONFIG_CONTENT"

# Micrometer JVM metrics carry these labels themselves
JVM_LABELS = ("area", "id", "action", "cause")

BASE_METRIC_UNITS = {
    "jvm_threads_current": "Count",
    "jvm_classes_loaded": "Count",
    "jvm_gc_collection_seconds_sum": "Seconds",
    "jvm_memory_used_bytes": "Bytes",
}

JVM_METRIC_UNITS = {
    "jvm_threads_current": "Count",
    "jvm_classes_loaded": "Count",
    "java_lang_operatingsystem_freephysicalmemorysize": "Bytes",
    "catalina_manager_activesessions": "Count",
    "jvm_gc_collection_seconds_sum": "Seconds",
    "catalina_globalrequestprocessor_bytesreceived": "Bytes",
    "jvm_memory_used_bytes": "Bytes",
    "jvm_memory_pool_bytes_used": "Bytes",
}

SELECTED_METRIC_UNITS = {
    **JVM_METRIC_UNITS,
    "jvm_memory_committed_bytes": "Bytes",
    "jvm_gc_pause_seconds_count": "Count",
}


class DiscoveryMode(str, Enum):
    STATIC = "static"
    ECS = "ecs"


def jvm_metric_declarations(job_name: str = JOB_NAME) -> list[MetricDeclaration]:
    matcher = f"^{job_name}$"
    return [
        MetricDeclaration(
            source_labels=["job"],
            label_matcher=matcher,
            dimensions=[["ClusterName", "area", "id"]],
            metric_selectors=["^jvm_memory_used_bytes$"],
        ),
        MetricDeclaration(
            source_labels=["job"],
            label_matcher=matcher,
            dimensions=[["ClusterName", "area", "id"]],
            metric_selectors=["^jvm_memory_committed_bytes$"],
        ),
        MetricDeclaration(
            source_labels=["job"],
            label_matcher=matcher,
            dimensions=[["ClusterName", "action", "cause"]],
            metric_selectors=["^jvm_gc_pause_seconds_count$"],
        ),
    ]


@dataclass(frozen=True)
class SidecarRevision:
    name: str
    discovery: DiscoveryMode
    debug: bool
    metric_units: dict = field(default_factory=dict)
    metrics_path: str = DEFAULT_METRICS_PATH
    metrics_port: int = DEFAULT_METRICS_PORT

    @property
    def runs_as_sidecar(self) -> bool:
        """Whether the agent shares the application task rather than running as its own service."""
        return self.discovery is DiscoveryMode.STATIC

    def scrape_job(self, cluster_name: str) -> ScrapeJob:
        if self.discovery is DiscoveryMode.STATIC:
            return ScrapeJob(
                job_name=JOB_NAME,
                sample_limit=SAMPLE_LIMIT,
                metrics_path=self.metrics_path,
                static_configs=[StaticConfig(targets=[f"localhost:{self.metrics_port}"])],
                relabel_configs=[RelabelConfig(target_label="ClusterName", replacement=cluster_name)],
                exposed_labels=JVM_LABELS,
            )
        return ScrapeJob(
            job_name=JOB_NAME,
            sample_limit=SAMPLE_LIMIT,
            file_sd_configs=[FileSdConfig(files=[SD_RESULT_FILE])],
            exposed_labels=JVM_LABELS,
        )

    def scrape_config(self, cluster_name: str) -> PrometheusScrapeConfig:
        return PrometheusScrapeConfig(
            global_=GlobalSettings(scrape_interval="1m", scrape_timeout="10s"),
            scrape_configs=[self.scrape_job(cluster_name)],
        )

    def service_discovery(self):
        if self.discovery is not DiscoveryMode.ECS:
            return None
        return EcsServiceDiscovery(
            sd_frequency="1m",
            sd_result_file=SD_RESULT_FILE,
            service_name_list_for_tasks=[
                ServiceDiscoveryRule(
                    sd_job_name=JOB_NAME,
                    sd_metrics_ports=str(self.metrics_port),
                    sd_service_name_pattern=".*",
                    sd_metrics_path=self.metrics_path,
                ),
            ],
        )

    def agent_config(self, log_group_name: str, cluster_name: str) -> CloudWatchAgentConfig:
        prometheus = PrometheusSection(
            cluster_name=cluster_name if self.discovery is DiscoveryMode.STATIC else None,
            log_group_name=log_group_name,
            prometheus_config_path=f"{ENV_CONFIG_PREFIX}{PROMETHEUS_CONFIG_ENV}",
            ecs_service_discovery=self.service_discovery(),
            emf_processor=EmfProcessor(
                metric_namespace=METRIC_NAMESPACE,
                metric_unit=dict(self.metric_units),
                metric_declaration=jvm_metric_declarations(),
            ),
        )
        return CloudWatchAgentConfig(
            agent=AgentSection(debug=self.debug),
            logs=LogsSection(
                metrics_collected=MetricsCollected(prometheus=prometheus),
                force_flush_interval=5,
            ),
        )

    def render(self, log_group_name: str, cluster_name: str) -> dict[str, str]:
        """Validate the revision and return the agent container environment."""
        scrape_config = self.scrape_config(cluster_name)
        agent_config = self.agent_config(log_group_name, cluster_name)
        validate_sidecar_config(scrape_config, agent_config)
        logger.info(f"Rendered CloudWatch agent config for revision {self.name} ({self.discovery.value} discovery)")
        return {
            PROMETHEUS_CONFIG_ENV: render_prometheus_config(scrape_config),
            AGENT_CONFIG_ENV: render_agent_config(agent_config),
        }


REVISIONS = {
    revision.name: revision
    for revision in (
        SidecarRevision(
            name="static",
            discovery=DiscoveryMode.STATIC,
            debug=False,
            metric_units=BASE_METRIC_UNITS,
        ),
        SidecarRevision(
            name="ecs-debug",
            discovery=DiscoveryMode.ECS,
            debug=True,
            metric_units=JVM_METRIC_UNITS,
        ),
        SidecarRevision(
            name="ecs",
            discovery=DiscoveryMode.ECS,
            debug=False,
            metric_units=SELECTED_METRIC_UNITS,
        ),
    )
}


def get_revision(name: str) -> SidecarRevision:
    try:
        return REVISIONS[name]
    except KeyError:
        raise ValueError(f"unknown sidecar revision {name!r}, expected one of: {', '.join(REVISIONS)}") from None
