# Document models for the CloudWatch agent Prometheus pipeline
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CLOUDWATCH_UNITS = (
    "Seconds", "Microseconds", "Milliseconds",
    "Bytes", "Kilobytes", "Megabytes", "Gigabytes", "Terabytes",
    "Bits", "Kilobits", "Megabits", "Gigabits", "Terabits",
    "Percent", "Count",
    "Bytes/Second", "Kilobytes/Second", "Megabytes/Second", "Gigabytes/Second", "Terabytes/Second",
    "Bits/Second", "Kilobits/Second", "Megabits/Second", "Gigabits/Second", "Terabits/Second",
    "Count/Second", "None",
)

ENV_CONFIG_PREFIX = "env:"

_DURATION_RE = re.compile(
    r"^(?:(\d+)y)?(?:(\d+)w)?(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?(?:(\d+)ms)?$"
)
_DURATION_SECONDS = (365 * 86400, 7 * 86400, 86400, 3600, 60, 1, 0.001)


def parse_duration(value: str) -> float:
    """Convert a Prometheus duration such as ``1m30s`` to seconds."""
    match = _DURATION_RE.match(value or "")
    if not value or match is None:
        raise ValueError(f"invalid duration {value!r}")
    return sum(int(amount) * seconds for amount, seconds in zip(match.groups(), _DURATION_SECONDS) if amount)


def _check_regex(value: str) -> str:
    try:
        re.compile(value)
    except re.error as e:
        raise ValueError(f"invalid regular expression {value!r}: {e}") from e
    return value


def _check_ports(value: str) -> str:
    for port in value.split(";"):
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"invalid metrics port {port!r} in {value!r}")
    return value


class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


# Prometheus scrape configuration

class GlobalSettings(_Document):
    scrape_interval: str = "1m"
    scrape_timeout: str = "10s"

    @model_validator(mode="after")
    def _timeout_within_interval(self):
        if parse_duration(self.scrape_timeout) > parse_duration(self.scrape_interval):
            raise ValueError(
                f"scrape_timeout {self.scrape_timeout} exceeds scrape_interval {self.scrape_interval}"
            )
        return self


class StaticConfig(_Document):
    targets: list[str] = Field(min_length=1)
    labels: Optional[dict[str, str]] = None

    @field_validator("targets")
    @classmethod
    def _host_port(cls, targets):
        for target in targets:
            host, _, port = target.rpartition(":")
            if not host or not port.isdigit() or not 0 < int(port) < 65536:
                raise ValueError(f"target {target!r} is not host:port")
        return targets


class FileSdConfig(_Document):
    files: list[str] = Field(min_length=1)
    refresh_interval: Optional[str] = None

    @field_validator("refresh_interval")
    @classmethod
    def _duration(cls, value):
        if value is not None:
            parse_duration(value)
        return value


class RelabelConfig(_Document):
    source_labels: Optional[list[str]] = None
    separator: Optional[str] = None
    regex: Optional[str] = None
    target_label: Optional[str] = None
    replacement: Optional[str] = None
    action: Literal["replace", "keep", "drop", "labelmap", "labeldrop", "labelkeep", "hashmod"] = "replace"

    @field_validator("regex")
    @classmethod
    def _regex(cls, value):
        return value if value is None else _check_regex(value)

    @model_validator(mode="after")
    def _target_required(self):
        if self.action in ("replace", "hashmod") and not self.target_label:
            raise ValueError(f"relabel action {self.action!r} requires target_label")
        return self


class ScrapeJob(_Document):
    job_name: str = Field(min_length=1)
    sample_limit: Optional[int] = Field(default=None, ge=0)
    scrape_interval: Optional[str] = None
    scrape_timeout: Optional[str] = None
    metrics_path: Optional[str] = None
    static_configs: Optional[list[StaticConfig]] = None
    file_sd_configs: Optional[list[FileSdConfig]] = None
    relabel_configs: Optional[list[RelabelConfig]] = None
    # Labels published by the scraped application itself, not serialized
    exposed_labels: tuple[str, ...] = Field(default=(), exclude=True)

    @field_validator("scrape_interval", "scrape_timeout")
    @classmethod
    def _duration(cls, value):
        if value is not None:
            parse_duration(value)
        return value

    @field_validator("metrics_path")
    @classmethod
    def _absolute_path(cls, value):
        if value is not None and not value.startswith("/"):
            raise ValueError(f"metrics_path {value!r} must start with '/'")
        return value

    @model_validator(mode="after")
    def _single_discovery_mode(self):
        if bool(self.static_configs) == bool(self.file_sd_configs):
            raise ValueError(
                f"job {self.job_name!r} needs exactly one of static_configs or file_sd_configs"
            )
        return self

    @property
    def discovered_files(self) -> list[str]:
        return [path for sd in self.file_sd_configs or () for path in sd.files]


class PrometheusScrapeConfig(_Document):
    global_: GlobalSettings = Field(default_factory=GlobalSettings, alias="global")
    scrape_configs: list[ScrapeJob] = Field(min_length=1)

    @field_validator("scrape_configs")
    @classmethod
    def _unique_jobs(cls, jobs):
        seen = set()
        for job in jobs:
            if job.job_name in seen:
                raise ValueError(f"duplicate job_name {job.job_name!r}")
            seen.add(job.job_name)
        return jobs

    @property
    def job_names(self) -> list[str]:
        return [job.job_name for job in self.scrape_configs]


# CloudWatch agent configuration

class AgentSection(_Document):
    debug: bool = False
    region: Optional[str] = None


class ServiceDiscoveryRule(_Document):
    sd_job_name: str = Field(min_length=1)
    sd_metrics_ports: str
    sd_service_name_pattern: str
    sd_metrics_path: Optional[str] = None
    sd_container_name_pattern: Optional[str] = None

    @field_validator("sd_metrics_ports")
    @classmethod
    def _ports(cls, value):
        return _check_ports(value)

    @field_validator("sd_service_name_pattern", "sd_container_name_pattern")
    @classmethod
    def _regex(cls, value):
        return value if value is None else _check_regex(value)


class TaskDefinitionRule(_Document):
    sd_job_name: str = Field(min_length=1)
    sd_metrics_ports: str
    sd_task_definition_arn_pattern: str
    sd_metrics_path: Optional[str] = None
    sd_container_name_pattern: Optional[str] = None

    @field_validator("sd_metrics_ports")
    @classmethod
    def _ports(cls, value):
        return _check_ports(value)

    @field_validator("sd_task_definition_arn_pattern", "sd_container_name_pattern")
    @classmethod
    def _regex(cls, value):
        return value if value is None else _check_regex(value)


class EcsServiceDiscovery(_Document):
    sd_frequency: str = "1m"
    sd_target_cluster: Optional[str] = None
    sd_cluster_region: Optional[str] = None
    sd_result_file: str
    service_name_list_for_tasks: Optional[list[ServiceDiscoveryRule]] = None
    task_definition_list: Optional[list[TaskDefinitionRule]] = None

    @field_validator("sd_frequency")
    @classmethod
    def _duration(cls, value):
        parse_duration(value)
        return value

    @model_validator(mode="after")
    def _has_rules(self):
        if not self.service_name_list_for_tasks and not self.task_definition_list:
            raise ValueError("ecs_service_discovery needs at least one service or task definition rule")
        return self

    @property
    def rules(self) -> list:
        return [*(self.service_name_list_for_tasks or ()), *(self.task_definition_list or ())]


class MetricDeclaration(_Document):
    source_labels: list[str] = Field(min_length=1)
    label_matcher: str
    dimensions: list[list[str]]
    metric_selectors: list[str] = Field(min_length=1)

    @field_validator("label_matcher")
    @classmethod
    def _matcher(cls, value):
        return _check_regex(value)

    @field_validator("metric_selectors")
    @classmethod
    def _selectors(cls, values):
        return [_check_regex(value) for value in values]

    @field_validator("dimensions")
    @classmethod
    def _dimension_sets(cls, dimensions):
        for dimension_set in dimensions:
            if not dimension_set:
                raise ValueError("dimension sets must name at least one label")
        return dimensions

    def selects(self, metric_name: str) -> bool:
        return any(re.search(selector, metric_name) for selector in self.metric_selectors)


class EmfProcessor(_Document):
    metric_declaration_dedup: Optional[bool] = None
    metric_namespace: str = "Prometheus"
    metric_unit: dict[str, str] = Field(default_factory=dict)
    metric_declaration: list[MetricDeclaration] = Field(default_factory=list)

    @field_validator("metric_unit")
    @classmethod
    def _units(cls, units):
        for metric, unit in units.items():
            if unit not in CLOUDWATCH_UNITS:
                raise ValueError(f"unit {unit!r} for {metric!r} is not a CloudWatch unit")
        return units


class PrometheusSection(_Document):
    cluster_name: Optional[str] = None
    log_group_name: str
    prometheus_config_path: str
    ecs_service_discovery: Optional[EcsServiceDiscovery] = None
    emf_processor: Optional[EmfProcessor] = None

    @property
    def config_env_var(self) -> Optional[str]:
        """Environment variable holding the scrape config, if read from the environment."""
        if self.prometheus_config_path.startswith(ENV_CONFIG_PREFIX):
            return self.prometheus_config_path[len(ENV_CONFIG_PREFIX):]
        return None


class MetricsCollected(_Document):
    prometheus: PrometheusSection


class LogsSection(_Document):
    metrics_collected: MetricsCollected
    force_flush_interval: int = Field(default=5, gt=0)


class CloudWatchAgentConfig(_Document):
    agent: AgentSection = Field(default_factory=AgentSection)
    logs: LogsSection

    @property
    def prometheus(self) -> PrometheusSection:
        return self.logs.metrics_collected.prometheus
