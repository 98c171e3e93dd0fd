"""
Consistency checks across the Prometheus scrape config and the CloudWatch agent config.

The agent only reports a bad pairing of the two documents at container start,
or not at all: a metric declaration whose label matcher names no scrape job
simply matches nothing. These checks run at synth time instead.
"""
import logging
import re

from cwagent_infra.agent_config.models import (
    CloudWatchAgentConfig,
    MetricDeclaration,
    PrometheusScrapeConfig,
    ScrapeJob,
)

logger = logging.getLogger(__name__)

# Labels Prometheus attaches to every scraped series
BASE_LABELS = frozenset({"job", "instance"})

# Labels the agent's ECS service discovery writes for each discovered task.
# ClusterName is attached by the agent itself when running on ECS.
ECS_DISCOVERY_LABELS = frozenset({
    "ClusterName",
    "container_name",
    "LaunchType",
    "StartedBy",
    "TaskClusterName",
    "TaskDefinitionFamily",
    "TaskGroup",
    "TaskId",
    "TaskRevision",
})


class ConfigValidationError(ValueError):
    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


def available_labels(job: ScrapeJob, agent_config: CloudWatchAgentConfig) -> set[str]:
    """Label names a series scraped by ``job`` can carry when it reaches the EMF processor."""
    labels = set(BASE_LABELS) | set(job.exposed_labels)
    for relabel in job.relabel_configs or ():
        if relabel.action == "replace" and relabel.target_label:
            labels.add(relabel.target_label)
    for static in job.static_configs or ():
        labels.update((static.labels or {}).keys())
    discovery = agent_config.prometheus.ecs_service_discovery
    if discovery is not None and discovery.sd_result_file in job.discovered_files:
        labels |= ECS_DISCOVERY_LABELS
    return labels


def matched_jobs(declaration: MetricDeclaration, scrape_config: PrometheusScrapeConfig) -> list[ScrapeJob]:
    # The agent joins source label values with ';' and searches, not full-matches
    return [job for job in scrape_config.scrape_configs if re.search(declaration.label_matcher, job.job_name)]


def check_label_matchers(scrape_config, agent_config) -> list[str]:
    problems = []
    for index, declaration in enumerate(_declarations(agent_config)):
        if declaration.source_labels != ["job"]:
            logger.debug(f"metric_declaration[{index}] is sourced on {declaration.source_labels}, not checked")
            continue
        if not matched_jobs(declaration, scrape_config):
            problems.append(
                f"metric_declaration[{index}] label_matcher {declaration.label_matcher!r} "
                f"matches no scrape job (jobs: {', '.join(scrape_config.job_names)})"
            )
    return problems


def check_dimensions(scrape_config, agent_config) -> list[str]:
    problems = []
    for index, declaration in enumerate(_declarations(agent_config)):
        if declaration.source_labels != ["job"]:
            continue
        for job in matched_jobs(declaration, scrape_config):
            labels = available_labels(job, agent_config)
            for dimension_set in declaration.dimensions:
                missing = [label for label in dimension_set if label not in labels]
                if missing:
                    problems.append(
                        f"metric_declaration[{index}] dimensions {dimension_set} use labels "
                        f"{missing} not produced by job {job.job_name!r}"
                    )
    return problems


def check_service_discovery(scrape_config, agent_config) -> list[str]:
    discovery = agent_config.prometheus.ecs_service_discovery
    if discovery is None:
        return []
    problems = []
    readers = [job for job in scrape_config.scrape_configs if discovery.sd_result_file in job.discovered_files]
    if not readers:
        problems.append(f"no scrape job reads the ECS discovery result file {discovery.sd_result_file!r}")
    for rule in discovery.rules:
        # Discovered targets carry job=<sd_job_name>, not the reading job's name, so the two must
        # agree for label matchers checked against job_name to see the discovered series
        if rule.sd_job_name not in scrape_config.job_names:
            problems.append(f"ECS discovery rule names unknown scrape job {rule.sd_job_name!r}")
    return problems


def validate_sidecar_config(scrape_config: PrometheusScrapeConfig, agent_config: CloudWatchAgentConfig) -> None:
    problems = [
        *check_label_matchers(scrape_config, agent_config),
        *check_dimensions(scrape_config, agent_config),
        *check_service_discovery(scrape_config, agent_config),
    ]
    _log_unselected_units(agent_config)
    if problems:
        for problem in problems:
            logger.error(problem)
        raise ConfigValidationError(problems)


def _declarations(agent_config) -> list[MetricDeclaration]:
    emf = agent_config.prometheus.emf_processor
    return list(emf.metric_declaration) if emf is not None else []


def _log_unselected_units(agent_config) -> None:
    emf = agent_config.prometheus.emf_processor
    if emf is None:
        return
    for metric in emf.metric_unit:
        if not any(declaration.selects(metric) for declaration in emf.metric_declaration):
            logger.debug(f"metric_unit entry {metric!r} is not selected by any metric_declaration")
