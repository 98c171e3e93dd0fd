"""Tests for the three CloudWatch agent sidecar revisions."""

import json
from dataclasses import replace

import pytest
import yaml

from cwagent_infra.agent_config.revisions import (
    AGENT_CONFIG_ENV,
    JOB_NAME,
    PROMETHEUS_CONFIG_ENV,
    REVISIONS,
    SD_RESULT_FILE,
    DiscoveryMode,
    get_revision,
)
from cwagent_infra.agent_config.validation import ConfigValidationError


class TestGetRevision:
    def test_known_revisions(self):
        assert list(REVISIONS) == ["static", "ecs-debug", "ecs"]

    def test_unknown_revision(self):
        with pytest.raises(ValueError, match="expected one of: static, ecs-debug, ecs"):
            get_revision("v4")


class TestRevisionDifferences:
    def test_discovery_mode_and_deployment(self):
        assert get_revision("static").discovery is DiscoveryMode.STATIC
        assert get_revision("static").runs_as_sidecar
        assert get_revision("ecs-debug").discovery is DiscoveryMode.ECS
        assert not get_revision("ecs").runs_as_sidecar

    def test_debug_flag(self):
        debug = {name: revision.agent_config("/ecs/a", "c").agent.debug for name, revision in REVISIONS.items()}
        assert debug == {"static": False, "ecs-debug": True, "ecs": False}

    def test_unit_maps_differ(self):
        units = {name: revision.metric_units for name, revision in REVISIONS.items()}
        assert len(units["static"]) == 4
        assert len(units["ecs-debug"]) == 8
        assert units["ecs"]["jvm_gc_pause_seconds_count"] == "Count"
        assert "jvm_gc_pause_seconds_count" not in units["ecs-debug"]

    def test_static_revision_has_no_service_discovery(self):
        prometheus = get_revision("static").agent_config("/ecs/a", "sss-cluster").prometheus
        assert prometheus.ecs_service_discovery is None
        assert prometheus.cluster_name == "sss-cluster"

    def test_ecs_revision_discovers_into_file_sd(self):
        revision = get_revision("ecs")
        job = revision.scrape_config("sss-cluster").scrape_configs[0]
        discovery = revision.agent_config("/ecs/a", "sss-cluster").prometheus.ecs_service_discovery
        assert job.discovered_files == [SD_RESULT_FILE]
        assert discovery.sd_result_file == SD_RESULT_FILE
        assert discovery.service_name_list_for_tasks[0].sd_job_name == JOB_NAME

    def test_metric_declarations_shared(self):
        declarations = {
            name: revision.agent_config("/ecs/a", "c").prometheus.emf_processor.metric_declaration
            for name, revision in REVISIONS.items()
        }
        assert declarations["static"] == declarations["ecs-debug"] == declarations["ecs"]
        assert len(declarations["ecs"]) == 3


class TestRender:
    @pytest.mark.parametrize("name", list(REVISIONS))
    def test_render_produces_container_environment(self, name):
        environment = get_revision(name).render("/ecs/cloudwatch-agent", "sss-cluster")
        assert set(environment) == {PROMETHEUS_CONFIG_ENV, AGENT_CONFIG_ENV}
        assert yaml.safe_load(environment[PROMETHEUS_CONFIG_ENV])["scrape_configs"][0]["job_name"] == JOB_NAME
        agent = json.loads(environment[AGENT_CONFIG_ENV])
        prometheus = agent["logs"]["metrics_collected"]["prometheus"]
        assert prometheus["prometheus_config_path"] == f"env:{PROMETHEUS_CONFIG_ENV}"
        assert prometheus["log_group_name"] == "/ecs/cloudwatch-agent"

    def test_render_uses_metrics_target(self):
        revision = replace(get_revision("ecs"), metrics_port=9404, metrics_path="/metrics")
        agent = json.loads(revision.render("/ecs/a", "c")[AGENT_CONFIG_ENV])
        rule = agent["logs"]["metrics_collected"]["prometheus"]["ecs_service_discovery"]["service_name_list_for_tasks"][0]
        assert rule["sd_metrics_ports"] == "9404"
        assert rule["sd_metrics_path"] == "/metrics"

    def test_render_validates(self, monkeypatch):
        monkeypatch.setattr(
            "cwagent_infra.agent_config.revisions.JVM_LABELS", ("area", "id"),
        )
        with pytest.raises(ConfigValidationError, match="action"):
            get_revision("ecs").render("/ecs/a", "c")
