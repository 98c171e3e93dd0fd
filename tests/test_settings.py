"""Tests for DeploymentSettings read from CDK context."""

import pytest
from aws_cdk import App

from cwagent_infra.settings import DeploymentSettings, deployment_environment


class TestDeploymentSettings:
    def test_defaults(self, cdk_app):
        settings = DeploymentSettings.from_context(cdk_app.node)

        assert settings == DeploymentSettings()
        assert settings.revision == "ecs-debug"
        assert settings.app_container_name == "Spring-Prometheus"
        assert settings.app_port == 8080
        assert settings.health_check_path == "/actuator/health"
        assert settings.agent_log_group_name == "/ecs/cloudwatch-agent"

    def test_context_overrides(self):
        app = App(context={"revision": "static", "cluster_name": "metrics", "app_port": "9090"})
        settings = DeploymentSettings.from_context(app.node)

        assert settings.revision == "static"
        assert settings.cluster_name == "metrics"
        assert settings.app_port == 9090

    @pytest.mark.parametrize(
        "value, shown",
        [("two", "'two'"), (2.7, "2.7"), (True, "True")],
    )
    def test_non_integer_context_rejected(self, value, shown):
        app = App(context={"app_desired_count": value})
        with pytest.raises(ValueError, match=f"app_desired_count={shown} is not an integer"):
            DeploymentSettings.from_context(app.node)

    def test_whole_float_context_accepted(self):
        app = App(context={"agent_log_retention_days": 14.0, "max_azs": "3"})
        settings = DeploymentSettings.from_context(app.node)

        assert settings.agent_log_retention_days == 14
        assert settings.max_azs == 3

    def test_sidecar_revision_targets_app_port(self):
        settings = DeploymentSettings(revision="ecs", app_port=9404, metrics_path="/metrics")
        revision = settings.sidecar_revision()

        assert revision.name == "ecs"
        assert revision.metrics_port == 9404
        assert revision.metrics_path == "/metrics"

    def test_unknown_revision(self):
        with pytest.raises(ValueError, match="unknown sidecar revision"):
            DeploymentSettings(revision="v4").sidecar_revision()


class TestDeploymentEnvironment:
    def test_env_agnostic_without_defaults(self, monkeypatch):
        monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
        monkeypatch.delenv("CDK_DEFAULT_REGION", raising=False)
        assert deployment_environment() is None

    def test_uses_cdk_defaults(self, monkeypatch):
        monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")
        monkeypatch.setenv("CDK_DEFAULT_REGION", "eu-west-1")
        env = deployment_environment()
        assert env.account == "123456789012"
        assert env.region == "eu-west-1"
