# Deployment settings read from CDK context (cdk.json or `cdk synth -c key=value`)
import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from aws_cdk import Environment
from constructs import Node

from cwagent_infra.agent_config.revisions import SidecarRevision, get_revision


@dataclass(frozen=True)
class DeploymentSettings:
    revision: str = "ecs-debug"
    cluster_name: str = "sss-cluster"
    repository_name: str = "sss-spring-prometheus"
    max_azs: int = 2
    nat_gateways: int = 2
    subnet_cidr_mask: int = 24
    app_container_name: str = "Spring-Prometheus"
    app_port: int = 8080
    app_desired_count: int = 2
    health_check_path: str = "/actuator/health"
    metrics_path: str = "/actuator/prometheus"
    agent_image: str = "public.ecr.aws/cloudwatch-agent/cloudwatch-agent:latest"
    agent_log_group_name: str = "/ecs/cloudwatch-agent"
    agent_log_retention_days: int = 7
    agent_cpu: int = 256
    agent_memory_mib: int = 512
    agent_desired_count: int = 1

    @classmethod
    def from_context(cls, node: Node) -> "DeploymentSettings":
        """Build settings from context keys named after the fields (``cluster_name``, ``app_port``, ...)."""
        values = {}
        for setting in fields(cls):
            value = node.try_get_context(setting.name)
            if value is None:
                continue
            if setting.type is int:
                value = _context_int(setting.name, value)
            values[setting.name] = value
        return cls(**values)

    def sidecar_revision(self) -> SidecarRevision:
        """The selected revision, pointed at this deployment's metrics port and path."""
        return replace(
            get_revision(self.revision),
            metrics_path=self.metrics_path,
            metrics_port=self.app_port,
        )


def deployment_environment() -> Optional[Environment]:
    account = os.getenv("CDK_DEFAULT_ACCOUNT")
    region = os.getenv("CDK_DEFAULT_REGION")
    if not account and not region:
        return None
    return Environment(account=account, region=region)


def _context_int(name, value) -> int:
    # JSON context can carry booleans and floats; only whole numbers are accepted
    if isinstance(value, bool):
        raise ValueError(f"context value {name}={value!r} is not an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"context value {name}={value!r} is not an integer")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"context value {name}={value!r} is not an integer") from None
