# CloudWatch agent container shared by the sidecar and standalone deployments
from aws_cdk import (
    aws_ecs as ecs,
    aws_logs as logs,
    RemovalPolicy
)
from constructs import Construct

RETENTION_DAYS = {
    1: logs.RetentionDays.ONE_DAY,
    3: logs.RetentionDays.THREE_DAYS,
    5: logs.RetentionDays.FIVE_DAYS,
    7: logs.RetentionDays.ONE_WEEK,
    14: logs.RetentionDays.TWO_WEEKS,
    30: logs.RetentionDays.ONE_MONTH,
    60: logs.RetentionDays.TWO_MONTHS,
    90: logs.RetentionDays.THREE_MONTHS,
}


def create_agent_log_group(scope: Construct, settings) -> logs.LogGroup:
    """Log group receiving both the agent's own output and the EMF records it emits."""
    try:
        retention = RETENTION_DAYS[settings.agent_log_retention_days]
    except KeyError:
        raise ValueError(
            f"unsupported log retention of {settings.agent_log_retention_days} days, "
            f"expected one of {sorted(RETENTION_DAYS)}"
        ) from None
    return logs.LogGroup(
        scope, "log-group",
        log_group_name=settings.agent_log_group_name,
        retention=retention,
        removal_policy=RemovalPolicy.DESTROY
    )


def add_cloudwatch_agent_container(task_definition, image, log_group, environment, essential=True, container_port=None):
    container = task_definition.add_container(
        "cloudwatch-agent",
        image=ecs.ContainerImage.from_registry(image),
        essential=essential,
        environment=environment,
        memory_reservation_mib=50,
        logging=ecs.LogDriver.aws_logs(stream_prefix="ecs", log_group=log_group)
    )
    if container_port is not None:
        container.add_port_mappings(
            ecs.PortMapping(container_port=container_port, protocol=ecs.Protocol.TCP)
        )
    return container
