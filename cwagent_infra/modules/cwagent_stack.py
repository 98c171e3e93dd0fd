# Standalone CloudWatch agent service discovering app tasks through ECS
from aws_cdk import (
    aws_ecs as ecs,
    aws_iam as iam,
    Stack
)

from constructs import Construct

from cwagent_infra.modules.cwagent import add_cloudwatch_agent_container, create_agent_log_group

class CloudWatchAgentStack(Stack):
    def __init__(self, scope: Construct, id: str, cluster, task_role, settings, revision, **kwargs):
        super().__init__(scope, id, **kwargs)

        self.log_group = create_agent_log_group(self, settings)

        execution_role = iam.Role(self, "ecs-task-execution-role",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AmazonECSTaskExecutionRolePolicy"),
                iam.ManagedPolicy.from_aws_managed_policy_name("CloudWatchAgentServerPolicy")
            ]
        )

        self.task_definition = ecs.FargateTaskDefinition(
            self, "cloudwatch-agent-task",
            family="cloudwatch-agent",
            cpu=settings.agent_cpu,
            memory_limit_mib=settings.agent_memory_mib,
            task_role=task_role,
            execution_role=execution_role
        )
        add_cloudwatch_agent_container(
            self.task_definition,
            image=settings.agent_image,
            log_group=self.log_group,
            environment=revision.render(settings.agent_log_group_name, settings.cluster_name),
            container_port=settings.app_port
        )

        self.service = ecs.FargateService(
            self, "cloudwatch-agent-service",
            cluster=cluster,
            service_name="cwa-service",
            task_definition=self.task_definition,
            enable_execute_command=True,
            desired_count=settings.agent_desired_count
        )
