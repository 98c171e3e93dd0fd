# ECS Stack module
from aws_cdk import (
    aws_ecs as ecs,
    aws_ecs_patterns as ecs_patterns,
    aws_iam as iam,
    Stack
)

from constructs import Construct

from cwagent_infra.modules.cwagent import add_cloudwatch_agent_container, create_agent_log_group

# Read-only ECS calls the agent's service discovery makes to find scrape targets
ECS_DISCOVERY_ACTIONS = [
    "ecs:ListTasks",
    "ecs:ListServices",
    "ecs:DescribeContainerInstances",
    "ecs:DescribeServices",
    "ecs:DescribeTasks",
    "ecs:DescribeTaskDefinition",
]

class EcsStack(Stack):
    def __init__(self, scope: Construct, id: str, vpc, app_repo, settings, revision, **kwargs):
        super().__init__(scope, id, **kwargs)

        self.cluster = ecs.Cluster(self, "SSSCluster",
            vpc=vpc,
            cluster_name=settings.cluster_name,
            container_insights_v2=ecs.ContainerInsights.ENABLED
        )

        self.task_role = self.create_task_role()

        # Spring Boot app behind a public ALB
        self.app_service = ecs_patterns.ApplicationLoadBalancedFargateService(
            self, "FargateService",
            cluster=self.cluster,
            task_image_options=ecs_patterns.ApplicationLoadBalancedTaskImageOptions(
                container_name=settings.app_container_name,
                image=ecs.ContainerImage.from_ecr_repository(app_repo),
                container_port=settings.app_port,
                task_role=self.task_role
            ),
            desired_count=settings.app_desired_count
        )
        self.app_service.target_group.configure_health_check(path=settings.health_check_path)

        # Static revision: agent scrapes localhost from inside the app task
        self.agent_log_group = None
        if revision.runs_as_sidecar:
            self.agent_log_group = create_agent_log_group(self, settings)
            add_cloudwatch_agent_container(
                self.app_service.task_definition,
                image=settings.agent_image,
                log_group=self.agent_log_group,
                environment=revision.render(settings.agent_log_group_name, settings.cluster_name),
                essential=False
            )

    def create_task_role(self):
        task_role = iam.Role(self, "ecs-task-role",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            # Lets the agent put EMF logs and metrics to CloudWatch
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("CloudWatchAgentServerPolicy")
            ]
        )
        iam.Policy(self, "ecs-metrics",
            roles=[task_role],
            statements=[
                iam.PolicyStatement(
                    resources=["*"],
                    actions=ECS_DISCOVERY_ACTIONS
                )
            ]
        )
        return task_role
