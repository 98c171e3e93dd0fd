#!/usr/bin/env python3
import logging

import aws_cdk as cdk
from cwagent_infra.settings import DeploymentSettings, deployment_environment
from cwagent_infra.modules.vpc_stack import VpcStack
from cwagent_infra.modules.ecr_stack import EcrStack
from cwagent_infra.modules.ecs_stack import EcsStack
from cwagent_infra.modules.cwagent_stack import CloudWatchAgentStack

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
    datefmt='%Y-%m-%dT%H:%M:%S%z'
)
logger = logging.getLogger("app")

app = cdk.App()

settings = DeploymentSettings.from_context(app.node)
revision = settings.sidecar_revision()
env = deployment_environment()
logger.info(f"Synthesizing CloudWatch agent revision {revision.name} for cluster {settings.cluster_name}")

vpc_stack = VpcStack(app, "VpcStack", settings=settings, env=env)
ecr_stack = EcrStack(app, "EcrStack", repository_name=settings.repository_name, env=env)

ecs_stack = EcsStack(
    app, "EcsStack",
    vpc=vpc_stack.vpc,
    app_repo=ecr_stack.app_repo,
    settings=settings,
    revision=revision,
    env=env
)

# ECS discovery revisions run the agent as its own service in the app cluster
if not revision.runs_as_sidecar:
    cwagent_stack = CloudWatchAgentStack(
        app, "CloudWatchAgentStack",
        cluster=ecs_stack.cluster,
        task_role=ecs_stack.task_role,
        settings=settings,
        revision=revision,
        env=env
    )

app.synth()
