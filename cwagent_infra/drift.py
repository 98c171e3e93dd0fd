"""
Compare the CloudWatch agent configuration deployed on ECS with the one this
repository would synthesize.

    cwagent-drift --revision ecs-debug --task-definition cloudwatch-agent

Exit status is 0 when the deployed container matches, 1 on drift and 2 when
the check itself could not run.
"""
import argparse
import json
import logging

import boto3
import yaml
from botocore.exceptions import BotoCoreError, ClientError

from cwagent_infra.agent_config.rendering import load_agent_config, load_prometheus_config
from cwagent_infra.agent_config.revisions import AGENT_CONFIG_ENV, PROMETHEUS_CONFIG_ENV
from cwagent_infra.settings import DeploymentSettings

logger = logging.getLogger(__name__)

DEFAULT_TASK_DEFINITION = "cloudwatch-agent"
DEFAULT_CONTAINER = "cloudwatch-agent"

# (environment variable, raw parser, schema loader)
_DOCUMENTS = (
    (PROMETHEUS_CONFIG_ENV, yaml.safe_load, load_prometheus_config),
    (AGENT_CONFIG_ENV, json.loads, load_agent_config),
)


class DriftCheckError(Exception):
    pass


def fetch_container_environment(task_definition, container_name, ecs_client) -> dict[str, str]:
    try:
        response = ecs_client.describe_task_definition(taskDefinition=task_definition)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to describe task definition {task_definition}: {e}")
        raise DriftCheckError(f"could not describe task definition {task_definition!r}: {e}") from e

    for container in response["taskDefinition"]["containerDefinitions"]:
        if container["name"] == container_name:
            return {item["name"]: item["value"] for item in container.get("environment", [])}
    raise DriftCheckError(f"task definition {task_definition!r} has no container {container_name!r}")


def diff_documents(expected, deployed, path="") -> list[str]:
    """List differences between two parsed documents, walking mapping keys in sorted order."""
    differences = []
    if isinstance(expected, dict) and isinstance(deployed, dict):
        for key in sorted(set(expected) | set(deployed)):
            child = f"{path}.{key}" if path else key
            if key not in deployed:
                differences.append(f"{child}: missing from deployed config")
            elif key not in expected:
                differences.append(f"{child}: unexpected in deployed config")
            else:
                differences.extend(diff_documents(expected[key], deployed[key], child))
    elif isinstance(expected, list) and isinstance(deployed, list) and len(expected) == len(deployed):
        for index, (expected_item, deployed_item) in enumerate(zip(expected, deployed)):
            differences.extend(diff_documents(expected_item, deployed_item, f"{path}[{index}]"))
    elif expected != deployed:
        differences.append(f"{path or '<root>'}: {expected!r} != {deployed!r}")
    return differences


def check_drift(revision, settings, task_definition=DEFAULT_TASK_DEFINITION,
                container_name=DEFAULT_CONTAINER, ecs_client=None) -> list[str]:
    """
    Diff the deployed documents against the rendered ones as plain YAML/JSON,
    so hand-edited keys and values the models would reject are still reported
    field by field. A deployed document that parses but no longer fits the
    config models gets one extra line saying so.
    """
    expected = revision.render(settings.agent_log_group_name, settings.cluster_name)
    if ecs_client is None:
        ecs_client = boto3.client("ecs")
    deployed = fetch_container_environment(task_definition, container_name, ecs_client)

    differences = []
    for name, parse, load in _DOCUMENTS:
        if name not in deployed:
            differences.append(f"{name}: not set on container {container_name!r}")
            continue
        try:
            deployed_document = parse(deployed[name])
        except (ValueError, yaml.YAMLError) as e:
            logger.warning(f"Deployed {name} does not parse: {e}")
            differences.append(f"{name}: deployed value is not a valid document")
            continue
        differences.extend(
            f"{name} {difference}"
            for difference in diff_documents(parse(expected[name]), deployed_document)
        )
        try:
            load(deployed[name])
        except ValueError as e:
            logger.warning(f"Deployed {name} does not fit the config model: {e}")
            differences.append(f"{name}: deployed value does not fit the config model")
    return differences


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check the deployed CloudWatch agent config for drift.")
    parser.add_argument("--revision", default=DeploymentSettings.revision)
    parser.add_argument("--task-definition",
                        help="task definition family, family:revision or ARN "
                             f"(default {DEFAULT_TASK_DEFINITION}; required for sidecar revisions)")
    parser.add_argument("--container", default=DEFAULT_CONTAINER)
    parser.add_argument("--cluster-name", default=DeploymentSettings.cluster_name)
    parser.add_argument("--log-group-name", default=DeploymentSettings.agent_log_group_name)
    parser.add_argument("--app-port", type=int, default=DeploymentSettings.app_port)
    parser.add_argument("--metrics-path", default=DeploymentSettings.metrics_path)
    parser.add_argument("--region")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S%z'
    )

    settings = DeploymentSettings(
        revision=args.revision,
        cluster_name=args.cluster_name,
        agent_log_group_name=args.log_group_name,
        app_port=args.app_port,
        metrics_path=args.metrics_path,
    )
    try:
        revision = settings.sidecar_revision()
    except ValueError as e:
        logger.error(f"Drift check failed: {e}")
        return 2

    task_definition = args.task_definition
    if task_definition is None:
        if revision.runs_as_sidecar:
            # the agent shares the app's task definition, whose family CDK generates
            parser.error(f"--task-definition is required for the {revision.name} revision")
        task_definition = DEFAULT_TASK_DEFINITION

    try:
        ecs_client = boto3.client("ecs", region_name=args.region)
        differences = check_drift(revision, settings, task_definition, args.container, ecs_client)
    except (DriftCheckError, BotoCoreError, ValueError) as e:
        logger.error(f"Drift check failed: {e}")
        return 2

    if differences:
        for difference in differences:
            print(difference)
        logger.warning(f"{len(differences)} difference(s) between revision {revision.name} and {task_definition}")
        return 1
    logger.info(f"{task_definition} matches revision {revision.name}")
    return 0
