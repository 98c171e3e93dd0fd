import json

import yaml

from cwagent_infra.agent_config.models import CloudWatchAgentConfig, PrometheusScrapeConfig


def render_prometheus_config(config: PrometheusScrapeConfig) -> str:
    """Serialize the scrape config as the block YAML Prometheus reads."""
    document = config.model_dump(by_alias=True, exclude_none=True)
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


def render_agent_config(config: CloudWatchAgentConfig) -> str:
    """Serialize the agent config as compact JSON for CW_CONFIG_CONTENT."""
    document = config.model_dump(exclude_none=True)
    return json.dumps(document, separators=(",", ":"))


def load_prometheus_config(text: str) -> PrometheusScrapeConfig:
    document = yaml.safe_load(text)
    if not isinstance(document, dict):
        raise ValueError("Prometheus config must be a YAML mapping")
    return PrometheusScrapeConfig.model_validate(document)


def load_agent_config(text: str) -> CloudWatchAgentConfig:
    return CloudWatchAgentConfig.model_validate_json(text)
