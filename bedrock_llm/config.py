from typing import Any, Dict, Mapping

import yaml

from .errors import ConfigurationError
from .model_adapters.bedrock_adapter import BedrockConfig

CONFIG_KEYS = (
    "model_id",
    "region",
    "credentials_profile",
    "temperature",
    "max_tokens",
    "model_kwargs",
    "endpoint_url",
    "max_retries",
    "backoff_factor",
    "timeout",
)


def load_model_config(path: str) -> Dict[str, Any]:
    # Same layout as the other YAML configs: one top-level section per service
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    return cfg or {}


def bedrock_config_from_mapping(cfg: Mapping[str, Any]) -> BedrockConfig:
    """
    Build a BedrockConfig from the ``bedrock`` section of a loaded config.

    Keys left out (or set to null) fall back to the environment and defaults.
    """
    section = cfg.get("bedrock", cfg) or {}
    unknown = set(section) - set(CONFIG_KEYS)
    if unknown:
        raise ConfigurationError(f"Unknown bedrock config keys: {', '.join(sorted(unknown))}")
    fields = {k: v for k, v in section.items() if v is not None}
    return BedrockConfig.resolve(**fields)
