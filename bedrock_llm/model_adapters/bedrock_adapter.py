import os
import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, List

from ..errors import ConfigurationError, HttpStatusError, MalformedResponseError
from ..transport import SignedSender
from .base import ModelAdapter, enforce_stop_tokens
from .providers import SUPPORTED_PROVIDERS, prepare_input, prepare_output, provider_name

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "amazon.titan-tg1-large"

# Environment fallbacks, checked in order
MODEL_ENV = "BEDROCK_MODEL_ID"
REGION_ENVS = ("AWS_DEFAULT_REGION", "AWS_REGION")
PROFILE_ENV = "BEDROCK_CREDENTIALS_PROFILE_NAME"


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class BedrockConfig:
    """
    Resolved settings for one Bedrock model.

    ``temperature`` and ``max_tokens`` are kept for callers that inspect the
    config but are not sent to the service; provider-specific generation
    fields go through ``model_kwargs``.
    """
    model_id: str
    region: str
    credentials_profile: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model_kwargs: Mapping[str, Any] = field(default_factory=dict)
    endpoint_url: Optional[str] = None
    max_retries: int = 3
    backoff_factor: float = 0.5
    timeout: float = 60

    def __post_init__(self):
        if not isinstance(self.model_id, str):
            raise ConfigurationError(f"model_id must be a string, got {self.model_id!r}")
        if self.region is not None and not isinstance(self.region, str):
            raise ConfigurationError(f"region must be a string, got {self.region!r}")
        if not self.region:
            raise ConfigurationError(
                "No AWS region configured for Bedrock. Pass region or set "
                f"one of {', '.join(REGION_ENVS)}."
            )
        prefix = provider_name(self.model_id)
        if prefix not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"Unsupported provider '{prefix}' in model id '{self.model_id}'. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if self.model_kwargs is not None and not isinstance(self.model_kwargs, Mapping):
            raise ConfigurationError(f"model_kwargs must be a mapping, got {self.model_kwargs!r}")
        # read-only view so the frozen config cannot be changed through it
        object.__setattr__(self, "model_kwargs", MappingProxyType(dict(self.model_kwargs or {})))

    @classmethod
    def resolve(
        cls,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        credentials_profile: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model_kwargs: Optional[Dict[str, Any]] = None,
        **extra: Any,
    ) -> "BedrockConfig":
        # Explicit argument, then environment, then built-in default
        return cls(
            model_id=model_id or os.getenv(MODEL_ENV) or DEFAULT_MODEL_ID,
            region=region or _first_env(*REGION_ENVS),
            credentials_profile=credentials_profile or os.getenv(PROFILE_ENV),
            temperature=temperature,
            max_tokens=max_tokens,
            model_kwargs=model_kwargs or {},
            **extra,
        )

    @property
    def provider(self) -> str:
        return provider_name(self.model_id)

    @property
    def url(self) -> str:
        base = self.endpoint_url or f"https://bedrock.{self.region}.amazonaws.com"
        return f"{base.rstrip('/')}/model/{self.model_id}/invoke"


class BedrockModel(ModelAdapter):
    """
    Text completion through the Bedrock ``invoke`` endpoint.

    Either pass a ready ``BedrockConfig`` or the individual fields accepted by
    ``BedrockConfig.resolve``. ``sender`` is anything with a
    ``send(url, body, headers)`` method returning a requests-like response;
    it defaults to a SigV4-signing sender with retries.
    """

    def __init__(self, config: Optional[BedrockConfig] = None, sender=None, **fields: Any):
        if config is None:
            config = BedrockConfig.resolve(**fields)
        elif fields:
            raise TypeError("Pass either a BedrockConfig or individual fields, not both")
        self.config = config
        self.sender = sender or SignedSender(
            region=config.region,
            profile=config.credentials_profile,
            service="bedrock",
            max_retries=config.max_retries,
            backoff_factor=config.backoff_factor,
            timeout=config.timeout,
        )

    @property
    def llm_type(self) -> str:
        return "bedrock"

    def call(self, prompt: str, stop: Optional[List[str]] = None) -> str:
        url = self.config.url
        provider = self.config.provider
        body = prepare_input(provider, prompt, self.config.model_kwargs)
        headers = {"Content-Type": "application/json", "Accept": "application/json"}

        resp = self.sender.send(url, json.dumps(body), headers)
        if not 200 <= resp.status_code < 300:
            logger.warning("Bedrock returned %s for %s", resp.status_code, url)
            raise HttpStatusError(url, resp.status_code, resp.reason, resp.text)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(provider, "body") from exc
        text = prepare_output(provider, payload)
        logger.debug("Bedrock %s returned %d characters", self.config.model_id, len(text))
        return enforce_stop_tokens(text, stop)

    def generate(self, prompt: str, stop: Optional[List[str]] = None) -> str:
        return self.call(prompt, stop=stop)
