"""
Request/response shaping for the model families hosted behind Bedrock.

Each provider expects its own JSON body and answers with its own JSON shape.
Providers outside the known set fall back to the Titan-style ``inputText`` /
``results`` layout rather than failing.
"""
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import MalformedResponseError


class Provider(Enum):
    ANTHROPIC = "anthropic"
    AI21 = "ai21"
    AMAZON = "amazon"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: Union[str, "Provider"]) -> "Provider":
        if isinstance(name, Provider):
            return name
        for member in cls:
            if member is not cls.UNKNOWN and member.value == name:
                return member
        return cls.UNKNOWN

    @classmethod
    def from_model_id(cls, model_id: str) -> "Provider":
        return cls.parse(provider_name(model_id))


SUPPORTED_PROVIDERS = ("ai21", "anthropic", "amazon")

ANTHROPIC_DEFAULT_MAX_TOKENS = 50


def provider_name(model_id: str) -> str:
    # "anthropic.claude-v1" -> "anthropic"
    return model_id.split(".", 1)[0]


def prepare_input(
    provider: Union[str, Provider],
    prompt: str,
    model_kwargs: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the JSON request body for one prompt.

    Args:
        provider: Provider name (or parsed Provider) owning the model.
        prompt: Text prompt, passed through unvalidated.
        model_kwargs: Extra provider-specific generation fields. For amazon
            they go inside ``textGenerationConfig``, otherwise at top level.

    Returns:
        A new dict ready to be JSON-encoded.
    """
    kind = Provider.parse(provider)
    extra = dict(model_kwargs or {})

    if kind in (Provider.ANTHROPIC, Provider.AI21):
        body = {**extra, "prompt": prompt}
        if kind is Provider.ANTHROPIC:
            body.setdefault("max_tokens_to_sample", ANTHROPIC_DEFAULT_MAX_TOKENS)
        return body
    if kind is Provider.AMAZON:
        return {"inputText": prompt, "textGenerationConfig": extra}
    return {**extra, "inputText": prompt}


def _dig(provider: str, body: Any, path: tuple) -> str:
    value = body
    walked = []
    for key in path:
        walked.append(str(key))
        try:
            value = value[key]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError(provider, ".".join(walked)) from exc
    if not isinstance(value, str):
        raise MalformedResponseError(provider, ".".join(walked))
    return value


def prepare_output(provider: Union[str, Provider], response_body: Dict[str, Any]) -> str:
    """Extract the completion text from a parsed response body."""
    kind = Provider.parse(provider)
    label = kind.value if isinstance(provider, Provider) else provider
    if kind is Provider.ANTHROPIC:
        return _dig(label, response_body, ("completion",))
    if kind is Provider.AI21:
        return _dig(label, response_body, ("completions", 0, "data", "text"))
    return _dig(label, response_body, ("results", 0, "outputText"))
