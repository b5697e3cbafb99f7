from typing import Optional


class BedrockError(Exception):
    """Base class for every error raised by the Bedrock adapter."""


class ConfigurationError(BedrockError, ValueError):
    pass


class DependencyMissingError(BedrockError, ImportError):
    pass


class HttpStatusError(BedrockError):
    """Raised when the service answers with a status outside [200, 300)."""

    def __init__(self, url: str, status_code: int, reason: Optional[str] = None, text: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.text = text
        status = f"{status_code} {reason}" if reason else str(status_code)
        super().__init__(f"HTTP {status} calling {url}: {text}")


class MalformedResponseError(BedrockError):
    """Raised when a response body lacks the field its provider should return."""

    def __init__(self, provider: str, field: str):
        self.provider = provider
        self.field = field
        super().__init__(f"Malformed {provider} response: missing '{field}'")
