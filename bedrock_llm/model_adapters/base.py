from abc import ABC, abstractmethod
from typing import Optional, List

class ModelAdapter(ABC):
    @property
    @abstractmethod
    def llm_type(self) -> str:
        """Short identifier of the backing service, e.g. ``"bedrock"``."""
        ...

    @abstractmethod
    def generate(
        self,
        prompt: str,
        stop: Optional[List[str]] = None,
    ) -> str:
        """
        Abstract method to generate one text completion for a prompt.

        Args:
            prompt: Input text prompt to condition generation.
            stop: Optional list of strings where the completion should be cut.

        Returns:
            Generated text string.
        """
        ...


def enforce_stop_tokens(text: str, stop: Optional[List[str]]) -> str:
    # Cut the text at the earliest occurrence of any stop sequence
    if not stop:
        return text
    cut = len(text)
    for token in stop:
        if not token:
            continue
        idx = text.find(token)
        if idx != -1 and idx < cut:
            cut = idx
    return text[:cut]
