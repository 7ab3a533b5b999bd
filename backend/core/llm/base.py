"""LLM contract consumed by the execution engines."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class LLMResponse:
    content: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    raw: dict = field(default_factory=dict)


def extract_json(text: str) -> Any:
    """Parse JSON from a model reply, tolerating prose around one object or array."""
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if 0 <= start < end:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError(f"Failed to parse JSON from LLM response: {text[:200]}")


class BaseLLM(ABC):
    """A chat-completion endpoint as seen by an engine.

    Engines call ``generate``, ``generate_structured`` and ``health`` only;
    transport details stay inside the provider.
    """

    provider_name: str = "base"

    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs,
    ) -> LLMResponse:
        ...

    async def generate_structured(self, prompt: str, system: Optional[str] = None, **kwargs) -> Any:
        """Generate a reply and parse it as JSON.

        Raises:
            ValueError: if no JSON object or array can be recovered.
        """
        instruction = "Respond with JSON only."
        response = await self.generate(
            prompt=prompt,
            system=f"{system}\n\n{instruction}" if system else instruction,
            **kwargs,
        )
        return extract_json(response.content)

    async def health(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
