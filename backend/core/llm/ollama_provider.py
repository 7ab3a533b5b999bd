"""Ollama chat endpoint over httpx."""

import logging
from typing import Optional

import httpx

from .base import BaseLLM, LLMResponse

logger = logging.getLogger(__name__)


class OllamaProvider(BaseLLM):

    provider_name = "ollama"

    def __init__(self, model: str, base_url: str = "http://localhost:11434", **kwargs):
        super().__init__(model, **kwargs)
        self.base_url = base_url.rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    def _payload(self, prompt: str, system: Optional[str], temperature: Optional[float], max_tokens: Optional[int]) -> dict:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.temperature if temperature is None else temperature,
                "num_predict": self.max_tokens if max_tokens is None else max_tokens,
            },
        }

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs,
    ) -> LLMResponse:
        response = await self.client.post("/api/chat", json=self._payload(prompt, system, temperature, max_tokens))
        response.raise_for_status()
        body = response.json()
        return LLMResponse(
            content=body["message"]["content"],
            model=body.get("model", self.model),
            provider=self.provider_name,
            prompt_tokens=body.get("prompt_eval_count", 0),
            completion_tokens=body.get("eval_count", 0),
            raw=body,
        )

    async def health(self) -> bool:
        """Reachable when the model listing answers without a server error."""
        try:
            response = await self.client.get("/api/tags")
        except httpx.HTTPError as e:
            logger.warning("Ollama at %s unreachable: %s", self.base_url, e)
            return False
        return response.status_code < 500

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
