"""Groq chat-completion wrapper used for generated health insights."""

import json
import logging
from typing import Any

from groq import AsyncGroq

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama-3.1-70b-versatile"


class GroqLLMClient:
    """Thin wrapper around AsyncGroq chat completions.

    Example:
        from groq import AsyncGroq
        from vitalcoach.llm_client import GroqLLMClient

        llm = GroqLLMClient(AsyncGroq(api_key="..."))
        insights = await llm.complete_json(prompt, system="...")
    """

    def __init__(self, client: AsyncGroq, model: str = DEFAULT_MODEL) -> None:
        """Initialize the wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
        """
        self._client = client
        self._model = model

    def _messages(self, prompt: str, system: str | None) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response."""
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=self._messages(prompt, system),
        )
        return response.choices[0].message.content or ""

    async def complete_json(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.5,
        max_tokens: int = 300,
    ) -> dict[str, Any]:
        """Complete a prompt in JSON mode and parse the response.

        Raises:
            ValueError: If the model returns something that is not a JSON object.
        """
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=self._messages(prompt, system),
            response_format={"type": "json_object"},
            temperature=temperature,
            max_tokens=max_tokens,
        )
        content = response.choices[0].message.content or "{}"
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Model returned JSON that is not an object")
        return data

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model
