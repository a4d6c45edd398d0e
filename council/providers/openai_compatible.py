"""Chat-completions provider for OpenAI and OpenAI-compatible APIs (xAI, DeepSeek)."""

import os

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from council.providers.base import AIProvider, ProviderError


class OpenAICompatibleProvider(AIProvider):
    """OpenAI SDK client; ``base_url`` points it at Grok, DeepSeek and friends."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        if config.base_url:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)
        else:
            self._client = AsyncOpenAI(api_key=api_key)

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self._config.max_tokens,
        )
        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self.name(), "Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        return choice.message.content, token_count
