"""Abstract base for model-invocation providers (agents, coordinator, evaluator)."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from config.config_loader import ModelConfig
from council.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails or times out."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")

    @property
    def timed_out(self) -> bool:
        return "timed out" in str(self).lower()


class AIProvider(ABC):
    """Prompt in, text out, bounded by the model's configured timeout.

    Subclasses only implement ``_complete``; timing, timeout handling, error
    wrapping and logging live here.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        return self._config.name

    def model_string(self) -> str:
        """Return the actual model identifier string."""
        return self._config.model

    @abstractmethod
    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        """Return (text, token_count) for a single prompt."""
        ...

    async def generate(self, prompt: str, round_number: int) -> ModelResponse:
        """Generate a response for the given prompt.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        start = time.monotonic()
        try:
            content, token_count = await asyncio.wait_for(
                self._complete(prompt), timeout=self._config.timeout_sec
            )
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {self._config.timeout_sec}s") from exc
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        if not content or not content.strip():
            raise ProviderError(self.name(), "Empty response content")

        latency = time.monotonic() - start
        logger.info(
            "%s round %d: %.2fs, %s tokens",
            self.name(), round_number, latency, token_count,
        )
        return ModelResponse(
            provider=self.name(),
            model=self.model_string(),
            round_number=round_number,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
