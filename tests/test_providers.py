"""Unit tests for council/providers, no network."""

import asyncio
import sys

import pytest

from config.config_loader import ModelConfig
from council.providers.anthropic import AnthropicProvider
from council.providers.base import AIProvider, ProviderError
from council.providers.command import CommandProvider
from council.providers.openai_compatible import OpenAICompatibleProvider

_UPPER_ECHO = "import sys; sys.stdout.write(sys.stdin.read().upper())"


def _model(name: str = "local", **overrides) -> ModelConfig:
    fields = dict(
        name=name,
        sdk="cli",
        model="local-model",
        api_key_env="",
        timeout_sec=10,
        max_tokens=1024,
    )
    fields.update(overrides)
    return ModelConfig(**fields)


class _ScriptedProvider(AIProvider):
    def __init__(self, config: ModelConfig, reply) -> None:
        super().__init__(config)
        self._reply = reply

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        if isinstance(self._reply, BaseException):
            raise self._reply
        if self._reply == "hang":
            await asyncio.sleep(10)
        return self._reply, 7


async def test_generate_wraps_reply_in_model_response():
    response = await _ScriptedProvider(_model("scripted"), "An answer.").generate("Q?", round_number=2)
    assert response.provider == "scripted"
    assert response.model == "local-model"
    assert response.round_number == 2
    assert response.content == "An answer."
    assert response.token_count == 7
    assert response.latency_sec >= 0


async def test_generate_rejects_blank_reply():
    with pytest.raises(ProviderError, match="Empty response"):
        await _ScriptedProvider(_model(), "   \n").generate("Q?", round_number=1)


async def test_generate_wraps_sdk_errors():
    with pytest.raises(ProviderError, match="API call failed: boom") as excinfo:
        await _ScriptedProvider(_model("flaky"), RuntimeError("boom")).generate("Q?", round_number=1)
    assert excinfo.value.provider_name == "flaky"
    assert not excinfo.value.timed_out


async def test_generate_times_out():
    provider = _ScriptedProvider(_model(timeout_sec=0.05), "hang")
    with pytest.raises(ProviderError) as excinfo:
        await provider.generate("Q?", round_number=1)
    assert excinfo.value.timed_out


def test_api_providers_require_key(monkeypatch):
    monkeypatch.delenv("TEST_MISSING_KEY", raising=False)
    with pytest.raises(ProviderError, match="TEST_MISSING_KEY"):
        AnthropicProvider(_model("claude", sdk="anthropic", api_key_env="TEST_MISSING_KEY"))
    with pytest.raises(ProviderError, match="TEST_MISSING_KEY"):
        OpenAICompatibleProvider(_model("grok", sdk="openai", api_key_env="TEST_MISSING_KEY"))


def test_openai_compatible_accepts_base_url(monkeypatch):
    monkeypatch.setenv("TEST_XAI_KEY", "xai-test")
    provider = OpenAICompatibleProvider(
        _model("grok", sdk="openai", api_key_env="TEST_XAI_KEY", base_url="https://api.x.ai/v1")
    )
    assert provider.name() == "grok"


# --- CommandProvider ---

def test_command_provider_requires_command():
    with pytest.raises(ProviderError, match="command is required"):
        CommandProvider(_model(command=None))


def test_command_provider_requires_binary_on_path():
    with pytest.raises(ProviderError, match="Command not found"):
        CommandProvider(_model(command=["no-such-binary-xyz"]))


async def test_command_provider_pipes_prompt_through_stdin():
    provider = CommandProvider(_model(command=[sys.executable, "-c", _UPPER_ECHO]))
    response = await provider.generate("vilnius", round_number=1)
    assert response.content == "VILNIUS"
    assert response.token_count is None


async def test_command_provider_passes_print_flag():
    script = "import sys; print(' '.join(sys.argv[1:]))"
    provider = CommandProvider(_model(command=[sys.executable, "-c", script]))
    response = await provider.generate("ignored", round_number=1)
    assert response.content == "--print"


async def test_command_provider_nonzero_exit():
    script = "import sys; sys.stderr.write('quota exceeded\\n'); sys.exit(3)"
    provider = CommandProvider(_model(command=[sys.executable, "-c", script]))
    with pytest.raises(ProviderError, match="code 3: quota exceeded"):
        await provider.generate("Q?", round_number=1)


async def test_command_provider_timeout_kills_process():
    script = "import time; time.sleep(30)"
    provider = CommandProvider(_model(command=[sys.executable, "-c", script], timeout_sec=0.5))
    with pytest.raises(ProviderError) as excinfo:
        await provider.generate("Q?", round_number=1)
    assert excinfo.value.timed_out
