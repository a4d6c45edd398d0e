"""Load settings.yaml into typed dataclasses. Checks provider availability at startup."""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

# Environment variables that override the YAML defaults
_ENV_MAX_ITERATIONS = "MAX_DEBATE_ITERATIONS"
_ENV_THRESHOLD = "CONSENSUS_THRESHOLD"
_ENV_DISABLE_SELECTION = "DISABLE_INTELLIGENT_SELECTION"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    command: list[str] | None = None  # argv for sdk "cli"


@dataclass
class AgentConfig:
    name: str
    model: str   # key into AppConfig.models
    role: str


@dataclass
class PromptsConfig:
    initial: str
    iteration: str


@dataclass
class DefaultsConfig:
    max_iterations: int = 5
    consensus_threshold: int = 90
    agent_timeout_sec: int = 3600
    coordinator_timeout_sec: int = 180
    evaluator_timeout_sec: int = 300
    debate_timeout_sec: int = 7200
    intelligent_selection: bool = True
    selection_timeout_sec: int = 120
    output_dir: Path = Path("./output")
    coordinator: str = "claude"
    evaluator: str = "claude"
    agents: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    agents: dict[str, AgentConfig]
    prompts: PromptsConfig
    available_providers: set[str] = field(default_factory=set)


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return fallback
    logger.info("%s override: %d", name, value)
    return value


def _is_available(model_cfg: ModelConfig) -> bool:
    if model_cfg.sdk == "cli":
        return bool(model_cfg.command) and shutil.which(model_cfg.command[0]) is not None
    return bool(os.environ.get(model_cfg.api_key_env, "").strip())


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if an agent
    refers to an unknown model. Providers without credentials are logged and
    left out of available_providers rather than raising.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw.get("defaults", {})
    defaults = DefaultsConfig(
        max_iterations=_env_int(_ENV_MAX_ITERATIONS, int(defaults_raw.get("max_iterations", 5))),
        consensus_threshold=_env_int(_ENV_THRESHOLD, int(defaults_raw.get("consensus_threshold", 90))),
        agent_timeout_sec=int(defaults_raw.get("agent_timeout_sec", 3600)),
        coordinator_timeout_sec=int(defaults_raw.get("coordinator_timeout_sec", 180)),
        evaluator_timeout_sec=int(defaults_raw.get("evaluator_timeout_sec", 300)),
        debate_timeout_sec=int(defaults_raw.get("debate_timeout_sec", 7200)),
        intelligent_selection=bool(defaults_raw.get("intelligent_selection", True)),
        selection_timeout_sec=int(defaults_raw.get("selection_timeout_sec", 120)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        coordinator=str(defaults_raw.get("coordinator", "claude")),
        evaluator=str(defaults_raw.get("evaluator", "claude")),
        agents=list(defaults_raw.get("agents", [])),
    )

    if os.environ.get(_ENV_DISABLE_SELECTION, "").strip().lower() == "true":
        logger.info("%s=true: every agent debates", _ENV_DISABLE_SELECTION)
        defaults.intelligent_selection = False

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        initial=prompts_raw["initial"],
        iteration=prompts_raw["iteration"],
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        command = model_raw.get("command")
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw.get("api_key_env", ""),
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw.get("max_tokens", 4096)),
            base_url=model_raw.get("base_url"),
            command=[str(c) for c in command] if command else None,
        )
        models[provider_name] = model_cfg

        if _is_available(model_cfg):
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        elif model_cfg.sdk == "cli":
            logger.info("Provider skipped (command not found): %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_cfg.api_key_env,
            )

    agents: dict[str, AgentConfig] = {}
    for agent_name, agent_raw in raw.get("agents", {}).items():
        if agent_raw["model"] not in models:
            raise ValueError(f"Agent '{agent_name}' refers to unknown model '{agent_raw['model']}'")
        agents[agent_name] = AgentConfig(
            name=agent_name,
            model=agent_raw["model"],
            role=str(agent_raw["role"]),
        )

    if not defaults.agents:
        defaults.agents = list(agents)

    return AppConfig(
        defaults=defaults,
        models=models,
        agents=agents,
        prompts=prompts,
        available_providers=available_providers,
    )
