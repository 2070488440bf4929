"""Configuration Loader for the PC Builder consultation client.

The questionnaire catalog (options per step, expert prompts) and the client
settings live in ``consultation.yaml`` next to this module. Everything is
validated into pydantic models; a handful of settings can be overridden from
the environment (or a ``.env`` file) for local development.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "consultation.yaml"

ENV_API_URL = "PC_EXPERT_API_URL"
ENV_TIMEOUT = "PC_EXPERT_TIMEOUT_S"
ENV_MIN_DISPLAY_DELAY = "PC_EXPERT_MIN_DISPLAY_DELAY_S"


# =============================================================================
# PYDANTIC MODELS FOR CONFIGURATION VALIDATION
# =============================================================================

class QuestionOption(BaseModel):
    """One selectable answer on a questionnaire step."""
    value: str
    label: str
    desc: str = ""
    icon: str = ""


class ServiceSettings(BaseModel):
    """Where the expert system lives."""
    api_url: str = "http://localhost:8080/api"
    timeout_s: float = 30.0


class GenerationSettings(BaseModel):
    min_display_delay_s: float = 1.5
    steps: list[str] = Field(default_factory=list)  # captions shown while generating


class GridSettings(BaseModel):
    """Card grid metrics for the result view (terminal characters)."""
    min_card_width: int = 34
    gap: int = 2
    default_width: int = 120


class ConsultationConfig(BaseModel):
    """Complete consultation configuration container."""
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    grid: GridSettings = Field(default_factory=GridSettings)
    expert_messages: dict[str, str] = Field(default_factory=dict)
    options: dict[str, list[QuestionOption]] = Field(default_factory=dict)

    def options_for(self, step: str) -> list[QuestionOption]:
        """Options for a questionnaire step (empty for non-question steps)."""
        return self.options.get(step, [])

    def expert_message(self, step: str) -> str:
        return self.expert_messages.get(step, "")


# =============================================================================
# LOADER
# =============================================================================

def _apply_env_overrides(config: ConsultationConfig) -> ConsultationConfig:
    """Environment beats YAML for the service and timing knobs."""
    api_url = os.getenv(ENV_API_URL)
    if api_url:
        config.service.api_url = api_url.rstrip("/")

    timeout = os.getenv(ENV_TIMEOUT)
    if timeout:
        try:
            config.service.timeout_s = float(timeout)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {ENV_TIMEOUT}={timeout!r}")

    delay = os.getenv(ENV_MIN_DISPLAY_DELAY)
    if delay:
        try:
            config.generation.min_display_delay_s = float(delay)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {ENV_MIN_DISPLAY_DELAY}={delay!r}")

    return config


def load_consultation_config(config_path: Optional[str] = None) -> ConsultationConfig:
    """Load and validate the consultation configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to consultation.yaml.

    Returns:
        Validated ConsultationConfig object (defaults if the file is missing).
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not Path(config_path).exists():
        logger.warning(f"Config file not found: {config_path} - using defaults")
        return _apply_env_overrides(ConsultationConfig())

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f)

    if not raw:
        return _apply_env_overrides(ConsultationConfig())

    config = ConsultationConfig.model_validate(raw)
    logger.debug(f"Loaded consultation config from {config_path} ({len(config.options)} steps)")
    return _apply_env_overrides(config)


# =============================================================================
# CONFIG SINGLETON
# =============================================================================

_config: Optional[ConsultationConfig] = None


def get_config() -> ConsultationConfig:
    """Get the loaded consultation configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_consultation_config()
    return _config


def reload_config(config_path: Optional[str] = None) -> ConsultationConfig:
    """Force reload of the consultation configuration."""
    global _config
    _config = load_consultation_config(config_path)
    return _config
