"""Configuration loading.

Reads a YAML document with five sections (``providers``, ``normalize``,
``estimate``, ``cache``, ``output``), expands ``${VAR}`` references from the
environment and validates the result into pydantic models.

Resolution order for the file path:
  1. explicit ``path`` argument
  2. ``PROMPT_DEMAND_CONFIG`` environment variable
  3. packaged ``default_config.yml``
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError

load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "default_config.yml"
_CONFIG_ENV_VAR = "PROMPT_DEMAND_CONFIG"
# Only ${NAME} is expanded; bare $NAME is left alone.
_ENV_REFERENCE = re.compile(r"\$\{(\w+)\}")


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------
class SerpstatConfig(BaseModel):
    enabled: bool = False
    api_key: Optional[str] = None
    default_region: str = "us"
    rate_limit_delay: float = Field(default=1.0, ge=0.0)
    timeout: float = Field(default=30.0, gt=0.0)
    base_url: str = "https://api.serpstat.com/v4"

    @field_validator("api_key")
    @classmethod
    def _drop_unexpanded(cls, value: Optional[str]) -> Optional[str]:
        # ${VAR} left in place when the variable is unset
        if value is None or value.strip().startswith("${"):
            return None
        return value.strip() or None


class ProvidersConfig(BaseModel):
    serpstat: SerpstatConfig = Field(default_factory=SerpstatConfig)


class NormalizeConfig(BaseModel):
    max_variants: int = Field(default=15, ge=0)
    stopwords: List[str] = Field(default_factory=list)


class ConfidenceConfig(BaseModel):
    base_score: float = 0.5
    source_bonus: float = 0.1
    variant_bonus: float = 0.2


class EstimateConfig(BaseModel):
    weights: Dict[str, float] = Field(default_factory=dict)
    locale_bias: Dict[str, float] = Field(default_factory=dict)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)


class CacheConfig(BaseModel):
    enabled: bool = False
    ttl_seconds: float = Field(default=86_400, gt=0)
    max_size: int = Field(default=1000, ge=1)


class OutputConfig(BaseModel):
    top_n: int = Field(default=10, ge=1, alias="topN")

    model_config = {"populate_by_name": True}


class Settings(BaseModel):
    """Validated application configuration."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    normalize: NormalizeConfig = Field(default_factory=NormalizeConfig)
    estimate: EstimateConfig = Field(default_factory=EstimateConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def provider_config(self, name: str) -> Optional[BaseModel]:
        return getattr(self.providers, str(name), None)

    def provider_enabled(self, name: str) -> bool:
        config = self.provider_config(name)
        return bool(config is not None and getattr(config, "enabled", False))

    def weight_for_type(self, category: str) -> float:
        return self.estimate.weights.get(str(category), 0.0)

    def locale_bias(self, region: str) -> float:
        return self.estimate.locale_bias.get(str(region), 1.0)

    @property
    def default_region(self) -> str:
        return self.providers.serpstat.default_region

    @property
    def serpstat_api_key(self) -> str:
        """API key from config, falling back to ``SERPSTAT_API_KEY``."""
        key = self.providers.serpstat.api_key or os.getenv("SERPSTAT_API_KEY", "")
        return key.strip()

    @property
    def max_variants(self) -> int:
        return self.normalize.max_variants

    @property
    def stopwords(self) -> List[str]:
        return self.normalize.stopwords

    @property
    def cache_enabled(self) -> bool:
        return self.cache.enabled

    @property
    def cache_ttl(self) -> float:
        return self.cache.ttl_seconds

    @property
    def top_n(self) -> int:
        return self.output.top_n


# ===================================================================== #
#  Loading                                                                #
# ===================================================================== #

def _resolve_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.getenv(_CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def expand_env_references(text: str) -> str:
    """Replace ``${NAME}`` with the environment value; unset names stay as written."""
    return _ENV_REFERENCE.sub(lambda match: os.environ.get(match.group(1), match.group(0)), text)


def settings_from_dict(data: dict, *, origin: str = "<dict>") -> Settings:
    """Validate a raw config mapping.  ``None`` sections become defaults."""
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration {origin} must be a mapping, got {type(data).__name__}"
        )
    cleaned = {key: value for key, value in data.items() if value is not None}
    try:
        return Settings.model_validate(cleaned)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {origin}: {exc}") from exc


def load_settings(path: str | Path | None = None) -> Settings:
    """Load and validate the YAML configuration file.

    Raises
    ------
    ConfigurationError
        The file is missing, is not valid YAML, or fails validation.
    """
    config_path = _resolve_path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {config_path}") from exc

    try:
        data = yaml.safe_load(expand_env_references(raw))
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Invalid YAML in configuration file {config_path}: {exc}"
        ) from exc

    if data is None:
        data = {}
    return settings_from_dict(data, origin=str(config_path))
