"""Luna configuration (args/luna.yaml) with pydantic validation.

Every section has defaults, so a missing or broken file still yields a
working engine. Set LUNA_CONFIG to load a different file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from tools.logging_config import get_logger
from tools.luna import CONFIG_PATH

logger = get_logger(__name__)


class RoutingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    handle_threshold: float = Field(default=0.55, ge=0.0, le=1.0)
    fallback_threshold: float = Field(default=0.30, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self) -> RoutingConfig:
        if self.fallback_threshold > self.handle_threshold:
            raise ValueError("fallback_threshold must not exceed handle_threshold")
        return self


class ClassifierConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    min_signal: float = Field(default=0.5, ge=0.0)
    disambiguation_delta: float = Field(default=1.0, gt=0.0)
    context_bonus: float = Field(default=0.1, ge=0.0, le=0.5)
    fallback_confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    max_confidence: float = Field(default=0.99, gt=0.0, le=1.0)


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    enabled: bool = Field(default=True)
    max_entries: int = Field(default=256, ge=1)
    ttl_seconds: float = Field(default=300.0, gt=0.0)


class ContextConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    recent_intents_window: int = Field(default=10, ge=1)
    conversation_window: int = Field(default=20, ge=1)
    default_language: str = Field(default="en")
    default_timezone: str = Field(default="UTC")
    default_working_hours_start: str = Field(default="09:00")
    default_working_hours_end: str = Field(default="17:00")
    default_communication_style: str = Field(default="conversational")


class AnalyticsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_events: int = Field(default=5000, ge=1)
    top_k_misclassifications: int = Field(default=5, ge=1)
    top_performers: int = Field(default=5, ge=1)
    low_accuracy_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    overconfidence_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    overconfidence_success_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    min_samples: int = Field(default=3, ge=1)


class LunaConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)


def _config_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get("LUNA_CONFIG")
    if env_path:
        return Path(env_path)
    return CONFIG_PATH


def load_config(path: str | Path | None = None) -> LunaConfig:
    """Load and validate the Luna config, falling back to defaults on any problem."""
    yaml_path = _config_path(path)

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw: dict[str, Any] = yaml.safe_load(f) or {}
        else:
            raw = {}

        return LunaConfig.model_validate(raw.get("luna", raw))
    except Exception as e:
        logger.warning("config_invalid", path=str(yaml_path), error=str(e))
        return LunaConfig()


__all__ = [
    "AnalyticsConfig",
    "CacheConfig",
    "ClassifierConfig",
    "ContextConfig",
    "LunaConfig",
    "RoutingConfig",
    "load_config",
]
