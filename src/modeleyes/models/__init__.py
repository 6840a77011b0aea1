"""Configuration models for ModelEyes."""

from modeleyes.models.config_models import EngineConfig

__all__ = ["EngineConfig"]
