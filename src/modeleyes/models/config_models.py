"""Configuration data models."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from modeleyes.domains.context_compaction import BudgetUnit, CompactionConfig

_ENV_PREFIX = "MODELEYES_"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_LOG_LEVELS = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


@dataclass
class EngineConfig:
    """Centralized configuration for the synchronization engine."""

    # Cache sizes
    STATE_CACHE_SIZE: int = 10  # snapshots
    ELEMENT_CACHE_SIZE: int = 1000  # elements

    # Compaction settings
    MAX_TOKENS: int = 4000  # default budget for prepare_context
    BUDGET_UNIT: str = "tokens"  # tokens or bytes
    INCLUDE_INVISIBLE: bool = False
    INCLUDE_FULL_DETAILS: bool = True
    MAX_ELEMENTS: Optional[int] = None  # None = no cap
    COMPACTION_PRESET: str = "default"

    # Token usage history
    TOKEN_HISTORY_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_dict(cls, config: Dict) -> 'EngineConfig':
        """Create configuration from dictionary."""
        instance = cls()
        for key, value in config.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        return instance

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        load_env_file: bool = True,
    ) -> 'EngineConfig':
        """Create configuration from ``MODELEYES_*`` environment variables.

        A ``.env`` file in the working directory is loaded first unless
        ``load_env_file`` is False or an explicit ``environ`` is given.
        """
        if environ is None:
            if load_env_file:
                _load_env_file()
            environ = os.environ

        instance = cls()
        for key, default in instance.to_dict().items():
            raw = environ.get(f"{_ENV_PREFIX}{key}")
            if raw is None or not raw.strip():
                continue
            setattr(instance, key, _coerce_env_value(key, raw.strip(), default))
        return instance

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary."""
        return {
            key: value for key, value in self.__dict__.items()
            if not key.startswith('_')
        }

    def update(self, **kwargs) -> None:
        """Update configuration values."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration key: {key}")

    def validate(self) -> List[str]:
        """Validate configuration values and return any errors."""
        errors = []

        if self.STATE_CACHE_SIZE < 0:
            errors.append("STATE_CACHE_SIZE must not be negative")

        if self.ELEMENT_CACHE_SIZE < 0:
            errors.append("ELEMENT_CACHE_SIZE must not be negative")

        if self.MAX_TOKENS < 0:
            errors.append("MAX_TOKENS must not be negative")

        if self.BUDGET_UNIT not in [unit.value for unit in BudgetUnit]:
            errors.append("BUDGET_UNIT must be 'tokens' or 'bytes'")

        if self.MAX_ELEMENTS is not None and self.MAX_ELEMENTS <= 0:
            errors.append("MAX_ELEMENTS must be positive when set")

        if self.COMPACTION_PRESET not in ["default", "compact", "verbose"]:
            errors.append("COMPACTION_PRESET must be 'default', 'compact', or 'verbose'")

        if self.TOKEN_HISTORY_SIZE <= 0:
            errors.append("TOKEN_HISTORY_SIZE must be positive")

        if self.LOG_LEVEL.upper() not in _LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {_LOG_LEVELS}")

        return errors

    def to_compaction_config(self) -> CompactionConfig:
        """Build the compaction settings used when a caller passes none.

        Budget, unit and the inclusion switches always come from this
        configuration; the preset fills in the element cap when unset.
        """
        preset = CompactionConfig.from_preset(self.COMPACTION_PRESET)
        config = preset.with_overrides(
            budget=self.MAX_TOKENS,
            unit=BudgetUnit.from_string(self.BUDGET_UNIT),
            include_invisible=self.INCLUDE_INVISIBLE,
            include_full_details=self.INCLUDE_FULL_DETAILS,
            max_elements=self.MAX_ELEMENTS,
        )
        return config


def _load_env_file() -> None:
    dotenv_path = Path.cwd() / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path=dotenv_path)
    else:
        load_dotenv()  # Fallback to default search


def _coerce_env_value(key: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.lower() in _TRUE_VALUES
    if isinstance(default, int) or key == "MAX_ELEMENTS":
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{_ENV_PREFIX}{key} must be an integer, got {raw!r}") from None
    if key == "LOG_LEVEL":
        return raw.upper()
    return raw.lower()
