import pytest

from modeleyes.domains.context_compaction import BudgetUnit, CompactionConfig
from modeleyes.models import EngineConfig

_KEYS = ["MAX_TOKENS", "BUDGET_UNIT", "INCLUDE_INVISIBLE", "MAX_ELEMENTS", "LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    # setenv first so values loaded from a .env file are removed on teardown
    for key in _KEYS:
        monkeypatch.setenv(f"MODELEYES_{key}", "")
        monkeypatch.delenv(f"MODELEYES_{key}")


def test_defaults_are_valid():
    config = EngineConfig()
    assert config.validate() == []
    assert config.STATE_CACHE_SIZE == 10
    assert config.ELEMENT_CACHE_SIZE == 1000
    assert config.MAX_TOKENS == 4000


def test_validate_reports_every_problem():
    config = EngineConfig(
        STATE_CACHE_SIZE=-1,
        MAX_TOKENS=-5,
        BUDGET_UNIT="words",
        MAX_ELEMENTS=0,
        COMPACTION_PRESET="tiny",
        LOG_LEVEL="chatty",
    )
    errors = config.validate()
    assert len(errors) == 6
    assert any("BUDGET_UNIT" in error for error in errors)


def test_from_dict_ignores_unknown_keys():
    config = EngineConfig.from_dict({"MAX_TOKENS": 10, "NOPE": 1})
    assert config.MAX_TOKENS == 10
    assert "NOPE" not in config.to_dict()


def test_update_rejects_unknown_key():
    config = EngineConfig()
    config.update(STATE_CACHE_SIZE=3)
    assert config.STATE_CACHE_SIZE == 3
    with pytest.raises(ValueError):
        config.update(CACHE=3)


def test_from_explicit_environ():
    config = EngineConfig.from_env({
        "MODELEYES_MAX_TOKENS": "250",
        "MODELEYES_BUDGET_UNIT": "BYTES",
        "MODELEYES_INCLUDE_INVISIBLE": "yes",
        "MODELEYES_MAX_ELEMENTS": "12",
        "MODELEYES_LOG_LEVEL": "debug",
        "MODELEYES_STATE_CACHE_SIZE": "  ",
    })
    assert config.MAX_TOKENS == 250
    assert config.BUDGET_UNIT == "bytes"
    assert config.INCLUDE_INVISIBLE is True
    assert config.MAX_ELEMENTS == 12
    assert config.LOG_LEVEL == "DEBUG"
    assert config.STATE_CACHE_SIZE == 10


def test_from_env_rejects_non_integer():
    with pytest.raises(ValueError, match="MODELEYES_MAX_TOKENS"):
        EngineConfig.from_env({"MODELEYES_MAX_TOKENS": "lots"})


def test_from_process_environment(monkeypatch):
    monkeypatch.setenv("MODELEYES_MAX_TOKENS", "99")
    config = EngineConfig.from_env(load_env_file=False)
    assert config.MAX_TOKENS == 99


def test_loads_from_dotenv(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("MODELEYES_MAX_TOKENS=321\nMODELEYES_INCLUDE_INVISIBLE=true\n")
    monkeypatch.chdir(tmp_path)
    config = EngineConfig.from_env()
    assert config.MAX_TOKENS == 321
    assert config.INCLUDE_INVISIBLE is True


def test_to_compaction_config():
    config = EngineConfig(MAX_TOKENS=800, BUDGET_UNIT="bytes", INCLUDE_INVISIBLE=True)
    compaction = config.to_compaction_config()
    assert isinstance(compaction, CompactionConfig)
    assert compaction.budget == 800
    assert compaction.unit == BudgetUnit.BYTES
    assert compaction.include_invisible is True
    assert compaction.max_elements is None


def test_compact_preset_keeps_element_cap():
    compaction = EngineConfig(COMPACTION_PRESET="compact").to_compaction_config()
    assert compaction.max_elements == 50
    assert compaction.budget == 4000
    # Explicit INCLUDE_FULL_DETAILS wins over the preset
    assert compaction.include_full_details is True
