# tests/test_config.py
"""Tests for CanvassConfig, the Pydantic Settings single source of truth."""

from pathlib import Path


class TestCanvassConfig:
    """Test CanvassConfig defaults and overrides."""

    def test_default_values(self, monkeypatch):
        from canvassiq.config import CanvassConfig

        monkeypatch.delenv("CANVASSIQ_HISTORY_LIMIT", raising=False)
        cfg = CanvassConfig()
        assert cfg.history_limit == 5
        assert cfg.generation_timeout_s == 55.0
        assert cfg.max_context_records == 200
        assert cfg.answer_preamble == "Based on the data provided"
        assert cfg.require_preamble is True
        assert cfg.recent_dates_in_answer == 3
        assert cfg.guard_phrases_path is None

    def test_env_override(self, monkeypatch):
        """Environment variables with CANVASSIQ_ prefix override defaults."""
        from canvassiq.config import CanvassConfig

        monkeypatch.setenv("CANVASSIQ_LM", "openai/gpt-4o")
        monkeypatch.setenv("CANVASSIQ_HISTORY_LIMIT", "2")
        monkeypatch.setenv("CANVASSIQ_REQUIRE_PREAMBLE", "false")
        cfg = CanvassConfig()
        assert cfg.lm == "openai/gpt-4o"
        assert cfg.history_limit == 2
        assert cfg.require_preamble is False

    def test_home_dir_default(self, monkeypatch):
        from canvassiq.config import CanvassConfig

        monkeypatch.delenv("CANVASSIQ_HOME_DIR", raising=False)
        cfg = CanvassConfig()
        assert cfg.home_dir == Path.home() / ".canvassiq"

    def test_log_dir_derives_from_home(self, tmp_path):
        from canvassiq.config import CanvassConfig

        cfg = CanvassConfig(home_dir=tmp_path)
        assert cfg.log_dir == tmp_path / "logs"

    def test_get_config_singleton(self):
        """get_config() returns the same instance until the cache is cleared."""
        from canvassiq.config import get_config

        c1 = get_config()
        c2 = get_config()
        assert c1 is c2
        get_config.cache_clear()
        assert get_config() is not c1
