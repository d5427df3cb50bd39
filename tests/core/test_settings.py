"""Tests for machina.core.settings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from machina.core.settings import MachinaSettings, get_settings


class TestMachinaSettings:
    def test_defaults(self, monkeypatch):
        for name in ("CACHE_TTL_SECONDS", "CACHE_MAX_OLD_ENTRIES_BUFFER", "CACHE_EXIT", "LOG_FORMAT"):
            monkeypatch.delenv(f"MACHINA_{name}", raising=False)
        settings = MachinaSettings(_env_file=None)
        assert settings.cache_ttl == timedelta(hours=3)
        assert settings.cache_max_old_entries_buffer == 0
        assert settings.cache_exit == "success"
        assert settings.log_format == "json"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("MACHINA_CACHE_TTL_SECONDS", "90")
        monkeypatch.setenv("MACHINA_CACHE_MAX_OLD_ENTRIES_BUFFER", "4")
        monkeypatch.setenv("MACHINA_CACHE_EXIT", "done")
        settings = MachinaSettings(_env_file=None)
        assert settings.cache_ttl == timedelta(seconds=90)
        assert settings.cache_max_old_entries_buffer == 4
        assert settings.cache_exit == "done"

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MACHINA_CACHE_EXIT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("MACHINA_CACHE_EXIT=cached\n", encoding="utf-8")
        assert MachinaSettings(_env_file=env_file).cache_exit == "cached"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("cache_ttl_seconds", -1),
            ("cache_max_old_entries_buffer", -1),
            ("cache_exit", ""),
            ("log_format", "xml"),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            MachinaSettings(_env_file=None, **{field: value})


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("MACHINA_CACHE_TTL_SECONDS", "5")
        reloaded = get_settings(_force_reload=True)
        try:
            assert reloaded is not first
            assert reloaded.cache_ttl == timedelta(seconds=5)
        finally:
            monkeypatch.delenv("MACHINA_CACHE_TTL_SECONDS")
            get_settings(_force_reload=True)
