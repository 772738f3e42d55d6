"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from src.config import DEFAULT_TERMS, load_config


def write_config(tmp_path, body: str):
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return path


class TestLoadConfig:
    """Test load_config()."""

    def test_defaults(self, tmp_path, monkeypatch):
        """Test omitted sections fall back to defaults."""
        monkeypatch.setenv("TEST_APP_PASSWORD", "secret")
        path = write_config(
            tmp_path,
            "bluesky:\n  handle: profanity.accountant\n  app_password: ${TEST_APP_PASSWORD}\n",
        )

        config = load_config(path)

        assert config.bluesky.app_password.get_secret_value() == "secret"
        assert config.analysis.freshness_hours == 24
        assert config.analysis.max_posts == 100
        assert config.analysis.max_age_days == 365
        assert config.analysis.page_size == 100
        assert config.analysis.terms == DEFAULT_TERMS
        assert config.bot.stale_claim_minutes == 20

    def test_overrides(self, tmp_path):
        """Test values from the file win over defaults."""
        path = write_config(
            tmp_path,
            "bluesky:\n  handle: bot.example\n  app_password: pw\n"
            "analysis:\n  max_posts: 25000\n  terms: [heck, darn]\n"
            "bot:\n  stale_claim_minutes: 5\n",
        )

        config = load_config(path)

        assert config.analysis.max_posts == 25000
        assert config.analysis.terms == ["heck", "darn"]
        assert config.bot.stale_claim_minutes == 5

    def test_missing_env_var(self, tmp_path, monkeypatch):
        """Test an unset ${VAR} reference is rejected."""
        monkeypatch.delenv("UNSET_PASSWORD", raising=False)
        path = write_config(
            tmp_path, "bluesky:\n  handle: bot.example\n  app_password: ${UNSET_PASSWORD}\n"
        )

        with pytest.raises(ValueError, match="UNSET_PASSWORD"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_page_size_limit(self, tmp_path):
        """Test page sizes above the API maximum are rejected."""
        path = write_config(
            tmp_path,
            "bluesky:\n  handle: bot.example\n  app_password: pw\nanalysis:\n  page_size: 500\n",
        )

        with pytest.raises(ValidationError):
            load_config(path)
