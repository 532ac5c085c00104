"""Tests for config module."""

import json

import pydantic
import pytest

from sitescrape.config import DEFAULT_USER_AGENT, FetchSettings, Settings, SitemapSettings, load_settings


class TestSettings:
    """Tests for Settings defaults and validation."""

    def test_defaults(self):
        settings = Settings()

        assert settings.sitemap.enabled
        assert settings.sitemap.max_pages_per_site == 50
        assert settings.sitemap.scraping_delay_ms == 200
        assert settings.sitemap.delay == 0.2
        assert settings.sitemap.max_index_depth == 2
        assert settings.sitemap.respect_robots
        assert settings.fetch.timeout_ms == 10_000
        assert settings.fetch.timeout == 10.0
        assert settings.fetch.retry_attempts == 3
        assert settings.fetch.user_agent == DEFAULT_USER_AGENT
        assert settings.cache.enabled
        assert settings.scoring.keywords == []
        assert settings.fallback.enabled
        assert settings.log_level == "INFO"

    def test_camel_case_aliases(self):
        """camelCase keys should be accepted alongside snake_case."""
        sitemap = SitemapSettings(maxPagesPerSite=10, scrapingDelayMs=500)
        fetch = FetchSettings(timeoutMs=2000, retryAttempts=5)

        assert sitemap.max_pages_per_site == 10
        assert sitemap.delay == 0.5
        assert fetch.timeout == 2.0
        assert fetch.retry_attempts == 5

    def test_unknown_keys_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            SitemapSettings(max_pages=10)

    def test_retry_attempts_at_least_one(self):
        with pytest.raises(pydantic.ValidationError):
            FetchSettings(retry_attempts=0)

    def test_negative_weights_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(scoring={"keywords": ["pool"], "weights": {"pool": -1}})

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(log_level="chatty")


class TestEnvironment:
    """Settings read from SITESCRAPE_ environment variables."""

    def test_nested_env_vars(self, monkeypatch):
        monkeypatch.setenv("SITESCRAPE_SITEMAP__MAX_PAGES_PER_SITE", "20")
        monkeypatch.setenv("SITESCRAPE_CACHE__ENABLED", "false")
        monkeypatch.setenv("SITESCRAPE_LOG_LEVEL", "warning")

        settings = Settings()

        assert settings.sitemap.max_pages_per_site == 20
        assert not settings.cache.enabled
        assert settings.log_level == "WARNING"

    def test_keyword_arguments_win(self, monkeypatch):
        monkeypatch.setenv("SITESCRAPE_LOG_LEVEL", "ERROR")

        assert Settings(log_level="DEBUG").log_level == "DEBUG"


class TestLoadSettings:
    """Tests for load_settings function."""

    def test_no_file(self):
        assert load_settings().sitemap.max_pages_per_site == 50

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "sitescrape.yaml"
        path.write_text(
            "sitemap:\n"
            "  maxPagesPerSite: 5\n"
            "scoring:\n"
            "  keywords: [memory care, assisted living]\n"
            "  weights:\n"
            "    memory care: 3\n",
            encoding="utf-8",
        )

        settings = load_settings(path)

        assert settings.sitemap.max_pages_per_site == 5
        assert settings.scoring.keywords == ["memory care", "assisted living"]
        assert settings.scoring.weights == {"memory care": 3}

    def test_json_file(self, tmp_path):
        path = tmp_path / "sitescrape.json"
        path.write_text(json.dumps({"fetch": {"timeoutMs": 500}}), encoding="utf-8")

        assert load_settings(path).fetch.timeout == 0.5

    def test_overrides_merge_into_sections(self, tmp_path):
        """Overrides should replace single values, not whole sections."""
        path = tmp_path / "sitescrape.yml"
        path.write_text("sitemap:\n  max_pages_per_site: 5\n  scraping_delay_ms: 0\n", encoding="utf-8")

        settings = load_settings(path, sitemap={"max_pages_per_site": 7})

        assert settings.sitemap.max_pages_per_site == 7
        assert settings.sitemap.scraping_delay_ms == 0

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_settings(path) == Settings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "sitescrape.toml"
        path.write_text("[sitemap]\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_settings(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sitemap: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_settings(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(TypeError):
            load_settings(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad-values.json"
        path.write_text(json.dumps({"sitemap": {"max_pages_per_site": 0}}), encoding="utf-8")

        with pytest.raises(pydantic.ValidationError):
            load_settings(path)
