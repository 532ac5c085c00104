"""Configuration for the scraping pipeline.

Settings are read from keyword arguments, ``SITESCRAPE_`` environment
variables (``__`` separates nested sections) or a YAML/JSON file.

Example:
    >>> from sitescrape.config import Settings
    >>> settings = Settings(sitemap={"maxPagesPerSite": 10})
    >>> settings.sitemap.max_pages_per_site
    10
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = "sitescrape/0.1.0 (+https://github.com/sitescrape/sitescrape)"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)


class SitemapSettings(_Section):
    enabled: bool = True
    max_pages_per_site: int = Field(
        50,
        ge=1,
        validation_alias=AliasChoices("max_pages_per_site", "maxPagesPerSite"),
    )
    scraping_delay_ms: int = Field(
        200,
        ge=0,
        validation_alias=AliasChoices("scraping_delay_ms", "scrapingDelayMs"),
    )
    max_index_depth: int = Field(
        2,
        ge=0,
        validation_alias=AliasChoices("max_index_depth", "maxIndexDepth"),
    )
    respect_robots: bool = Field(
        True,
        validation_alias=AliasChoices("respect_robots", "respectRobots"),
    )

    @property
    def delay(self) -> float:
        """Inter-request delay in seconds."""
        return self.scraping_delay_ms / 1000


class FetchSettings(_Section):
    timeout_ms: int = Field(
        10_000,
        gt=0,
        validation_alias=AliasChoices("timeout_ms", "timeoutMs"),
    )
    retry_attempts: int = Field(
        3,
        ge=1,
        validation_alias=AliasChoices("retry_attempts", "retryAttempts"),
    )
    max_concurrency: int = Field(
        4,
        ge=1,
        validation_alias=AliasChoices("max_concurrency", "maxConcurrency"),
    )
    user_agent: str = Field(
        DEFAULT_USER_AGENT,
        min_length=1,
        validation_alias=AliasChoices("user_agent", "userAgent"),
    )

    @property
    def timeout(self) -> float:
        """Per-request timeout in seconds."""
        return self.timeout_ms / 1000


class CacheSettings(_Section):
    enabled: bool = True


class ScoringSettings(_Section):
    keywords: list[str] = Field(default_factory=list)
    weights: dict[str, int] = Field(default_factory=dict)

    @field_validator("weights")
    @classmethod
    def _non_negative(cls, value: dict[str, int]) -> dict[str, int]:
        negative = [keyword for keyword, weight in value.items() if weight < 0]
        if negative:
            raise ValueError(f"Keyword weights must be >= 0: {', '.join(negative)}")
        return value


class FallbackSettings(_Section):
    enabled: bool = True
    max_depth: int = Field(
        1,
        ge=0,
        validation_alias=AliasChoices("max_depth", "maxDepth"),
    )


class Settings(BaseSettings):
    """Pipeline configuration.

    Attributes:
        sitemap: Discovery, paging and pacing options
        fetch: HTTP timeout, retry and concurrency options
        cache: Run-scoped result cache toggle
        scoring: Keywords and optional per-keyword weights
        fallback: Non-sitemap discovery options
        log_level: Logging level used by the command line
    """

    model_config = SettingsConfigDict(
        env_prefix="SITESCRAPE_",
        env_nested_delimiter="__",
        extra="forbid",
        frozen=True,
    )

    sitemap: SitemapSettings = Field(default_factory=SitemapSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of {path} must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of {path} must be a mapping, got {type(data).__name__}")
    return data


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Build settings from an optional YAML or JSON file.

    Args:
        path: Configuration file; None uses environment and defaults only
        **overrides: Top-level sections that replace values from the file

    Returns:
        Validated settings
    """
    data: dict[str, Any] = {}
    if path is not None:
        path_obj = Path(path).expanduser()
        if not path_obj.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path_obj}")
        suffix = path_obj.suffix.lower()
        if suffix in (".yaml", ".yml"):
            data = _read_yaml(path_obj)
        elif suffix == ".json":
            data = _read_json(path_obj)
        else:
            raise ValueError(f"Unsupported configuration format: {suffix}")

    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(data.get(section), dict):
            data[section] = {**data[section], **values}
        else:
            data[section] = values

    return Settings(**data)
