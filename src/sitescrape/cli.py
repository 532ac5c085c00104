"""Command line entry point.

Example:
    sitescrape "https://example.com/facility" -k "assisted living" -k "pet-friendly"
"""

from __future__ import annotations

import json
import logging
import signal
import sys
from typing import Any

import click
import pydantic

from sitescrape.config import load_settings
from sitescrape.errors import ScrapeError
from sitescrape.log import setup_logging
from sitescrape.scraper import Pipeline

logger = logging.getLogger(__name__)


@click.command()
@click.argument("address")
@click.option("--keyword", "-k", "keywords", multiple=True, help="Keyword to score pages against (repeatable).")
@click.option("--config", "-c", "config_path", default=None, help="YAML or JSON configuration file.")
@click.option("--max-pages", type=int, default=None, help="Maximum pages to scrape.")
@click.option("--delay-ms", type=int, default=None, help="Delay between requests to one origin.")
@click.option("--no-cache", is_flag=True, default=False, help="Disable the run cache.")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR.")
def main(
    address: str,
    keywords: tuple[str, ...],
    config_path: str | None,
    max_pages: int | None,
    delay_ms: int | None,
    no_cache: bool,
    log_level: str | None,
) -> None:
    """Scrape the site named in ADDRESS and print a JSON report."""
    overrides: dict[str, Any] = {}
    sitemap: dict[str, Any] = {}
    if max_pages is not None:
        sitemap["max_pages_per_site"] = max_pages
    if delay_ms is not None:
        sitemap["scraping_delay_ms"] = delay_ms
    if sitemap:
        overrides["sitemap"] = sitemap
    if no_cache:
        overrides["cache"] = {"enabled": False}
    if log_level is not None:
        overrides["log_level"] = log_level

    try:
        settings = load_settings(config_path, **overrides)
    except (pydantic.ValidationError, OSError, TypeError, ValueError) as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(2)

    setup_logging(settings.log_level)

    with Pipeline(settings) as pipeline:
        previous = signal.getsignal(signal.SIGINT)

        def _interrupt(signum: int, frame: Any) -> None:
            pipeline.cancel()
            signal.signal(signal.SIGINT, previous)

        signal.signal(signal.SIGINT, _interrupt)
        try:
            report = pipeline.run(address, keywords or None)
        except ScrapeError as e:
            logger.error(f"Scrape failed: {e}")
            sys.exit(1)
        finally:
            signal.signal(signal.SIGINT, previous)

    click.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
