"""robots.txt parsing."""

from __future__ import annotations

import logging
import re
import urllib.parse
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SITEMAP_DIRECTIVE = re.compile(r"^\s*sitemap\s*:\s*(\S+)", re.IGNORECASE | re.MULTILINE)


@dataclass
class RobotsRules:
    """Sitemap declarations and disallow rules from one robots.txt file."""

    sitemaps: list[str] = field(default_factory=list)
    disallowed: set[str] = field(default_factory=set)

    def is_allowed(self, url: str) -> bool:
        """Check if a URL is allowed by the disallow rules.

        Args:
            url: The URL to check

        Returns:
            True if the URL is allowed, False if disallowed
        """
        try:
            path = urllib.parse.urlparse(url).path or "/"
        except ValueError:
            # Unparsable URLs are left to the fetcher to reject
            return True
        for pattern in self.disallowed:
            if matches_robots_pattern(path, pattern):
                logger.debug(f"URL {url} disallowed by robots.txt (pattern: {pattern})")
                return False
        return True


def parse_robots(content: str, base_url: str, user_agent: str = "*") -> RobotsRules:
    """Parse robots.txt content.

    Sitemap directives are global and collected in file order. Disallow
    rules are collected from groups addressed to ``user_agent`` or ``*``.

    Args:
        content: The robots.txt body
        base_url: Site root used to resolve relative sitemap URLs
        user_agent: The user agent whose rules apply

    Returns:
        Parsed rules
    """
    rules = RobotsRules()
    for match in SITEMAP_DIRECTIVE.finditer(content):
        sitemap_url = urllib.parse.urljoin(base_url, match.group(1))
        if sitemap_url not in rules.sitemaps:
            rules.sitemaps.append(sitemap_url)

    # A group starts with one or more consecutive User-agent lines.
    in_target_section = False
    in_agent_lines = False
    user_agent_lower = user_agent.lower()
    for line in content.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue

        directive, value = (part.strip() for part in line.split(":", 1))
        directive = directive.lower()

        if directive == "user-agent":
            agent = value.lower()
            matches = agent == user_agent_lower or agent == "*"
            in_target_section = (in_agent_lines and in_target_section) or matches
            in_agent_lines = True
            continue

        in_agent_lines = False
        if directive == "disallow" and in_target_section and value:
            rules.disallowed.add(value)

    return rules


def matches_robots_pattern(path: str, pattern: str) -> bool:
    """Check if a path matches a robots.txt pattern.

    Args:
        path: The URL path
        pattern: The robots.txt pattern

    Returns:
        True if path matches pattern
    """
    if not pattern:
        return False

    anchored = pattern.endswith("$")
    if anchored:
        pattern = pattern[:-1]

    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    if anchored:
        return re.fullmatch(regex, path) is not None
    return re.match(regex, path) is not None
