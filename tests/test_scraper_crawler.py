"""Tests for scraper.crawler module."""

from unittest import mock

from sitescrape.errors import FetchError, FetchErrorKind
from sitescrape.scraper.crawler import CrawlFallback
from sitescrape.scraper.models import PageContent


def _loader(pages):
    """Build a load_page callable serving HTML from a dict, 404 otherwise."""

    def load_page(url):
        if url not in pages:
            raise FetchError(url, FetchErrorKind.NOT_FOUND, status_code=404)
        return PageContent(url=url, raw_html=pages[url], extracted_text="")

    return mock.Mock(side_effect=load_page)


class TestCrawlFallback:
    """Tests for CrawlFallback.discover."""

    def test_crawl_single_page(self):
        """Should return the home page when it has no links."""
        load_page = _loader({"https://example.com/": "<html><p>No links</p></html>"})
        crawler = CrawlFallback(max_depth=1)

        urls = crawler.discover("example.com", "example.com", load_page)

        assert urls == ["https://example.com/"]

    def test_crawl_follows_links(self):
        """Should discover same-domain links from the home page."""
        load_page = _loader({
            "https://example.com/": """
                <a href="/page1">Page 1</a>
                <a href="/page2">Page 2</a>
                <a href="https://other.com/x">Elsewhere</a>
            """,
        })
        crawler = CrawlFallback(max_depth=1)

        urls = crawler.discover("example.com", "example.com", load_page)

        assert urls == [
            "https://example.com/",
            "https://example.com/page1",
            "https://example.com/page2",
        ]

    def test_pages_at_max_depth_are_not_loaded(self):
        """Links at the final depth are reported without being fetched."""
        load_page = _loader({"https://example.com/": '<a href="/page1">Page 1</a>'})
        crawler = CrawlFallback(max_depth=1)

        crawler.discover("example.com", "example.com", load_page)

        load_page.assert_called_once_with("https://example.com/")

    def test_crawl_respects_max_depth(self):
        """Should stop crawling at max_depth."""
        load_page = _loader({
            "https://example.com/": '<a href="/level1">Level 1</a>',
            "https://example.com/level1": '<a href="/level2">Level 2</a>',
            "https://example.com/level2": '<a href="/level3">Level 3</a>',
        })
        crawler = CrawlFallback(max_depth=2)

        urls = crawler.discover("example.com", "example.com", load_page)

        assert urls == [
            "https://example.com/",
            "https://example.com/level1",
            "https://example.com/level2",
        ]

    def test_crawl_respects_max_pages(self):
        """Should stop after max_pages URLs."""
        links = "".join(f'<a href="/page{i}">Page {i}</a>' for i in range(20))
        load_page = _loader({"https://example.com/": links})
        crawler = CrawlFallback(max_pages=5, max_depth=1)

        urls = crawler.discover("example.com", "example.com", load_page)

        assert len(urls) == 5
        assert urls[0] == "https://example.com/"

    def test_crawl_avoids_cycles(self):
        """Pages linking back to each other are reported once."""
        load_page = _loader({
            "https://example.com/": '<a href="/a">A</a>',
            "https://example.com/a": '<a href="/">Home</a><a href="/a">Self</a>',
        })
        crawler = CrawlFallback(max_depth=3)

        urls = crawler.discover("example.com", "example.com", load_page)

        assert urls == ["https://example.com/", "https://example.com/a"]

    def test_unreachable_home_page(self):
        """A failing home page should give no URLs."""
        load_page = _loader({})
        crawler = CrawlFallback()

        assert crawler.discover("example.com", "example.com", load_page) == []

    def test_failing_inner_page_is_kept(self):
        """A failing inner page is still reported; its links are just unknown."""
        load_page = _loader({"https://example.com/": '<a href="/gone">Gone</a>'})
        crawler = CrawlFallback(max_depth=2)

        urls = crawler.discover("example.com", "example.com", load_page)

        assert urls == ["https://example.com/", "https://example.com/gone"]

    def test_no_domain(self):
        """Without a domain there is nothing to crawl."""
        load_page = _loader({})
        crawler = CrawlFallback()

        assert crawler.discover(None, "123 Main Street", load_page) == []
        load_page.assert_not_called()
