"""Unit tests for the selective URL filter."""

from devtools_monitor.monitor.filters import UrlFilter


class TestUrlFilter:
    """Tests for UrlFilter."""

    def test_empty_filter_allows_everything(self):
        url_filter = UrlFilter()
        assert not url_filter.is_active
        assert url_filter.should_log("https://anything.test/")
        assert url_filter.should_log(None)

    def test_substring_match(self):
        """Test only URLs containing a pattern are logged."""
        url_filter = UrlFilter(["example.com"])
        assert url_filter.should_log("https://example.com/x")
        assert url_filter.should_log("https://cdn.example.com/lib.js")
        assert not url_filter.should_log("https://other.test/y")

    def test_missing_url_with_active_filter(self):
        assert not UrlFilter(["example.com"]).should_log(None)

    def test_set_urls_replaces_patterns(self):
        url_filter = UrlFilter(["example.com"])
        url_filter.set_urls(["other.test"])
        assert url_filter.urls == ["other.test"]
        assert url_filter.should_log("https://other.test/")
        assert not url_filter.should_log("https://example.com/")

    def test_set_urls_empty_resets(self):
        """Test an empty list goes back to logging everything."""
        url_filter = UrlFilter(["example.com"])
        url_filter.set_urls([])
        assert url_filter.should_log("https://other.test/")
        url_filter.set_urls(["example.com"])
        url_filter.set_urls(None)
        assert url_filter.should_log("https://other.test/")

    def test_blank_patterns_ignored(self):
        url_filter = UrlFilter(["", "example.com"])
        assert url_filter.urls == ["example.com"]

    def test_exclude_static_resources(self):
        """Test static assets are suppressed when requested."""
        url_filter = UrlFilter(exclude_static_resources=True)
        assert url_filter.is_active
        assert not url_filter.should_log("https://a.test/app.js")
        assert not url_filter.should_log("https://a.test/logo.png")
        assert url_filter.should_log("https://a.test/api/items")

        url_filter.set_exclude_static_resources(False)
        assert url_filter.should_log("https://a.test/app.js")
