"""Tests for CLI commands.

Tests serve, analyze, info, and clear-cache commands.
"""

from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from imgproxy_checker.cache import CacheEntry, InMemorySizeCache
from imgproxy_checker.cli import app
from imgproxy_checker.errors import ErrorKind, FetchError
from imgproxy_checker.probing import SizeResult
from imgproxy_checker.report import Report

runner = CliRunner()

PAGE_URL = "https://example.com/"


class FakeAnalyzer:
    """Stands in for PageAnalyzer and records how it was configured."""

    instances: list["FakeAnalyzer"] = []
    report: Report | None = None
    error: Exception | None = None

    def __init__(self, config=None, cache=None, **kwargs):
        self.config = config
        self.cache = cache
        FakeAnalyzer.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def analyze(self, page_url):
        if FakeAnalyzer.error is not None:
            raise FakeAnalyzer.error
        return FakeAnalyzer.report


class ClosingSizeCache(InMemorySizeCache):
    """In-memory cache that records whether it was closed."""

    def __init__(self):
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True


def sample_report() -> Report:
    return Report.from_results(
        PAGE_URL,
        [
            SizeResult(
                image_url="https://example.com/a.jpg",
                original_size=2 * 1024 * 1024,
                optimized_size=1024 * 1024,
                fetched_at=0,
            ),
            SizeResult(
                image_url="https://example.com/b.png",
                original_error=ErrorKind.REDIRECT_LOOP_ERROR,
                original_error_detail="Too many redirects",
                fetched_at=0,
            ),
        ],
    )


class TestServeCommand:
    """Test serve command."""

    def test_serve_default_options(self):
        """Test serve command with default options."""
        with patch("imgproxy_checker.server.mcp") as mock_mcp:
            mock_mcp.run = MagicMock()

            result = runner.invoke(app, ["serve"])

            assert result.exit_code == 0
            mock_mcp.run.assert_called_once()
            call_kwargs = mock_mcp.run.call_args.kwargs
            assert call_kwargs["transport"] == "http"
            assert call_kwargs["path"] == "/mcp"

    def test_serve_custom_host_and_port(self):
        """Test serve command with custom host and port."""
        with patch("imgproxy_checker.server.mcp") as mock_mcp:
            mock_mcp.run = MagicMock()

            result = runner.invoke(app, ["serve", "--host", "127.0.0.1", "--port", "9000"])

            assert result.exit_code == 0
            call_kwargs = mock_mcp.run.call_args.kwargs
            assert call_kwargs["host"] == "127.0.0.1"
            assert call_kwargs["port"] == 9000

    def test_serve_warns_for_private_public_base_url(self, monkeypatch):
        """Test a non-public PUBLIC_BASE_URL is flagged before serving."""
        monkeypatch.setattr("imgproxy_checker.cli.settings.public_base_url", "http://127.0.0.1:8080")
        with patch("imgproxy_checker.server.mcp") as mock_mcp:
            mock_mcp.run = MagicMock()

            result = runner.invoke(app, ["serve"])

        assert result.exit_code == 0
        assert "PUBLIC_BASE_URL is not public" in result.output


class TestAnalyzeCommand:
    """Test analyze command."""

    def setup_method(self):
        FakeAnalyzer.instances = []
        FakeAnalyzer.report = sample_report()
        FakeAnalyzer.error = None

    def test_analyze_prints_report(self):
        """Test the report totals and loading times are printed."""
        with patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer):
            result = runner.invoke(app, ["analyze", PAGE_URL, "--no-cache"])

        assert result.exit_code == 0
        assert "Total image size: 2.00 MB" in result.output
        assert "Total optimized image size: 1.00 MB" in result.output
        assert "1 images failed" in result.output
        assert "Wi-Fi" in result.output

    def test_analyze_passes_options(self):
        """Test command-line options override the configured settings."""
        with patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer):
            result = runner.invoke(
                app,
                ["analyze", PAGE_URL, "--workers", "2", "--no-cache"],
            )

        assert result.exit_code == 0
        analyzer = FakeAnalyzer.instances[0]
        assert analyzer.config.workers == 2
        assert analyzer.config.always_stage is False
        assert analyzer.cache is None

    def test_analyze_never_stages(self, monkeypatch):
        """Test analyze sends public images straight to the proxy even if staging is configured."""
        monkeypatch.setattr("imgproxy_checker.cli.settings.always_stage", True)
        with patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer):
            result = runner.invoke(app, ["analyze", PAGE_URL, "--no-cache"])

        assert result.exit_code == 0
        assert FakeAnalyzer.instances[0].config.always_stage is False
        assert "staging server" not in result.output

    def test_analyze_warns_for_private_page(self):
        """Test a page on a private host points the user at the server."""
        with patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer):
            result = runner.invoke(app, ["analyze", "http://localhost:3000/", "--no-cache"])

        assert result.exit_code == 0
        assert "imgproxy-checker serve" in result.output

    def test_analyze_rejects_removed_stage_option(self):
        """Test --stage is not an analyze option."""
        result = runner.invoke(app, ["analyze", PAGE_URL, "--stage"])

        assert result.exit_code != 0

    def test_analyze_uses_cache(self):
        """Test the configured cache is handed to the analyzer and closed afterwards."""
        cache = ClosingSizeCache()
        with (
            patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer),
            patch("imgproxy_checker.cache.create_size_cache", return_value=cache),
        ):
            result = runner.invoke(app, ["analyze", PAGE_URL])

        assert result.exit_code == 0
        assert FakeAnalyzer.instances[0].cache is cache
        assert cache.closed is True

    def test_analyze_closes_cache_on_failure(self):
        """Test the cache is closed when the page cannot be fetched."""
        FakeAnalyzer.error = FetchError("Error fetching page", url=PAGE_URL)
        cache = ClosingSizeCache()
        with (
            patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer),
            patch("imgproxy_checker.cache.create_size_cache", return_value=cache),
        ):
            result = runner.invoke(app, ["analyze", PAGE_URL])

        assert result.exit_code == 1
        assert cache.closed is True

    def test_analyze_page_failure_exits_nonzero(self):
        """Test a page that cannot be fetched exits with status 1."""
        FakeAnalyzer.error = FetchError("Error fetching page", url=PAGE_URL)
        with patch("imgproxy_checker.pipeline.PageAnalyzer", FakeAnalyzer):
            result = runner.invoke(app, ["analyze", PAGE_URL, "--no-cache"])

        assert result.exit_code == 1
        assert "Error fetching page" in result.output


class TestInfoCommand:
    """Test info command."""

    def test_info_displays_settings(self):
        """Test info command displays settings and cache size."""
        cache = ClosingSizeCache()
        with patch("imgproxy_checker.cache.create_size_cache", return_value=cache):
            result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "imgproxy-checker Configuration" in result.output
        assert "Cached measurements: 0" in result.output
        assert cache.closed is True


class TestClearCacheCommand:
    """Test clear-cache command."""

    @staticmethod
    def filled_cache() -> ClosingSizeCache:
        cache = ClosingSizeCache()
        entry = CacheEntry(
            page_url=PAGE_URL,
            image_url="https://example.com/a.jpg",
            original_size=10,
            optimized_size=5,
            fetched_at=0,
        )
        cache._entries[(entry.page_url, entry.image_url)] = entry
        return cache

    def test_clear_with_yes(self):
        """Test --yes clears without prompting."""
        cache = self.filled_cache()
        with patch("imgproxy_checker.cache.create_size_cache", return_value=cache):
            result = runner.invoke(app, ["clear-cache", "--yes"])

        assert result.exit_code == 0
        assert "Size cache cleared" in result.output
        assert cache._entries == {}
        assert cache.closed is True

    def test_clear_declined(self):
        """Test declining the prompt leaves the cache untouched."""
        cache = self.filled_cache()
        with patch("imgproxy_checker.cache.create_size_cache", return_value=cache):
            result = runner.invoke(app, ["clear-cache"], input="n\n")

        assert result.exit_code == 0
        assert len(cache._entries) == 1


class TestHelpOutput:
    """Test help output for commands."""

    def test_main_help(self):
        """Test main help output."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "image optimization proxy" in result.output
        assert "serve" in result.output
        assert "analyze" in result.output
        assert "clear-cache" in result.output
