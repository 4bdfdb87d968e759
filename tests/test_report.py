"""
Tests for savings reports.

Tests loading-time estimates, totals, and the plain-text rendering.
"""

import pytest

from imgproxy_checker.errors import ErrorKind
from imgproxy_checker.probing.base import SizeResult
from imgproxy_checker.report import (
    CONNECTION_CLASSES,
    Report,
    estimate_loading_times,
    format_size,
    render_report,
    render_report_lines,
)

PAGE_URL = "https://example.com/"


@pytest.fixture
def results():
    """Two successful results and one failure."""
    return [
        SizeResult(
            image_url="https://example.com/a.jpg",
            original_size=600_000,
            optimized_size=200_000,
            fetched_at=0,
        ),
        SizeResult(
            image_url="https://example.com/b.png",
            original_size=400_000,
            optimized_size=300_000,
            fetched_at=0,
        ),
        SizeResult(
            image_url="https://example.com/c.gif",
            original_error=ErrorKind.FETCH_ERROR,
            original_error_detail="Error fetching image size (404)",
            fetched_at=0,
        ),
    ]


class TestEstimateLoadingTimes:
    """Test estimate_loading_times."""

    def test_four_g(self):
        """Test 1 MB original and 0.5 MB optimized at 1000 kbps."""
        times = estimate_loading_times(1_000_000, 500_000)

        assert times["4G"].original == pytest.approx(8.0)
        assert times["4G"].optimized == pytest.approx(4.0)

    def test_every_connection_class(self):
        """Test every class is estimated, in table order."""
        times = estimate_loading_times(1_000_000, 500_000)

        assert list(times) == ["2G", "3G", "4G", "Wi-Fi"]
        assert times["2G"].original == pytest.approx(8_000_000 / 35_000)
        assert times["Wi-Fi"].optimized == pytest.approx(0.8)

    def test_custom_classes(self):
        """Test the class table can be overridden."""
        times = estimate_loading_times(125_000, 0, {"Dial-up": 56.0})

        assert list(times) == ["Dial-up"]
        assert times["Dial-up"].original == pytest.approx(1_000_000 / 56_000)
        assert times["Dial-up"].optimized == 0

    def test_default_table(self):
        """Test the default bandwidths."""
        assert CONNECTION_CLASSES == {"2G": 35.0, "3G": 200.0, "4G": 1000.0, "Wi-Fi": 5000.0}


class TestReport:
    """Test Report aggregation."""

    def test_totals_exclude_failures(self, results):
        """Test totals only count images where both probes succeeded."""
        report = Report.from_results(PAGE_URL, results)

        assert report.total_original == 1_000_000
        assert report.total_optimized == 500_000
        assert report.savings == 500_000
        assert report.savings_ratio == pytest.approx(0.5)
        assert len(report.failed) == 1
        assert len(report.per_image) == 3

    def test_empty_report(self):
        """Test a page without images yields zero totals."""
        report = Report.from_results(PAGE_URL, [])

        assert report.total_original == 0
        assert report.savings_ratio == 0.0
        assert set(report.loading_times) == set(CONNECTION_CLASSES)

    def test_optimized_failure_excluded(self):
        """Test an image whose optimized probe failed does not count."""
        result = SizeResult(
            image_url="https://example.com/a.jpg",
            original_size=5000,
            optimized_error=ErrorKind.STAGING_ERROR,
            optimized_error_detail="Could not download original",
            fetched_at=0,
        )

        report = Report.from_results(PAGE_URL, [result])

        assert report.total_original == 0
        assert report.failed == [result]


class TestRendering:
    """Test plain-text rendering."""

    def test_format_size(self):
        """Test sizes are shown in megabytes with two decimals."""
        assert format_size(1024 * 1024) == "1.00 MB"
        assert format_size(0) == "0.00 MB"

    def test_line_order(self, results):
        """Test per-image lines come first, then totals, loading times and footer."""
        lines = list(render_report_lines(Report.from_results(PAGE_URL, results), elapsed=1.5))

        assert lines[0].startswith("Image URL: https://example.com/a.jpg, Original Size: 0.57 MB")
        assert lines[2] == (
            "Image URL: https://example.com/c.gif, "
            "Error: original size: FetchError: Error fetching image size (404)\n"
        )
        assert lines[3] == "\n"
        assert lines[4] == "Total image size: 0.95 MB\n"
        assert lines[5] == "Total optimized image size: 0.48 MB\n"
        assert lines[6] == "Size difference: 0.48 MB (50.0%)\n"
        assert lines[7] == "Images failed: 1 of 3\n"
        assert "Loading times for different connection speeds" in lines[8]
        assert lines[11] == "4G: 8.00 seconds / 4.00 seconds\n"
        assert lines[-2] == f"\nOriginal URL: {PAGE_URL}\n"
        assert lines[-1] == "Processing time: 1.50s\n"

    def test_every_line_ends_with_newline(self, results):
        """Test every rendered chunk is newline-terminated."""
        lines = render_report_lines(Report.from_results(PAGE_URL, results))

        assert all(line.endswith("\n") for line in lines)

    def test_render_report_without_failures(self):
        """Test the failure count is omitted when everything succeeded."""
        result = SizeResult(
            image_url="https://example.com/a.jpg",
            original_size=10,
            optimized_size=5,
            fetched_at=0,
        )

        text = render_report(Report.from_results(PAGE_URL, [result]))

        assert "Images failed" not in text
        assert "Processing time" not in text
        assert text.endswith(f"Original URL: {PAGE_URL}\n")
