"""
Tests for size formatting and drop zone instructions.
"""
import pytest

from upload_widget.sizes import describe_limits, format_size, get_file_extension


@pytest.mark.parametrize("size,unit,rounding,expected", [
    (2_000_000, "b", 1, "1.9MB"),
    (600, "b", 1, "0.6KB"),
    (400, "b", 1, "400.0B"),
    (500, "b", 1, "500.0B"),
    (501, "b", 1, "0.5KB"),
    (200 * 1024 * 1024, "b", 0, "200MB"),
    (1024, "kb", 2, "1.00MB"),
    (3 * 1024 ** 3, "b", 1, "3.0GB"),
])
def test_format_size_descends_units_above_500(size, unit, rounding, expected):
    """Test that sizes move to the next unit only while they exceed 500."""
    assert format_size(size, unit, rounding) == expected


def test_format_size_stops_at_gigabytes():
    """Test that gigabytes are never descended further."""
    assert format_size(2048, "gb") == "2048.0GB"


def test_format_size_rounds_ties_up():
    """Test that exact ties round up like a fixed-point display."""
    assert format_size(0.25, "b") == "0.3B"
    assert format_size(2.5, "b", 0) == "3B"


def test_format_size_accepts_uppercase_units():
    assert format_size(400, "B") == "400.0B"


def test_format_size_rejects_unknown_unit():
    with pytest.raises(ValueError):
        format_size(10, "tb")


def test_get_file_extension():
    assert get_file_extension("report.final.csv") == "csv"
    assert get_file_extension("archive.") == "app"
    assert get_file_extension("README") == "README"


def test_describe_limits_single_file_without_types():
    """Test instructions for a single file widget accepting everything."""
    headline, detail = describe_limits(200 * 1024 * 1024)

    assert headline == "Drag and drop file here"
    assert detail == "Limit 200MB per file"


def test_describe_limits_lists_accepted_extensions():
    """Test that accepted extensions are listed uppercased."""
    headline, detail = describe_limits(2_000_000, [".csv", "txt"], multiple_files=True)

    assert headline == "Drag and drop files here"
    assert detail == "Limit 2MB per file • CSV, TXT"


def test_describe_limits_strips_every_leading_dot():
    _, detail = describe_limits(2_000_000, [".csv", ".txt"])

    assert detail == "Limit 2MB per file • CSV, TXT"
