"""
Module for rendering file sizes and drop zone instructions.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

SIZE_UNITS = ("gb", "mb", "kb", "b")
DESCENT_THRESHOLD = 500


def _to_fixed(value: float, rounding: int) -> str:
    """Render a number with a fixed count of decimals, ties rounded up."""
    quantum = Decimal(1).scaleb(-rounding)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_size(size: float, unit: str = "b", rounding: int = 1) -> str:
    """Render a size as a human-scaled string.

    The value moves one unit up (dividing by 1024) while it exceeds 500
    and a larger unit remains.

    Args:
        size: Size expressed in ``unit``
        unit: One of gb, mb, kb, b
        rounding: Number of decimal places

    Returns:
        String such as "1.9MB"
    """
    unit = unit.lower()
    if unit not in SIZE_UNITS:
        raise ValueError(f"Unknown size unit: {unit}")
    if rounding < 0:
        raise ValueError(f"rounding cannot be negative: {rounding}")

    index = SIZE_UNITS.index(unit)
    while index > 0 and size > DESCENT_THRESHOLD:
        size = size / 1024
        index -= 1

    return f"{_to_fixed(size, rounding)}{SIZE_UNITS[index].upper()}"


def get_file_extension(filename: str) -> str:
    return filename.split(".")[-1] or "app"


def describe_limits(max_size_bytes: int, accepted_extensions: Iterable[str] = (),
                    multiple_files: bool = False) -> Tuple[str, str]:
    """Build the instructions shown inside the drop zone.

    Args:
        max_size_bytes: Current per-file size limit
        accepted_extensions: Accepted extensions, empty to accept everything
        multiple_files: Whether several files may be dropped at once

    Returns:
        Tuple of (headline, detail)
    """
    headline = f"Drag and drop file{'s' if multiple_files else ''} here"
    detail = f"Limit {format_size(max_size_bytes, 'b', 0)} per file"

    extensions = [e.lstrip(".").upper() for e in accepted_extensions if e]
    if extensions:
        detail += f" • {', '.join(extensions)}"

    return headline, detail
