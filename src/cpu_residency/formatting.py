"""Formatting utilities for consistent CLI output."""


def format_frequency(khz: int) -> str:
    """Format a frequency in kHz for table headers.

    Returns:
        - Below 1 GHz: "300MHz"
        - 1 GHz and above: "1.80GHz"
    """
    if khz >= 1_000_000:
        return f"{khz / 1_000_000:.2f}GHz"
    return f"{khz // 1000}MHz"


def format_millis(millis: int) -> str:
    """Format a residency time for table cells (compact).

    Returns:
        - Under a second: "250ms"
        - Under a minute: "12.3s"
        - Longer: "5m07s"
    """
    if millis < 1000:
        return f"{millis}ms"
    seconds = millis / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s"
