"""Raw statistics source backed by the proc filesystem.

This module provides:
- StatsSource: the interface the collector reads through
- ProcfsSource: StatsSource over a real (or fake, rooted elsewhere) proc tree
- parse_time_in_state: parser for time_in_state files
- TimeInStateReader: frequency table plus per-thread residency reads

The process tree is live, so everything except the thread listing handles
files disappearing mid-read by returning None.
"""

from pathlib import Path
from typing import Protocol

import structlog

log = structlog.get_logger()

# time_in_state reports residency in clock ticks (USER_HZ = 100)
DEFAULT_TIME_UNIT_MILLIS = 10


class TimeInStateUnavailable(OSError):
    """Raised when the initial time_in_state file can't provide a frequency table."""


# ─────────────────────────────────────────────────────────────────────────────
# Parsing
# ─────────────────────────────────────────────────────────────────────────────


def parse_time_in_state(text: str) -> list[tuple[int, int]]:
    """Parse a time_in_state file into (frequency_khz, time) pairs.

    The file holds one "<frequency> <time>" line per frequency. Per-cluster
    header lines such as "cpu0" or "cpu4:" and blank lines are skipped.

    Raises:
        ValueError: If a line is neither a header nor a frequency/time pair.
    """
    pairs: list[tuple[int, int]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("cpu"):
            continue
        parts = line.split()
        if len(parts) != 2:
            raise ValueError(f"Malformed time_in_state line: {line!r}")
        pairs.append((int(parts[0]), int(parts[1])))
    return pairs


# ─────────────────────────────────────────────────────────────────────────────
# Sources
# ─────────────────────────────────────────────────────────────────────────────


class StatsSource(Protocol):
    """Where the collector gets its raw data from."""

    def list_thread_entries(self, process_path: Path) -> list[str]:
        """List entry names of <process_path>/task. Raises OSError on failure."""
        ...

    def read_time_in_state(self, path: Path) -> list[tuple[int, int]] | None:
        """Read (frequency_khz, time) pairs, or None if unreadable."""
        ...

    def read_single_line(self, path: Path) -> str | None:
        """Read the first line of a file, or None if unreadable."""
        ...

    def read_null_separated(self, path: Path) -> list[str] | None:
        """Read NUL-delimited tokens from a file, or None if unreadable."""
        ...


class ProcfsSource:
    """StatsSource reading from the filesystem.

    Paths are used as given, so a fake proc tree under a temporary
    directory works the same as /proc.
    """

    def list_thread_entries(self, process_path: Path) -> list[str]:
        return [entry.name for entry in (process_path / "task").iterdir()]

    def read_time_in_state(self, path: Path) -> list[tuple[int, int]] | None:
        try:
            return parse_time_in_state(path.read_text())
        except (OSError, ValueError):
            # Thread exited, or the file is not in the expected format
            return None

    def read_single_line(self, path: Path) -> str | None:
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                line = f.readline()
        except OSError:
            return None
        line = line.rstrip("\n")
        return line or None

    def read_null_separated(self, path: Path) -> list[str] | None:
        try:
            data = path.read_bytes()
        except OSError:
            return None
        tokens = [t.decode("utf-8", errors="replace") for t in data.split(b"\0") if t]
        return tokens or None


# ─────────────────────────────────────────────────────────────────────────────
# time_in_state reader
# ─────────────────────────────────────────────────────────────────────────────


class TimeInStateReader:
    """Reads per-thread residency times against a fixed frequency table.

    The table comes from one initial time_in_state file and never changes.
    Every later read is checked against it: a file listing different
    frequencies (e.g. after a CPU was hot-plugged) is rejected instead of
    being bucketed against the wrong table.
    """

    def __init__(
        self,
        initial_path: Path,
        source: StatsSource | None = None,
        time_unit_millis: int = DEFAULT_TIME_UNIT_MILLIS,
    ):
        """
        Args:
            initial_path: time_in_state file that defines the table
            source: Where to read from. Defaults to ProcfsSource.
            time_unit_millis: Milliseconds per time unit in the file

        Raises:
            TimeInStateUnavailable: If the initial file can't be read or
                lists no frequencies.
        """
        self._source = source or ProcfsSource()
        self._time_unit_millis = time_unit_millis

        pairs = self._source.read_time_in_state(initial_path)
        if not pairs:
            raise TimeInStateUnavailable(f"No frequencies readable from {initial_path}")
        self._frequencies_khz = tuple(freq for freq, _ in pairs)

    @property
    def frequencies_khz(self) -> tuple[int, ...]:
        """Frequency table, in file order."""
        return self._frequencies_khz

    def read_usage_times_millis(self, path: Path) -> tuple[int, ...] | None:
        """Read residency times in milliseconds, aligned with frequencies_khz.

        Returns None if the file is unreadable (usually the thread exited)
        or no longer matches the frequency table.
        """
        pairs = self._source.read_time_in_state(path)
        if pairs is None:
            return None

        frequencies = tuple(freq for freq, _ in pairs)
        if frequencies != self._frequencies_khz:
            log.warning(
                "time_in_state_table_changed",
                path=str(path),
                expected=len(self._frequencies_khz),
                actual=len(frequencies),
            )
            return None

        return tuple(time * self._time_unit_millis for _, time in pairs)
