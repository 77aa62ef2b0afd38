"""Shared test fixtures for cpu-residency."""

from pathlib import Path

import pytest

# Little cores 100-300, big cores 250-450
FREQUENCIES_KHZ = (100, 200, 300, 250, 350, 450)


def time_in_state_text(frequencies, times, split: int | None = None) -> str:
    """Render a time_in_state file with cpu cluster headers."""
    split = len(frequencies) if split is None else split
    lines = ["cpu0"]
    for i, (freq, time) in enumerate(zip(frequencies, times)):
        if i == split:
            lines.append("cpu4")
        lines.append(f"{freq} {time}")
    return "\n".join(lines) + "\n"


def add_thread(
    process_dir: Path,
    tid: int | str,
    times=None,
    name: str | None = "worker",
    frequencies=FREQUENCIES_KHZ,
) -> Path:
    """Create task/<tid> with time_in_state (unless times is None) and comm."""
    thread_dir = process_dir / "task" / str(tid)
    thread_dir.mkdir(parents=True)
    if times is not None:
        (thread_dir / "time_in_state").write_text(
            time_in_state_text(frequencies, times, split=3)
        )
    if name is not None:
        (thread_dir / "comm").write_text(f"{name}\n")
    return thread_dir


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    """Fake proc mount with an initial time_in_state under self/."""
    root = tmp_path / "proc"
    (root / "self").mkdir(parents=True)
    (root / "self" / "time_in_state").write_text(
        time_in_state_text(FREQUENCIES_KHZ, [0] * len(FREQUENCIES_KHZ), split=3)
    )
    return root


@pytest.fixture
def process_dir(proc_root: Path) -> Path:
    """Fake /proc/1234 with a cmdline but no threads yet."""
    path = proc_root / "1234"
    path.mkdir()
    (path / "cmdline").write_bytes(b"/system/bin/app_process\0--nice-name\0")
    return path


class FakeStatsSource:
    """In-memory StatsSource.

    Files are keyed by path. Listings map a process path to its thread
    entry names; a missing listing raises FileNotFoundError.
    """

    def __init__(self):
        self.listings: dict[Path, list[str]] = {}
        self.time_in_state: dict[Path, list[tuple[int, int]]] = {}
        self.lines: dict[Path, str] = {}
        self.tokens: dict[Path, list[str]] = {}

    def list_thread_entries(self, process_path: Path) -> list[str]:
        if process_path not in self.listings:
            raise FileNotFoundError(process_path / "task")
        return list(self.listings[process_path])

    def read_time_in_state(self, path: Path) -> list[tuple[int, int]] | None:
        return self.time_in_state.get(path)

    def read_single_line(self, path: Path) -> str | None:
        return self.lines.get(path)

    def read_null_separated(self, path: Path) -> list[str] | None:
        return self.tokens.get(path)


@pytest.fixture
def fake_source() -> FakeStatsSource:
    """FakeStatsSource holding the initial frequency table at /proc/self."""
    source = FakeStatsSource()
    source.time_in_state[Path("/proc/self/time_in_state")] = [(f, 0) for f in FREQUENCIES_KHZ]
    return source
