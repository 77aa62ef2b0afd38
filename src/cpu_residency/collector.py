"""Per-thread CPU frequency residency collector.

Given a process, iterates over its threads and returns the time each thread
spent at each (bucketed) CPU frequency. See buckets.py for how raw
frequencies are grouped.

The process tree is live: processes and threads can exit at any point of a
scan. That is treated as normal. A vanished thread is left out of the
snapshot, and a process with nothing readable yields None.
"""

from __future__ import annotations

import os
from pathlib import Path

import psutil
import structlog

from cpu_residency.buckets import BucketMapping, create_bucket_mapping
from cpu_residency.config import Config
from cpu_residency.models import ProcessCpuUsage, ThreadCpuUsage
from cpu_residency.procfs import (
    DEFAULT_TIME_UNIT_MILLIS,
    ProcfsSource,
    StatsSource,
    TimeInStateReader,
)

log = structlog.get_logger()

# File names inside /proc/<pid> and /proc/<pid>/task/<tid>
CPU_STATISTICS_FILENAME = "time_in_state"
PROCESS_NAME_FILENAME = "cmdline"
THREAD_NAME_FILENAME = "comm"

DEFAULT_PROCESS_NAME = "unknown_process"
DEFAULT_THREAD_NAME = "unknown_thread"
DEFAULT_PROC_PATH = Path("/proc")
DEFAULT_INITIAL_TIME_IN_STATE_PATH = DEFAULT_PROC_PATH / "self" / CPU_STATISTICS_FILENAME
DEFAULT_NUM_BUCKETS = 8


class ThreadUsageCollector:
    """Collects bucketed frequency residency for every thread of a process.

    The frequency table is read once at construction and assumed fixed for
    the collector's lifetime. Each collection call is independent: nothing
    is cached between calls, and cumulative-to-rate conversion is up to the
    caller.

    Not safe for overlapping calls from several threads; use one collector
    per thread if needed (they can share the immutable bucket mapping).
    """

    def __init__(
        self,
        proc_path: Path = DEFAULT_PROC_PATH,
        initial_time_in_state_path: Path = DEFAULT_INITIAL_TIME_IN_STATE_PATH,
        num_buckets: int = DEFAULT_NUM_BUCKETS,
        source: StatsSource | None = None,
        time_unit_millis: int = DEFAULT_TIME_UNIT_MILLIS,
        default_process_name: str = DEFAULT_PROCESS_NAME,
        default_thread_name: str = DEFAULT_THREAD_NAME,
    ):
        """
        Args:
            proc_path: Where proc is mounted (see `mount | grep ^proc`)
            initial_time_in_state_path: time_in_state file defining the
                frequency table
            num_buckets: Requested number of frequency buckets
            source: Raw data source. Defaults to ProcfsSource.
            time_unit_millis: Milliseconds per time_in_state tick
            default_process_name: Name used when cmdline can't be read
            default_thread_name: Name used when comm can't be read

        Raises:
            OSError: If the initial time_in_state file can't be read.
            ValueError: If num_buckets is not positive.
        """
        self._proc_path = Path(proc_path)
        self._source = source or ProcfsSource()
        self._default_process_name = default_process_name
        self._default_thread_name = default_thread_name

        self._time_in_state = TimeInStateReader(
            Path(initial_time_in_state_path),
            source=self._source,
            time_unit_millis=time_unit_millis,
        )
        self._mapping = create_bucket_mapping(self._time_in_state.frequencies_khz, num_buckets)
        self._frequencies_khz = self._mapping.min_frequencies()

    @classmethod
    def create(cls, config: Config | None = None) -> ThreadUsageCollector | None:
        """Build a collector from config, or return None if that fails."""
        config = config or Config.load()
        try:
            collector = cls(
                proc_path=config.proc_path,
                initial_time_in_state_path=config.initial_time_in_state_path,
                num_buckets=config.collector.num_buckets,
                time_unit_millis=config.collector.time_unit_millis,
                default_process_name=config.names.default_process_name,
                default_thread_name=config.names.default_thread_name,
            )
        except (OSError, ValueError) as e:
            log.error(
                "collector_init_failed",
                path=str(config.initial_time_in_state_path),
                error=str(e),
            )
            return None

        log.info(
            "collector_initialized",
            frequencies=collector.bucket_mapping.num_frequencies,
            buckets=collector.bucket_mapping.num_buckets,
        )
        return collector

    @property
    def cpu_frequencies_khz(self) -> tuple[int, ...]:
        """Lowest frequency of each bucket, aligned with usage_times_millis."""
        return self._frequencies_khz

    @property
    def bucket_mapping(self) -> BucketMapping:
        """The mapping used to bucket raw residency times."""
        return self._mapping

    def get_current_process_cpu_usage(self) -> ProcessCpuUsage | None:
        """Read usage of every thread of the calling process."""
        return self.get_process_cpu_usage(self._proc_path / "self", os.getpid(), os.getuid())

    def get_pid_cpu_usage(self, pid: int, uid: int | None = None) -> ProcessCpuUsage | None:
        """Read usage of every thread of process `pid`.

        If uid is not given it is looked up; a process that is gone or
        can't be inspected yields None.
        """
        if uid is None:
            try:
                uid = psutil.Process(pid).uids().real
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                return None
        return self.get_process_cpu_usage(self._proc_path / str(pid), pid, uid)

    def get_process_cpu_usage(
        self, process_path: Path, process_id: int, uid: int
    ) -> ProcessCpuUsage | None:
        """Read usage of every thread of a process.

        Args:
            process_path: The process's proc directory (e.g. /proc/1234)
            process_id: The ID of the process
            uid: The ID of the user who owns the process

        Returns:
            The snapshot, or None if the process exited or none of its
            threads could be read.
        """
        try:
            entries = self._source.list_thread_entries(process_path)
        except OSError:
            # Expected when the process has exited
            return None

        threads_path = process_path / "task"
        thread_cpu_usages: list[ThreadCpuUsage] = []
        for entry in entries:
            usage = self._get_thread_cpu_usage(threads_path, entry)
            if usage is not None:
                thread_cpu_usages.append(usage)

        # No threads read means the process exited while we were reading it
        if not thread_cpu_usages:
            return None

        log.debug("thread_usages_read", pid=process_id, threads=len(thread_cpu_usages))
        return ProcessCpuUsage(
            process_id=process_id,
            process_name=self._get_process_name(process_path),
            uid=uid,
            thread_cpu_usages=tuple(thread_cpu_usages),
        )

    def _get_thread_cpu_usage(self, threads_path: Path, entry: str) -> ThreadCpuUsage | None:
        """Read one thread's usage, or None if it can't be read."""
        if not (entry.isascii() and entry.isdigit()):
            log.warning("thread_id_parse_failed", entry=entry, path=str(threads_path))
            return None
        thread_id = int(entry)

        thread_path = threads_path / entry
        usage_times = self._time_in_state.read_usage_times_millis(
            thread_path / CPU_STATISTICS_FILENAME
        )
        if usage_times is None:
            # Thread exited between listing and reading
            return None

        return ThreadCpuUsage(
            thread_id=thread_id,
            thread_name=self._get_thread_name(thread_path),
            usage_times_millis=self._mapping.bucket_values(usage_times),
        )

    def _get_process_name(self, process_path: Path) -> str:
        """Get the command used to start a process."""
        tokens = self._source.read_null_separated(process_path / PROCESS_NAME_FILENAME)
        if tokens:
            return tokens[0]
        return self._default_process_name

    def _get_thread_name(self, thread_path: Path) -> str:
        """Get the short name of a thread."""
        name = self._source.read_single_line(thread_path / THREAD_NAME_FILENAME)
        if name is None:
            return self._default_thread_name
        return name
