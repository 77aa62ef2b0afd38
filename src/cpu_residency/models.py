"""Snapshot data model for per-thread CPU frequency residency."""

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class ThreadCpuUsage:
    """CPU usage of a single thread.

    usage_times_millis holds one cumulative residency time per frequency
    bucket, aligned with the collector's cpu_frequencies_khz.
    """

    thread_id: int
    thread_name: str
    usage_times_millis: tuple[int, ...]

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "thread_id": self.thread_id,
            "thread_name": self.thread_name,
            "usage_times_millis": list(self.usage_times_millis),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ThreadCpuUsage":
        """Deserialize from a dictionary."""
        return cls(
            thread_id=data["thread_id"],
            thread_name=data["thread_name"],
            usage_times_millis=tuple(data["usage_times_millis"]),
        )


@dataclass(frozen=True)
class ProcessCpuUsage:
    """CPU usage of all threads of one process at one instant.

    Threads are in directory enumeration order, which is not stable between
    snapshots.
    """

    process_id: int
    process_name: str
    uid: int
    thread_cpu_usages: tuple[ThreadCpuUsage, ...]

    def total_usage_millis(self) -> tuple[int, ...]:
        """Sum usage times across all threads, per bucket."""
        if not self.thread_cpu_usages:
            return ()
        columns = zip(*(t.usage_times_millis for t in self.thread_cpu_usages))
        return tuple(sum(column) for column in columns)

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "process_id": self.process_id,
            "process_name": self.process_name,
            "uid": self.uid,
            "thread_cpu_usages": [t.to_dict() for t in self.thread_cpu_usages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProcessCpuUsage":
        """Deserialize from a dictionary."""
        return cls(
            process_id=data["process_id"],
            process_name=data["process_name"],
            uid=data["uid"],
            thread_cpu_usages=tuple(
                ThreadCpuUsage.from_dict(t) for t in data["thread_cpu_usages"]
            ),
        )

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: str) -> "ProcessCpuUsage":
        """Deserialize from JSON string."""
        return cls.from_dict(json.loads(data))
