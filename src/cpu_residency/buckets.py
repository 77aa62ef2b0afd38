"""Frequency bucketing for per-thread residency times.

A device reports residency for every frequency it supports, and the table
length varies between devices. Buckets compress that table into a fixed
number of slots so the telemetry payload stays small.

Buckets are index based: each bucket covers the same number of raw slots,
because frequency spacing is non-uniform and device specific. The table is
assumed to list every little-core frequency in ascending order followed by
every big-core frequency in ascending order, and no bucket crosses that
boundary. Trailing slots that don't divide evenly are absorbed by the last
bucket of each cluster.
"""

from collections.abc import Sequence
from dataclasses import dataclass


def find_big_start_index(frequencies_khz: Sequence[int]) -> int:
    """Return the index of the first big-core frequency.

    The boundary is the first descent in the table. Returns the table length
    when the table never descends (no big-core frequencies).
    """
    for i in range(len(frequencies_khz) - 1):
        if frequencies_khz[i] > frequencies_khz[i + 1]:
            return i + 1
    return len(frequencies_khz)


@dataclass(frozen=True)
class BucketMapping:
    """Immutable mapping from raw frequency slots onto buckets.

    Build with create_bucket_mapping() (or BucketMapping.create); the
    fields are derived values and are not meant to be set by hand.
    """

    frequencies_khz: tuple[int, ...]
    big_start_index: int
    little_buckets: int
    big_buckets: int
    little_bucket_size: int
    big_bucket_size: int

    @classmethod
    def create(cls, frequencies_khz: Sequence[int], num_buckets: int) -> "BucketMapping":
        """Alias for create_bucket_mapping()."""
        return create_bucket_mapping(frequencies_khz, num_buckets)

    @property
    def num_buckets(self) -> int:
        """Effective bucket count (may be lower than requested)."""
        return self.little_buckets + self.big_buckets

    @property
    def num_frequencies(self) -> int:
        """Number of raw frequency slots in the table."""
        return len(self.frequencies_khz)

    def min_frequencies(self) -> tuple[int, ...]:
        """Return the lowest frequency of each bucket.

        With a single bucket everything is bucketed together, so the result
        is the first frequency of the table.
        """
        if self.num_buckets == 1:
            return (self.frequencies_khz[0],)

        little = tuple(
            self.frequencies_khz[i * self.little_bucket_size] for i in range(self.little_buckets)
        )
        big = tuple(
            self.frequencies_khz[self.big_start_index + i * self.big_bucket_size]
            for i in range(self.big_buckets)
        )
        return little + big

    def bucket_values(self, values: Sequence[int]) -> tuple[int, ...]:
        """Sum raw per-frequency values into buckets.

        Args:
            values: One value per raw frequency slot, aligned with
                frequencies_khz.

        Returns:
            One sum per bucket. The total of the result equals the total
            of values.

        Raises:
            ValueError: If values doesn't match the frequency table length.
        """
        if len(values) != self.num_frequencies:
            raise ValueError(
                f"Expected {self.num_frequencies} values, got {len(values)}"
            )

        bucketed = [0] * self.num_buckets
        if self.num_buckets == 1:
            bucketed[0] = sum(values)
            return tuple(bucketed)

        for i, value in enumerate(values):
            if i < self.big_start_index:
                index = min(i // self.little_bucket_size, self.little_buckets - 1)
            else:
                index = min(
                    self.little_buckets + (i - self.big_start_index) // self.big_bucket_size,
                    self.num_buckets - 1,
                )
            bucketed[index] += value
        return tuple(bucketed)


def create_bucket_mapping(frequencies_khz: Sequence[int], num_buckets: int) -> BucketMapping:
    """Compute the bucket layout for a frequency table.

    Buckets are split evenly between little and big cores when the table has
    big-core frequencies, otherwise all buckets go to the little cores. A
    cluster never gets more buckets than it has frequencies.

    Args:
        frequencies_khz: Frequency table, little cores then big cores
        num_buckets: Requested number of buckets

    Raises:
        ValueError: If num_buckets is not positive.
    """
    if num_buckets <= 0:
        raise ValueError(f"num_buckets must be > 0, got {num_buckets}")

    frequencies = tuple(int(f) for f in frequencies_khz)
    big_start = find_big_start_index(frequencies)
    big_count = len(frequencies) - big_start

    if big_start < len(frequencies):
        little_buckets = num_buckets // 2
        big_buckets = num_buckets - little_buckets
    else:
        little_buckets = num_buckets
        big_buckets = 0

    # Never more buckets than frequencies
    little_buckets = min(little_buckets, big_start)
    big_buckets = min(big_buckets, big_count)

    return BucketMapping(
        frequencies_khz=frequencies,
        big_start_index=big_start,
        little_buckets=little_buckets,
        big_buckets=big_buckets,
        little_bucket_size=big_start // little_buckets if little_buckets else 0,
        big_bucket_size=big_count // big_buckets if big_buckets else 0,
    )
