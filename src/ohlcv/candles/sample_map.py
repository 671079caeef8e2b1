"""In-memory timestamp -> value map with window lookup.

Built once per asset and window from a single range query, then shared by
every period aggregated from it, so aggregation never issues one store read
per candle.
"""

from bisect import bisect_right
from collections.abc import Iterable
from decimal import Decimal


class SampleMap:
    """Ordered map of raw samples for one asset and measurement.

    Membership tests are O(1). Window lookups bisect a sorted timestamp
    index that is rebuilt lazily after samples are added.
    """

    def __init__(self, samples: Iterable[tuple[int, Decimal]] = ()) -> None:
        self._values: dict[int, Decimal] = dict(samples)
        self._index: list[int] | None = None

    def __contains__(self, timestamp_ms: object) -> bool:
        return timestamp_ms in self._values

    def __len__(self) -> int:
        return len(self._values)

    def add(self, timestamp_ms: int, value: Decimal) -> bool:
        """Add a sample. Returns False (and keeps the old value) if present."""
        if timestamp_ms in self._values:
            return False
        self._values[timestamp_ms] = value
        self._index = None
        return True

    def _sorted_timestamps(self) -> list[int]:
        if self._index is None:
            self._index = sorted(self._values)
        return self._index

    def window(self, period_end_ms: int, duration_ms: int) -> list[tuple[int, Decimal]]:
        """Samples with period_end_ms - duration_ms < timestamp <= period_end_ms.

        Returned oldest first.
        """
        index = self._sorted_timestamps()
        lo = bisect_right(index, period_end_ms - duration_ms)
        hi = bisect_right(index, period_end_ms)
        return [(ts, self._values[ts]) for ts in index[lo:hi]]
