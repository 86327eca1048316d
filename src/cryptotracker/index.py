from collections.abc import Iterator, Mapping

from loguru import logger

from cryptotracker.models import Statistics
from cryptotracker.publisher import (
    Publisher,
    StatisticsCleared,
    StatisticsUpdated,
    Topic,
)
from cryptotracker.validator import is_valid


class StatisticsIndex(Mapping[str, Statistics]):
    """The latest valid statistics for each product, keyed by display name.

    The index is a read-only mapping for consumers. Writers go through
    `upsert`, which rejects invalid records, and `clear`, which is reserved
    for a full resync. Every change is announced on the `STATISTICS` topic of
    the publisher.
    """

    def __init__(self, publisher: Publisher | None = None) -> None:
        self.publisher = publisher if publisher is not None else Publisher()
        self._entries: dict[str, Statistics] = {}

    def __getitem__(self, display_name: str) -> Statistics:
        return self._entries[display_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def upsert(self, display_name: str, stats: Statistics | None) -> bool:
        """Inserts or overwrites the statistics for a product.

        Args:
            display_name: The product's display name.
            stats: The statistics to store.

        Returns:
            True if the record was stored, False if it was invalid and discarded.
        """
        if stats is None or not is_valid(stats):
            logger.debug(f"Discarding invalid stats for {display_name}.")
            return False

        self._entries[display_name] = stats
        self.publisher.publish(
            Topic.STATISTICS, StatisticsUpdated(display_name, stats)
        )
        return True

    def clear(self) -> None:
        """Removes every entry ahead of a full resync."""
        self._entries.clear()
        self.publisher.publish(Topic.STATISTICS, StatisticsCleared())

    def snapshot(self) -> dict[str, Statistics]:
        """Returns a copy of the current entries."""
        return dict(self._entries)
