import asyncio
import itertools
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from cryptotracker.models import Product, Statistics


class Topic(Enum):
    """The kinds of state change a subscriber can listen for."""

    PRODUCTS = "products"
    STATISTICS = "statistics"


@dataclass(frozen=True)
class ProductsUpdated:
    """The product catalog of a sync session was (re)published."""

    generation: int
    products: tuple[Product, ...]


@dataclass(frozen=True)
class StatisticsUpdated:
    """A valid statistics record was inserted or overwritten in the index."""

    display_name: str
    statistics: Statistics


@dataclass(frozen=True)
class StatisticsCleared:
    """The statistics index was emptied for a full resync."""


class Publisher:
    """A fan-out service that distributes state-change events to subscribers.

    Components that own observable state (the statistics index and the sync
    coordinator) publish events here, and any consumer, such as a UI, can
    subscribe a queue to a topic. This decouples the sync core from whoever
    displays its results.

    Publishing never blocks: events are delivered with `put_nowait` on the
    caller's event loop, in the order they were published. A full subscriber
    queue drops the event with a warning.
    """

    def __init__(self) -> None:
        # A mapping from topic to a dict of {subscription_id: queue}
        self._subscriptions: defaultdict[Topic, dict[int, asyncio.Queue[Any]]] = (
            defaultdict(dict)
        )
        # A reverse mapping from subscription_id to its topic
        self._id_to_topic: dict[int, Topic] = {}
        self._id_generator = itertools.count(1)
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: Topic, queue: "asyncio.Queue[Any]") -> int:
        """Subscribes a queue to receive events for a topic.

        Args:
            topic: The topic to listen to.
            queue: The asyncio.Queue to which events will be sent.

        Returns:
            A unique subscription ID that can be used to unsubscribe.
        """
        async with self._lock:
            sub_id = next(self._id_generator)
            self._subscriptions[topic][sub_id] = queue
            self._id_to_topic[sub_id] = topic
            logger.info(f"New subscription (ID: {sub_id}) for {topic.value}.")
            return sub_id

    async def unsubscribe(self, sub_id: int) -> None:
        """Unsubscribes a queue using its subscription ID.

        Args:
            sub_id: The unique ID returned by the `subscribe` method.
        """
        async with self._lock:
            if sub_id not in self._id_to_topic:
                logger.warning(f"Attempted to unsubscribe with invalid ID: {sub_id}")
                return

            topic = self._id_to_topic.pop(sub_id)
            self._subscriptions[topic].pop(sub_id, None)
            logger.info(f"Unsubscribed ID {sub_id} from {topic.value}.")
            if not self._subscriptions[topic]:
                del self._subscriptions[topic]

    def subscriber_count(self, topic: Topic) -> int:
        """Returns the number of queues currently subscribed to a topic."""
        return len(self._subscriptions.get(topic, {}))

    def publish(self, topic: Topic, event: Any) -> None:
        """Delivers an event to every queue subscribed to its topic.

        Args:
            topic: The topic the event belongs to.
            event: The event object to deliver.
        """
        # Copy the queues so subscribers can come and go while we deliver.
        queues = list(self._subscriptions.get(topic, {}).values())
        for queue in queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:  # noqa: PERF203
                logger.warning(
                    f"Subscriber queue for {topic.value} is full. "
                    "Event was dropped. This may indicate a slow consumer."
                )
