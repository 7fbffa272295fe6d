"""
Per-job event bus that fans job events out to observers.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Tuple, Type

from backup_agent.core.events.job_event import JobEvent

# An observer is an async function that takes a JobEvent and returns None
JobObserver = Callable[[JobEvent], Awaitable[None]]


class JobEventBus:
    """
    Asynchronous publish/subscribe channel for job events.

    Publishing waits until every matching observer has handled the event, so
    a job worker never runs ahead of its observers. If one observer fails,
    the error is logged and the remaining observers still receive the event.
    """

    def __init__(self) -> None:
        self._subscriptions: List[Tuple[Type[JobEvent], JobObserver]] = []
        self._lock = asyncio.Lock()

    async def subscribe(
        self, observer: JobObserver, event_type: Type[JobEvent] = JobEvent
    ) -> None:
        """
        Subscribes an observer to an event type and all of its subclasses.

        Subscribing the same observer twice for the same type is a no-op.
        """
        async with self._lock:
            if (event_type, observer) in self._subscriptions:
                return
            self._subscriptions.append((event_type, observer))
            logging.debug(
                f"Observer {_observer_name(observer)} subscribed to {event_type.__name__}"
            )

    async def unsubscribe(self, observer: JobObserver) -> None:
        """Removes every subscription of the given observer."""
        async with self._lock:
            if not self.has_observer(observer):
                return
            self._subscriptions = [
                (event_type, existing)
                for event_type, existing in self._subscriptions
                if existing != observer
            ]
            logging.debug(
                f"Observer {_observer_name(observer)} unsubscribed, {self.observer_count} remaining"
            )

    def has_observer(self, observer: JobObserver) -> bool:
        return any(existing == observer for _, existing in self._subscriptions)

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: JobEvent) -> None:
        """
        Publishes a job event to all observers subscribed to its type.

        Args:
            event: The job event instance to publish.
        """
        observers = [
            observer
            for event_type, observer in list(self._subscriptions)
            if isinstance(event, event_type)
        ]

        if not observers:
            logging.debug(f"No observers for event {type(event).__name__}")
            return

        await asyncio.gather(*(self._safe_execute(observer, event) for observer in observers))

    async def _safe_execute(self, observer: JobObserver, event: JobEvent) -> None:
        try:
            await observer(event)
        except Exception as e:
            logging.error(
                f"Unhandled exception in observer '{_observer_name(observer)}' for event "
                f"'{type(event).__name__}' (job {event.job_name}): {e}",
                exc_info=True,
            )


def _observer_name(observer: JobObserver) -> str:
    return getattr(observer, "__qualname__", None) or type(observer).__name__
