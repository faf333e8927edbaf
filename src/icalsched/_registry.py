from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, MutableMapping
from typing import Any, Protocol

from ._config import KEY_PREFIX
from ._handle import ScheduleHandle

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Consumer(Protocol):
    """Whatever receives scheduled events.

    `heap` is the consumer's private storage; the schedule registry lives in
    it under a namespaced key. Consumers must support weak references.
    """

    heap: MutableMapping[str, Any]

    def dispatch(self, event: str, *args: Any) -> Any: ...


class Session:
    """A minimal `Consumer`: named event handlers plus a heap."""

    def __init__(self, name: str = "session", handlers: dict[str, Handler] | None = None) -> None:
        self.name = name
        self.heap: dict[str, Any] = {}
        self._handlers: dict[str, Handler] = dict(handlers or {})

    def on(self, event: str) -> Callable[[Handler], Handler]:
        """Decorator registering `handler` for `event`."""

        def decorator(handler: Handler) -> Handler:
            self._handlers[event] = handler
            return handler

        return decorator

    def dispatch(self, event: str, *args: Any) -> Any:
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning("Session %r has no handler for event %r", self.name, event)
            return None
        return handler(*args)

    def __repr__(self) -> str:
        return f"Session({self.name!r})"


class ScheduleRegistry:
    """Schedules of one consumer, keyed by schedule name.

    Only live (armed) handles are kept: an exhausted handle removes itself,
    and a handle replaced under the same name is cancelled.
    """

    def __init__(self) -> None:
        self._handles: dict[str, ScheduleHandle] = {}

    @classmethod
    def of(cls, consumer: Consumer, key: str = KEY_PREFIX) -> ScheduleRegistry:
        """The registry stored in `consumer`'s heap under `key`, created on first use."""
        registry = cls.find(consumer, key)
        if registry is None:
            registry = cls()
            consumer.heap[key] = registry
        return registry

    @staticmethod
    def find(consumer: Consumer, key: str = KEY_PREFIX) -> ScheduleRegistry | None:
        registry = consumer.heap.get(key)
        return registry if isinstance(registry, ScheduleRegistry) else None

    def get(self, name: str) -> ScheduleHandle | None:
        return self._handles.get(name)

    def names(self) -> list[str]:
        return list(self._handles)

    def put(self, name: str, handle: ScheduleHandle) -> ScheduleHandle | None:
        """Store `handle` under `name`, cancelling and returning any handle it replaces."""
        previous = self._handles.get(name)
        if previous is not None and previous is not handle:
            previous.cancel()
            logger.info("Schedule %r replaced", name)
        self._handles[name] = handle
        handle.bind(self)
        return previous

    def pop(self, name: str) -> ScheduleHandle | None:
        return self._handles.pop(name, None)

    def discard(self, name: str, handle: ScheduleHandle) -> bool:
        """Drop the entry for `name` only if it still refers to `handle`."""
        if self._handles.get(name) is handle:
            del self._handles[name]
            return True
        return False

    def clear(self) -> int:
        handles = list(self._handles.values())
        self._handles.clear()
        return sum(1 for handle in handles if handle.cancel())

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._handles))
