"""
Typed publish/subscribe registry.

Every topic the engine produces or consumes is listed in Topic, so each
producer/consumer pair can be found by searching for the enum member.
Handlers run synchronously in emit order; a coroutine handler is scheduled
on the running event loop. A failing handler is logged and never reaches the
producer.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


class Topic(str, Enum):
    # Published by the engine
    PROGRESS = "word_freq:progress"
    COMPLETE = "word_freq:analysis_complete"
    ERROR = "word_freq:error"
    SEARCHED = "word_freq:searched"
    SESSION_STARTED = "word_freq:session_started"
    SESSION_ENDED = "word_freq:session_ended"
    WORD_LOOKUP = "word_freq:word_lookup"
    REALTIME_ANALYSIS = "word_freq:realtime_analysis"
    SUGGESTIONS = "word_freq:suggestions"
    PREFERENCE_UPDATED = "word_freq:preference_updated"

    # Consumed by the engine
    GLOSSARY_SHOWN = "glossary:shown"
    READING_PROGRESS = "reader:progress"


class EventHub:
    """In-process event registry keyed by Topic."""

    def __init__(self):
        self._handlers: Dict[Topic, List[Handler]] = {}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, topic: Topic, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for a topic.

        Returns:
            A callable that removes the subscription
        """
        self._handlers.setdefault(Topic(topic), []).append(handler)
        return lambda: self.unsubscribe(topic, handler)

    def unsubscribe(self, topic: Topic, handler: Handler) -> bool:
        handlers = self._handlers.get(Topic(topic), [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def handler_count(self, topic: Optional[Topic] = None) -> int:
        if topic is not None:
            return len(self._handlers.get(Topic(topic), []))
        return sum(len(handlers) for handlers in self._handlers.values())

    def emit(self, topic: Topic, payload: Optional[Dict[str, Any]] = None) -> int:
        """
        Deliver a payload to every handler of a topic.

        Returns:
            Number of handlers that ran without raising
        """
        topic = Topic(topic)
        payload = payload or {}
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    self._schedule(topic, result)
                delivered += 1
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)!r} failed on {topic.value}: {e}")
        return delivered

    def _schedule(self, topic: Topic, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError(f"async handler on {topic.value} needs a running event loop")
        task = loop.create_task(awaitable)
        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(f"Async handler failed on {topic.value}: {finished.exception()}")

        task.add_done_callback(_done)

    def clear(self) -> None:
        self._handlers.clear()
