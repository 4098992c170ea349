"""Debounced city suggestions for free-text search input."""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set
from weather_data import CitySuggestion

DEBOUNCE_SECONDS = 0.3
MIN_QUERY_LENGTH = 2

SuggestionLookup = Callable[[str], Awaitable[List[CitySuggestion]]]
SuggestionListener = Callable[[List[CitySuggestion]], None]


class SuggestionDebouncer:
    """
    Turns keystrokes into suggestion lookups once input has been quiet.

    Each ``feed`` cancels the pending quiet-period timer and starts a new
    one. Lookups already running are left alone; whichever finishes last
    delivers its suggestions. Must be fed from inside a running event loop.
    """

    def __init__(
        self,
        lookup: SuggestionLookup,
        on_suggestions: SuggestionListener,
        delay_seconds: float = DEBOUNCE_SECONDS,
        min_length: int = MIN_QUERY_LENGTH,
    ):
        """
        Args:
            lookup: Coroutine function returning suggestions for a query
            on_suggestions: Called with each suggestion list (empty to clear)
            delay_seconds: Quiet period before a lookup starts
            min_length: Shorter input clears suggestions without a lookup
        """
        self.lookup = lookup
        self.on_suggestions = on_suggestions
        self.delay_seconds = delay_seconds
        self.min_length = min_length

        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> bool:
        """True while a quiet-period timer is waiting to fire."""
        return self._timer is not None

    def feed(self, text: str) -> None:
        """Handle the current contents of the search input."""
        self._cancel_timer()
        query = (text or "").strip()
        if len(query) < self.min_length:
            self._emit([])
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay_seconds, self._fire, query)

    def _fire(self, query: str) -> None:
        self._timer = None
        logging.debug(f"Looking up suggestions for '{query}'")
        task = asyncio.get_running_loop().create_task(self._run(query))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run(self, query: str) -> None:
        try:
            suggestions = await self.lookup(query)
        except Exception as e:
            logging.warning(f"Suggestion lookup failed for '{query}': {e}")
            suggestions = []
        self._emit(suggestions)

    def _emit(self, suggestions: List[CitySuggestion]) -> None:
        if not self._closed:
            self.on_suggestions(list(suggestions))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def drain(self) -> None:
        """Wait for lookups already in flight (not for a pending timer)."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight)

    def close(self) -> None:
        """Cancel the pending timer and ignore results that arrive later."""
        self._cancel_timer()
        self._closed = True
