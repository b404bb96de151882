# storefront/client/cache.py
import asyncio
import itertools
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Optional

from storefront.errors import StorefrontError, TransportError

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Change = Callable[[Any], Any]


class QueryCache:
    """
    Cached views keyed by operation name ("cart.list", "menu.list").

    Every key has a generation counter. A fetch only writes its result if the
    generation is unchanged since it started, so cancel() and invalidate()
    make any older in-flight fetch harmless even if it still completes.

    A view is the last known server state with the pending optimistic
    changes applied on top, in the order they were made. Dropping one change
    rebuilds the view from that state and the changes still pending.
    """

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._base: Dict[str, Any] = {}
        self._pending: Dict[str, Dict[int, Change]] = defaultdict(dict)
        self._change_ids = itertools.count(1)
        self._errors: Dict[str, StorefrontError] = {}
        self._fetchers: Dict[str, Fetcher] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._generation: Dict[str, int] = defaultdict(int)

    def register(self, key: str, fetcher: Fetcher):
        self._fetchers[key] = fetcher

    def get_data(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def get_error(self, key: str) -> Optional[StorefrontError]:
        return self._errors.get(key)

    def set_data(self, key: str, value: Any) -> Any:
        """Replace the known server state. A callable is treated as an updater of the old value."""
        if callable(value):
            value = value(self._base.get(key))
        self._base[key] = value
        return self._rebuild(key)

    def _rebuild(self, key: str) -> Any:
        value = self._base.get(key)
        if value is not None:
            for change in self._pending[key].values():
                value = change(value)
        self._data[key] = value
        return value

    # optimistic changes

    def apply_change(self, key: str, change: Change) -> Optional[int]:
        """Apply change on top of the view. Returns its id, or None when nothing is cached yet."""
        if self._base.get(key) is None:
            return None
        change_id = next(self._change_ids)
        self._pending[key][change_id] = change
        self._data[key] = change(self._data[key])
        return change_id

    def confirm_change(self, key: str, change_id: int):
        """The server accepted the change: it becomes part of the known state."""
        change = self._pending[key].pop(change_id, None)
        if change is not None and self._base.get(key) is not None:
            self._base[key] = change(self._base[key])

    def drop_change(self, key: str, change_id: int):
        """Undo one change. Other pending changes stay applied."""
        if self._pending[key].pop(change_id, None) is not None:
            self._rebuild(key)

    def pending_changes(self, key: str) -> int:
        return len(self._pending[key])

    # fetching

    def is_fetching(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def fetch(self, key: str) -> Any:
        generation = self._generation[key]
        data = await self._fetchers[key]()
        if generation != self._generation[key]:
            logger.debug("discarding superseded result for %s", key)
            return self._data.get(key)
        self._base[key] = data
        self._errors.pop(key, None)
        return self._rebuild(key)

    async def cancel(self, key: str):
        """Stop any in-flight refresh of key; its result will never be written."""
        self._generation[key] += 1
        task = self._tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def invalidate(self, key: str) -> Optional[asyncio.Task]:
        """Mark key stale and refetch it in the background."""
        if key not in self._fetchers:
            return None
        self._generation[key] += 1
        previous = self._tasks.get(key)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.ensure_future(self._refresh(key))
        self._tasks[key] = task
        return task

    async def _refresh(self, key: str):
        try:
            await self.fetch(key)
        except StorefrontError as e:
            # keep the last known view, the next invalidate will try again
            self._errors[key] = e
            logger.warning("background refresh of %s failed: %s", key, e.message)
        except Exception as e:
            self._errors[key] = TransportError(f"{key} refresh failed: {e}")
            logger.exception("background refresh of %s failed", key)

    async def wait_idle(self):
        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
