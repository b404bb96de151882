# storefront/client/mutations.py
"""
Optimistic mutations over a QueryCache view.

One run walks the states

    IDLE -> APPLYING -> COMMITTED | ROLLED_BACK -> RECONCILING -> IDLE

APPLYING cancels any refresh of the view and applies the change on top of
it before the remote call starts. A failed or timed out call drops that
change again; changes of other runs still in flight stay applied. Whatever
the outcome, the view is invalidated so a background refresh brings it back
to server state.

Runs of the same mutation may overlap, each one records its own history.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from storefront.client.cache import QueryCache
from storefront.client.notify import LoggingNotifier, Notifier
from storefront.errors import StorefrontError, TransportError

logger = logging.getLogger(__name__)


class MutationState(str, Enum):
    IDLE = "idle"
    APPLYING = "applying"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    RECONCILING = "reconciling"


@dataclass
class MutationResult:
    state: MutationState
    data: Any = None
    error: Optional[StorefrontError] = None
    history: List[MutationState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is MutationState.COMMITTED


class OptimisticMutation:
    def __init__(self, cache: QueryCache, key: str, call: Callable[..., Awaitable[Any]],
                 apply: Optional[Callable[..., Any]] = None, notifier: Optional[Notifier] = None,
                 success_message: Optional[str] = None, error_message: str = "Request failed",
                 timeout: Optional[float] = None):
        self.cache = cache
        self.key = key
        self.call = call
        self.apply = apply
        self.notifier = notifier or LoggingNotifier()
        self.success_message = success_message
        self.error_message = error_message
        self.timeout = timeout
        self.in_flight = 0

    async def run(self, **variables) -> MutationResult:
        history: List[MutationState] = []
        result: Optional[MutationResult] = None
        self.in_flight += 1
        try:
            await self.cache.cancel(self.key)

            history.append(MutationState.APPLYING)
            change_id = None
            if self.apply is not None:
                change_id = self.cache.apply_change(self.key, lambda old: self.apply(old, **variables))

            try:
                data = await asyncio.wait_for(self.call(**variables), self.timeout)
            except asyncio.TimeoutError:
                result = self._rollback(change_id, TransportError(f"{self.key} mutation timed out"), history)
            except StorefrontError as e:
                result = self._rollback(change_id, e, history)
            except Exception as e:
                logger.exception("%s mutation failed unexpectedly", self.key)
                result = self._rollback(change_id, TransportError(f"{self.key} mutation failed: {e}"), history)
            else:
                if change_id is not None:
                    self.cache.confirm_change(self.key, change_id)
                history.append(MutationState.COMMITTED)
                if self.success_message:
                    self.notifier.success(self.success_message)
                result = MutationResult(MutationState.COMMITTED, data=data, history=history)
            finally:
                if result is None:
                    # cancelled by the caller
                    if change_id is not None:
                        self.cache.drop_change(self.key, change_id)
                    history.append(MutationState.ROLLED_BACK)
        finally:
            history.append(MutationState.RECONCILING)
            self.cache.invalidate(self.key)
            history.append(MutationState.IDLE)
            self.in_flight -= 1
        return result

    def _rollback(self, change_id: Optional[int], error: StorefrontError,
                  history: List[MutationState]) -> MutationResult:
        if change_id is not None:
            self.cache.drop_change(self.key, change_id)
        history.append(MutationState.ROLLED_BACK)
        logger.warning("%s rolled back: %s", self.key, error.message)
        self.notifier.error(self.error_message)
        return MutationResult(MutationState.ROLLED_BACK, error=error, history=history)
