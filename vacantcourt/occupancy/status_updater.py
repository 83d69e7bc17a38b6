"""
Status Updater Module

Persists court status changes with at most one in-flight write per
court. Writes run on a small thread pool; their outcomes are delivered
back through the session dispatcher, which is the only place the cached
status map and the pending set are mutated.
"""

import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterator, Mapping, Optional
import logging

from ..courts import CourtStatus
from ..errors import RecordNotFound, StatusUpdateError
from ..store.base import CourtStore, UpdateOutcome
from ..utils.concurrency import CancellationToken, Dispatcher

logger = logging.getLogger(__name__)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class PendingUpdateSet:
    """Court names with a status write in flight."""

    def __init__(self):
        self._names = set()

    def add(self, name: str) -> bool:
        """Mark name pending; returns False if it already was."""
        if name in self._names:
            return False
        self._names.add(name)
        return True

    def discard(self, name: str) -> None:
        self._names.discard(name)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))


class StatusUpdater:
    """
    Applies court status changes through a CourtStore.

    Example:
        updater = StatusUpdater("riverside", store, dispatcher, token, statuses)
        updater.request_update("Court 1", CourtStatus.IN_USE)
        dispatcher.process_pending(timeout=1.0)
    """

    def __init__(
        self,
        complex_id: str,
        store: CourtStore,
        dispatcher: Dispatcher,
        token: CancellationToken,
        statuses: Optional[Mapping[str, CourtStatus]] = None,
        executor: Optional[Executor] = None,
        clock_ms: Callable[[], int] = epoch_millis,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the updater.

        Args:
            complex_id: Complex whose courts are updated
            store: Persistence backend
            dispatcher: Result-delivery dispatcher
            token: Session cancellation token
            statuses: Initially known status per court
            executor: Executor for store calls; a private thread pool
                is created when omitted
            clock_ms: Epoch-millisecond clock for lastUpdatedStatus
            config: Configuration dictionary
        """
        self.complex_id = complex_id
        self.store = store
        self.dispatcher = dispatcher
        self.token = token
        self.clock_ms = clock_ms
        self.config = config or {}

        self._statuses: Dict[str, CourtStatus] = dict(statuses or {})
        self.pending = PendingUpdateSet()

        self._owns_executor = executor is None
        if executor is None:
            workers = self.config.get('session', {}).get('store_workers', 2)
            executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='court-store')
        self._executor = executor

    @property
    def statuses(self) -> Dict[str, CourtStatus]:
        """Snapshot of the cached status map."""
        return dict(self._statuses)

    def cached_status(self, court_name: str) -> Optional[CourtStatus]:
        return self._statuses.get(court_name)

    def is_pending(self, court_name: str) -> bool:
        return court_name in self.pending

    def request_update(self, court_name: str, desired: CourtStatus) -> bool:
        """
        Start a status write unless one is already in flight.

        Must be called from the dispatcher thread.

        Args:
            court_name: Court to update
            desired: Status to persist

        Returns:
            True if a write was issued
        """
        if self.token.is_cancelled:
            return False
        if self._statuses.get(court_name) == desired:
            return False
        if not self.pending.add(court_name):
            logger.debug(f"Update for {court_name} already in flight")
            return False

        logger.info(f"Updating {court_name} -> {desired.value}")
        future = self._executor.submit(
            self.store.update_court_status,
            self.complex_id,
            court_name,
            desired,
            self.clock_ms()
        )
        future.add_done_callback(
            lambda f: self.dispatcher.post(self._on_complete, court_name, desired, f)
        )
        return True

    def _on_complete(self, court_name: str, desired: CourtStatus, future: Future) -> None:
        if self.token.is_cancelled:
            return

        try:
            outcome = future.result()
        except RecordNotFound as e:
            logger.error(f"Status update for {court_name} failed: {e}")
        except StatusUpdateError as e:
            logger.warning(f"Status update for {court_name} failed, will retry: {e}")
        else:
            self._statuses[court_name] = desired
            if outcome == UpdateOutcome.NO_OP:
                logger.debug(f"{court_name} was already {desired.value}")
            else:
                logger.info(f"{court_name} is now {desired.value}")
        finally:
            self.pending.discard(court_name)

    def shutdown(self) -> None:
        """Stop accepting writes; in-flight writes are not waited for."""
        if self._owns_executor:
            self._executor.shutdown(wait=False)
