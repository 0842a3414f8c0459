"""Cached endpoint resources consumed by the dashboards."""

from typing import Any, Optional

import anyio

from .cache import ResourceCache
from ..constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from ..domain.exceptions import FetchError
from ..domain.models import ResourceState
from ..infrastructure.http.api_client import ApiClient
from ..infrastructure.http.resilience import RetryPolicy
from ..logging import debug, info, warning, LogRecord, LogEvent


class FetchTask:
    """
    Handle on one in-flight fetch.

    Every fetch runs inside the task's cancel scope and carries the generation
    it was started with; once cancelled its result is never applied.
    """

    def __init__(self, generation: int, endpoint: str):
        self.generation = generation
        self.endpoint = endpoint
        self.scope = anyio.CancelScope()
        self.done = anyio.Event()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        self.scope.cancel()

    async def wait(self) -> None:
        await self.done.wait()


class CachedResource:
    """
    Cache-first view of one backend endpoint.

    ``load()`` serves a fresh cache entry without touching the network;
    otherwise it fetches through the client, persists the result and updates
    the state. Starting a new load, changing the endpoint or closing the
    resource cancels the previous fetch, and results of superseded fetches are
    discarded. On failure the previously held value (or a stale cache entry)
    stays available alongside the error.
    """

    def __init__(
        self,
        endpoint: Optional[str],
        cache: ResourceCache,
        client: ApiClient,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ):
        """
        Initialize the resource.

        Args:
            endpoint: Endpoint key, ``None`` for a resource that must not fetch yet
            cache: Cache family the resource reads and writes
            client: Authenticated or public API client
            policy: Retry policy, defaults to the client's read policy
            timeout: Deadline for one fetch including retries
        """
        self._cache = cache
        self._client = client
        self._policy = policy
        self._timeout = timeout
        self._generation = 0
        self._current: Optional[FetchTask] = None
        self._closed = False
        self._exception: Optional[FetchError] = None
        self._reset_for(endpoint)

    def _reset_for(self, endpoint: Optional[str]) -> None:
        self._endpoint = endpoint
        self._data: Any = None
        self._error: Optional[str] = None
        self._exception = None
        self._is_from_cache = False
        self._loading = endpoint is not None

        if endpoint is None:
            return
        entry = self._cache.get(endpoint)
        if entry is not None and not entry.is_stale(
            self._cache.freshness_ms, self._cache.now()
        ):
            self._data = entry.data
            self._is_from_cache = True
            self._loading = False

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint

    @property
    def state(self) -> ResourceState:
        if self._endpoint is None:
            return ResourceState()
        return ResourceState(
            data=self._data,
            loading=self._loading,
            error=self._error,
            is_from_cache=self._is_from_cache,
        )

    @property
    def exception(self) -> Optional[FetchError]:
        """Typed error behind ``state.error``."""
        return self._exception

    @property
    def current_task(self) -> Optional[FetchTask]:
        return self._current

    def _is_current(self, task: FetchTask) -> bool:
        return (
            not task.cancelled
            and not self._closed
            and self._current is task
            and task.generation == self._generation
        )

    def _supersede(self) -> None:
        if self._current is not None and not self._current.done.is_set():
            self._current.cancel()
            debug(
                LogRecord(
                    event=LogEvent.FETCH_SUPERSEDED.value,
                    message="Superseded in-flight fetch",
                    endpoint=self._current.endpoint,
                    data={"generation": self._current.generation},
                )
            )
        self._current = None

    def set_endpoint(self, endpoint: Optional[str]) -> None:
        """Point the resource at another endpoint, cancelling any in-flight fetch."""
        if endpoint == self._endpoint:
            return
        self._supersede()
        self._generation += 1
        self._reset_for(endpoint)

    async def load(self, force: bool = False) -> ResourceState:
        """
        Run the cache-check, fetch and persist sequence for the current endpoint.

        Args:
            force: Skip the fresh-cache check and always fetch

        Returns:
            The resource state after this load settled or was superseded
        """
        endpoint = self._endpoint
        if endpoint is None or self._closed:
            return self.state

        self._supersede()
        self._generation += 1
        task = FetchTask(self._generation, endpoint)
        self._current = task

        try:
            if not force:
                entry, fresh = self._cache.lookup(endpoint)
                if fresh and entry is not None:
                    self._data = entry.data
                    self._is_from_cache = True
                    self._loading = False
                    self._error = None
                    self._exception = None
                    return self.state

            self._loading = True
            self._error = None
            self._exception = None
            await self._fetch(task)
        finally:
            task.done.set()
        return self.state

    async def _fetch(self, task: FetchTask) -> None:
        endpoint = task.endpoint
        data: Any = None
        failure: Optional[FetchError] = None

        with task.scope:
            try:
                data = await self._client.get(
                    endpoint, policy=self._policy, timeout=self._timeout
                )
            except FetchError as e:
                failure = e

            if failure is None and self._is_current(task):
                # Shielded so a later supersede cannot interrupt the write half way
                with anyio.CancelScope(shield=True):
                    await self._cache.put(endpoint, data)

        if not self._is_current(task):
            debug(
                LogRecord(
                    event=LogEvent.FETCH_SUPERSEDED.value,
                    message="Discarded result of superseded fetch",
                    endpoint=endpoint,
                    data={"generation": task.generation},
                )
            )
            return

        self._loading = False
        if failure is None:
            self._data = data
            self._is_from_cache = False
            info(
                LogRecord(
                    event=LogEvent.FETCH_SUCCESS.value,
                    message=f"Fetched {endpoint}",
                    endpoint=endpoint,
                )
            )
            return

        self._exception = failure
        self._error = failure.display_message
        if self._data is None:
            stale = self._cache.get(endpoint)
            if stale is not None:
                self._data = stale.data
                self._is_from_cache = True
        warning(
            LogRecord(
                event=LogEvent.FETCH_FAILURE.value,
                message=self._error,
                endpoint=endpoint,
                data={"status_code": failure.status_code},
            ),
            exc=failure,
        )

    async def refetch(self, force: bool = False) -> ResourceState:
        """Re-run ``load()``, superseding any fetch still in flight."""
        return await self.load(force=force)

    def close(self) -> None:
        """Cancel any in-flight fetch; later results are never applied."""
        self._supersede()
        self._closed = True

    async def __aenter__(self) -> "CachedResource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()
