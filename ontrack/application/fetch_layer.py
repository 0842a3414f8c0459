"""Session-scoped wiring of storage, credentials, caches and API clients."""

from typing import Any, Dict, Optional

import httpx

from .cache import ResourceCache
from .cached_resource import CachedResource
from ..config import Settings
from ..enums import CacheFamily, IdentityRole
from ..infrastructure.auth.credential_store import CredentialStore
from ..infrastructure.http.api_client import ApiClient, UnauthorizedHandler
from ..infrastructure.http.http_client_factory import HttpClientFactory
from ..infrastructure.http.resilience import RetryPolicy, Sleeper
from ..infrastructure.storage import DurableStore
from ..logging import info, LogRecord, LogEvent


class FetchLayer:
    """
    The fetch layer for one client session.

    Construct once, ``await init()`` (or use ``async with``), then hand the
    instance to dashboards. ``dashboard()`` resources go through the
    authenticated client with the dashboard retry policy; ``public()``
    resources go through the public client and never send a credential.
    """

    def __init__(
        self,
        settings: Settings,
        role: IdentityRole = IdentityRole.STUDENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        store: Optional[DurableStore] = None,
        on_unauthorized: Optional[UnauthorizedHandler] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Initialize the fetch layer.

        Args:
            settings: Application settings
            role: Identity whose credential authenticates dashboard requests
            transport: Optional httpx transport override
            store: Durable storage, defaults to ``settings.storage_path``
            on_unauthorized: Navigation hook invoked after a 401
            sleep: Backoff sleeper override
        """
        self.settings = settings
        self.role = role
        self.store = store or DurableStore(settings.storage_path)

        self.dashboard_policy = RetryPolicy(
            max_attempts=settings.dashboard_max_attempts,
            base_delay=settings.retry_base_delay,
            jitter=settings.retry_jitter,
        )
        self.public_policy = RetryPolicy(
            max_attempts=settings.public_max_attempts,
            base_delay=settings.retry_base_delay,
            jitter=settings.retry_jitter,
        )

        self.credentials: Dict[IdentityRole, CredentialStore] = {
            identity: CredentialStore(self.store, identity) for identity in IdentityRole
        }
        self.dashboard_cache = ResourceCache(
            self.store, CacheFamily.DASHBOARD, settings.cache_freshness_ms
        )
        self.public_cache = ResourceCache(
            self.store, CacheFamily.PUBLIC, settings.cache_freshness_ms
        )

        self.http_client = HttpClientFactory.create_client(settings, transport)
        self.public_client = ApiClient(
            self.http_client,
            api_prefix=settings.api_prefix,
            read_policy=self.public_policy,
            request_timeout=settings.request_timeout_seconds,
            sleep=sleep,
        )
        self._auth_clients: Dict[IdentityRole, ApiClient] = {
            identity: ApiClient(
                self.http_client,
                api_prefix=settings.api_prefix,
                credentials=self.credentials[identity],
                read_policy=self.dashboard_policy,
                request_timeout=settings.request_timeout_seconds,
                login_path=settings.login_path,
                on_unauthorized=on_unauthorized,
                sleep=sleep,
            )
            for identity in IdentityRole
        }
        self._initialized = False

    @property
    def auth_client(self) -> ApiClient:
        """Authenticated client for the session's identity."""
        return self._auth_clients[self.role]

    def client_for(self, role: IdentityRole) -> ApiClient:
        return self._auth_clients[role]

    async def init(self) -> None:
        """Load durable storage and the cache families."""
        if self._initialized:
            return
        await self.store.init()
        self.dashboard_cache.init()
        self.public_cache.init()
        self._initialized = True
        info(
            LogRecord(
                event=LogEvent.STORAGE_EVENT.value,
                message="Fetch layer initialized",
                data={
                    "role": str(self.role),
                    "persistent": self.store.is_persistent,
                    "dashboard_entries": len(self.dashboard_cache.keys()),
                    "public_entries": len(self.public_cache.keys()),
                },
            )
        )

    def dashboard(self, endpoint: Optional[str]) -> CachedResource:
        """Cached resource read with the session credential."""
        return CachedResource(
            endpoint,
            self.dashboard_cache,
            self.auth_client,
            policy=self.dashboard_policy,
            timeout=self.settings.request_timeout_seconds,
        )

    def public(self, endpoint: Optional[str]) -> CachedResource:
        """Cached resource read without any credential."""
        return CachedResource(
            endpoint,
            self.public_cache,
            self.public_client,
            policy=self.public_policy,
            timeout=self.settings.request_timeout_seconds,
        )

    def clear_dashboard_cache(self) -> None:
        self.dashboard_cache.clear()

    async def flush(self) -> None:
        await self.store.flush()

    async def aclose(self) -> None:
        """Flush durable storage and close the HTTP client."""
        try:
            await self.flush()
        finally:
            await HttpClientFactory.close_client(self.http_client)

    async def __aenter__(self) -> "FetchLayer":
        await self.init()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
