"""
Backend API client.
Attaches bearer credentials, enforces the request deadline, runs the retrier
and reacts to authentication failures.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Union

import anyio
import httpx

from ...constants import ACCESS_DENIED_FLAG
from ...domain.exceptions import (
    AccessRevokedError,
    ClientError,
    RequestTimeoutError,
    SessionExpiredError,
    StorageError,
    UnauthenticatedError,
)
from ...logging import debug, warning, LogRecord, LogEvent
from ..auth.credential_store import CredentialStore
from .resilience import NO_RETRY, PUBLIC_POLICY, BackoffRetrier, RetryPolicy, Sleeper

UnauthorizedHandler = Callable[[str], Union[None, Awaitable[None]]]

_UNSET: Any = object()


class ApiClient:
    """
    Client for the OnTrack REST backend.

    With a ``credentials`` store the client is authenticated: it fails fast
    when no token is stored, sends ``Authorization: Bearer <token>`` and clears
    the credential on a revoked-access 403 or any 401. Without one it is a
    public client and never attaches credentials.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_prefix: str = "/api",
        credentials: Optional[CredentialStore] = None,
        read_policy: RetryPolicy = PUBLIC_POLICY,
        request_timeout: Optional[float] = None,
        login_path: str = "/login",
        on_unauthorized: Optional[UnauthorizedHandler] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Initialize the client.

        Args:
            http_client: Shared httpx client with the backend base URL
            api_prefix: Prefix prepended to endpoint paths
            credentials: Credential store for authenticated clients
            read_policy: Retry policy for GET requests; other verbs never retry
            request_timeout: Deadline in seconds for one logical request
            login_path: Login entry point handed to ``on_unauthorized``
            on_unauthorized: Navigation hook invoked after a 401
            sleep: Backoff sleeper override
        """
        self._http = http_client
        self.api_prefix = api_prefix.rstrip("/")
        self.credentials = credentials
        self.read_policy = read_policy
        self.request_timeout = request_timeout
        self.login_path = login_path
        self._on_unauthorized = on_unauthorized
        self._sleep = sleep or anyio.sleep

    @property
    def requires_auth(self) -> bool:
        return self.credentials is not None

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        if self.api_prefix and path.startswith(f"{self.api_prefix}/"):
            return path
        return f"{self.api_prefix}{path}"

    def policy_for(self, method: str) -> RetryPolicy:
        return self.read_policy if method == "GET" else NO_RETRY

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = _UNSET,
    ) -> Any:
        """
        Perform one logical request and return its parsed JSON body.

        Args:
            method: HTTP verb
            path: Endpoint path, with or without the API prefix
            body: JSON-serializable request body
            headers: Header overrides, applied last
            policy: Retry policy; defaults to ``policy_for(method)``
            timeout: Deadline override; ``None`` disables it

        Returns:
            Parsed JSON (or text for non-JSON bodies, ``None`` when empty)

        Raises:
            UnauthenticatedError: No stored token on an authenticated client
            AccessRevokedError: 403 with the access-denied flag
            SessionExpiredError: 401 on an authenticated client
            RequestTimeoutError: Deadline elapsed
            ClientError, ServerError, NetworkError: As classified by the retrier
        """
        method = method.upper()
        request_headers: Dict[str, str] = {}

        # Read once per logical request so every attempt resends the same token
        if self.credentials is not None:
            token = self.credentials.get_token()
            if token is None:
                raise UnauthenticatedError(endpoint=path)
            request_headers["Authorization"] = f"Bearer {token}"
        request_headers["Content-Type"] = "application/json"
        if headers:
            request_headers.update(headers)

        url = self.url_for(path)

        async def operation() -> httpx.Response:
            return await self._http.request(
                method,
                url,
                json=body,
                headers=request_headers,
            )

        retrier = BackoffRetrier(policy or self.policy_for(method), self._sleep)
        deadline = self.request_timeout if timeout is _UNSET else timeout

        debug(
            LogRecord(
                event=LogEvent.FETCH_START.value,
                message=f"{method} {url}",
                endpoint=path,
                data={"authenticated": self.requires_auth},
            )
        )
        try:
            if deadline is None:
                response = await retrier.execute(operation, endpoint=path)
            else:
                with anyio.fail_after(deadline):
                    response = await retrier.execute(operation, endpoint=path)
        except TimeoutError as e:
            raise RequestTimeoutError(timeout_seconds=deadline, endpoint=path) from e
        except ClientError as e:
            await self._handle_client_error(e, path)
            raise

        return self._parse(response)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, body=body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, body=body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    @staticmethod
    def _parse(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _handle_client_error(self, exc: ClientError, path: str) -> None:
        """Clear credentials on revoked access or expired sessions, re-raising as typed errors."""
        if self.credentials is None:
            return

        if exc.status_code == 403 and isinstance(exc.body, dict) and exc.body.get(
            ACCESS_DENIED_FLAG
        ):
            self.credentials.clear()
            await self._persist_credentials()
            warning(
                LogRecord(
                    event=LogEvent.AUTH_EVENT.value,
                    message="Access revoked by server, credential cleared",
                    endpoint=path,
                )
            )
            raise AccessRevokedError(endpoint=path, body=exc.body) from exc

        if exc.status_code == 401:
            self.credentials.clear()
            await self._persist_credentials()
            warning(
                LogRecord(
                    event=LogEvent.AUTH_EVENT.value,
                    message=f"Session expired, redirecting to {self.login_path}",
                    endpoint=path,
                )
            )
            if self._on_unauthorized is not None:
                result = self._on_unauthorized(self.login_path)
                if result is not None:
                    await result
            raise SessionExpiredError(exc.message, endpoint=path, body=exc.body) from exc

    async def _persist_credentials(self) -> None:
        assert self.credentials is not None
        try:
            await self.credentials.persist()
        except StorageError as e:
            warning(
                LogRecord(
                    event=LogEvent.STORAGE_EVENT.value,
                    message="Could not persist cleared credential",
                ),
                exc=e,
            )
