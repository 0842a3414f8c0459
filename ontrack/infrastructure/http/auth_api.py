"""
Authentication endpoints and per-identity content endpoints.
Login stores the issued credential; logout and revoked sessions clear it.
"""

import time
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ...constants import ADMIN_LOGIN_PATH, LOGIN_PATHS, PROFILE_PATHS, VERIFY_TOKEN_PATH
from ...domain.exceptions import (
    HTTPResponseError,
    NetworkError,
    RequestTimeoutError,
    StorageError,
)
from ...domain.models import LoginResponse, VerifyResult
from ...enums import IdentityRole
from ...logging import info, warning, LogRecord, LogEvent
from ..auth.credential_store import CredentialStore
from .api_client import ApiClient
from .resilience import NO_RETRY


def decode_token_payload(token: str) -> Optional[Dict[str, Any]]:
    """Read the claims of a JWT without verifying its signature."""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


class AuthAPI:
    """Login, verification and profile calls for one identity role."""

    role: IdentityRole = IdentityRole.STUDENT
    login_field = "username"

    def __init__(self, client: ApiClient, public_client: ApiClient):
        """
        Initialize the API.

        Args:
            client: Authenticated client bound to this role's credential store
            public_client: Credential-free client used for login
        """
        if client.credentials is None:
            raise ValueError("AuthAPI requires an authenticated client")
        if client.credentials.role != self.role:
            raise ValueError(
                f"{type(self).__name__} needs a {self.role} client, got {client.credentials.role}"
            )
        self._client = client
        self._public = public_client
        self.credentials: CredentialStore = client.credentials

    async def _persist(self) -> None:
        try:
            await self.credentials.persist()
        except StorageError as e:
            warning(
                LogRecord(
                    event=LogEvent.STORAGE_EVENT.value,
                    message=f"Could not persist {self.role} credential",
                ),
                exc=e,
            )

    async def _login(self, path: str, identifier: str, password: str) -> LoginResponse:
        # Never carry a previous session into a new login
        self.credentials.clear()
        data = await self._public.post(
            path, {self.login_field: identifier, "password": password}, policy=NO_RETRY
        )
        response = LoginResponse.model_validate(data or {})
        if response.token:
            self.credentials.save(response.token, response.user)
            info(
                LogRecord(
                    event=LogEvent.AUTH_EVENT.value,
                    message=f"{self.role} login succeeded",
                    endpoint=path,
                )
            )
        await self._persist()
        return response

    async def login(self, identifier: str, password: str) -> LoginResponse:
        """
        Log in and store the issued credential.

        Raises:
            ClientError: Rejected credentials, with the server message
        """
        return await self._login(LOGIN_PATHS[self.role], identifier, password)

    async def verify_token(self) -> VerifyResult:
        """
        Confirm the stored credential with the backend.

        When the backend cannot be reached the token payload is decoded
        locally and only its expiry is checked.
        """
        token = self.credentials.get_token()
        if token is None:
            return VerifyResult(success=False, message="No token")

        try:
            data = await self._client.get(VERIFY_TOKEN_PATH, policy=NO_RETRY)
        except (NetworkError, RequestTimeoutError):
            return await self._verify_locally(token)
        except HTTPResponseError as e:
            return VerifyResult(
                success=False, message=e.message or "Server verification failed"
            )

        if isinstance(data, dict) and data.get("success"):
            user = data.get("user")
            if isinstance(user, dict):
                self.credentials.set_user(user)
                await self._persist()
            return VerifyResult(success=True, user=user if isinstance(user, dict) else None)
        return VerifyResult(success=False, message="Invalid token")

    async def _verify_locally(self, token: str) -> VerifyResult:
        if len(token.split(".")) != 3:
            return VerifyResult(success=False, message="Invalid token format")

        payload = decode_token_payload(token)
        if payload is None:
            self.credentials.clear()
            await self._persist()
            return VerifyResult(success=False, message="Token verification failed")

        exp = payload.get("exp")
        if isinstance(exp, (int, float)) and exp < int(time.time()):
            self.credentials.clear()
            await self._persist()
            return VerifyResult(success=False, message="Token expired")

        return VerifyResult(success=True, user=self.credentials.get_user() or payload)

    async def get_profile(self) -> Any:
        return await self._client.get(PROFILE_PATHS[self.role])

    async def logout(self) -> None:
        self.credentials.clear()
        await self._persist()

    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated()


class StudentAuthAPI(AuthAPI):
    """Student and admin session, plus the student's own content."""

    role = IdentityRole.STUDENT

    async def admin_login(self, username: str, password: str) -> LoginResponse:
        return await self._login(ADMIN_LOGIN_PATH, username, password)

    async def get_tasks(self) -> Any:
        return await self._client.get("/assessments/tasks")

    async def get_modules(self) -> Any:
        return await self._client.get("/assessments/modules")

    async def get_assignments(self) -> Any:
        return await self._client.get("/assessments/assignments")

    async def get_projects(self) -> Any:
        return await self._client.get("/assessments/projects")

    async def get_resources(self) -> Any:
        return await self._client.get("/assessments/resources")

    async def get_assessments(self) -> Any:
        return await self._client.get("/assessments")

    async def get_assigned_mentor(self) -> Any:
        return await self._client.get("/mentorstudentassignment/student")

    async def get_all_mentors(self) -> Any:
        return await self._public.get("/onboardmentors")

    async def get_help_requests(self) -> Any:
        return await self._client.get("/help-requests")

    async def create_help_request(self, help_request: Dict[str, Any]) -> Any:
        return await self._client.post("/help-requests", help_request)


class MentorAuthAPI(AuthAPI):
    """Mentor session and the mentor's assigned students."""

    role = IdentityRole.MENTOR
    login_field = "email"

    async def get_assigned_students(self) -> Any:
        return await self._client.get("/mentorstudentassignment/mentor")

