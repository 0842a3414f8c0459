"""Tests for login, verification and per-identity content calls."""

import json
import time

import httpx
import pytest
import respx
from jose import jwt

from ontrack.domain.exceptions import ClientError, UnauthenticatedError
from ontrack.enums import IdentityRole
from ontrack.infrastructure.auth.credential_store import CredentialStore
from ontrack.infrastructure.http.api_client import ApiClient
from ontrack.infrastructure.http.auth_api import (
    MentorAuthAPI,
    StudentAuthAPI,
    decode_token_payload,
)
from ontrack.infrastructure.storage import DurableStore

BASE_URL = "http://ontrack.test"


def make_jwt(payload: dict) -> str:
    return jwt.encode(payload, "test-secret", algorithm="HS256")


@pytest.fixture
def student_api(auth_client: ApiClient, public_client: ApiClient) -> StudentAuthAPI:
    return StudentAuthAPI(auth_client, public_client)


@pytest.fixture
def mentor_credentials(store: DurableStore) -> CredentialStore:
    return CredentialStore(store, IdentityRole.MENTOR)


@pytest.fixture
def mentor_api(
    http_client: httpx.AsyncClient,
    mentor_credentials: CredentialStore,
    public_client: ApiClient,
) -> MentorAuthAPI:
    client = ApiClient(http_client, credentials=mentor_credentials)
    return MentorAuthAPI(client, public_client)


def request_json(route: respx.Route) -> dict:
    return json.loads(route.calls.last.request.content)


class TestDecodeTokenPayload:
    def test_decodes_payload(self) -> None:
        assert decode_token_payload(make_jwt({"id": "u1", "exp": 10})) == {
            "id": "u1",
            "exp": 10,
        }

    @pytest.mark.parametrize("token", ["abc", "a.b", "a.!!!.c", "a.bnVsbA.c"])
    def test_rejects_malformed_tokens(self, token: str) -> None:
        assert decode_token_payload(token) is None


class TestLogin:
    """Test cases for login and logout."""

    @pytest.mark.anyio
    async def test_student_login_stores_credential(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        route = respx_mock.post(f"{BASE_URL}/api/onboardstudents/login").mock(
            return_value=httpx.Response(
                200, json={"token": "fresh", "user": {"id": "s2"}, "message": "ok"}
            )
        )

        response = await student_api.login("ada", "secret")

        assert response.token == "fresh"
        assert request_json(route) == {"username": "ada", "password": "secret"}
        assert "Authorization" not in route.calls.last.request.headers
        assert student_credentials.get_token() == "fresh"
        assert student_credentials.get_user() == {"id": "s2"}
        assert student_api.is_authenticated()

    @pytest.mark.anyio
    async def test_rejected_login_leaves_no_credential(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        sleeps: list,
        respx_mock: respx.MockRouter,
    ) -> None:
        route = respx_mock.post(f"{BASE_URL}/api/onboardstudents/login").mock(
            return_value=httpx.Response(401, json={"message": "Invalid credentials"})
        )

        with pytest.raises(ClientError) as exc_info:
            await student_api.login("ada", "wrong")

        assert exc_info.value.message == "Invalid credentials"
        assert route.call_count == 1
        assert sleeps == []
        assert student_credentials.get_token() is None

    @pytest.mark.anyio
    async def test_admin_login_shares_student_namespace(
        self,
        student_api: StudentAuthAPI,
        store: DurableStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        respx_mock.post(f"{BASE_URL}/api/adminlogin/adminlogin").mock(
            return_value=httpx.Response(
                200, json={"token": "admin", "user": {"role": "admin"}}
            )
        )

        await student_api.admin_login("root", "pw")

        assert store.get_item("authToken") == "admin"

    @pytest.mark.anyio
    async def test_mentor_login_uses_email(
        self,
        mentor_api: MentorAuthAPI,
        mentor_credentials: CredentialStore,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        route = respx_mock.post(f"{BASE_URL}/api/onboardmentors/login").mock(
            return_value=httpx.Response(200, json={"token": "m", "user": {"id": "m1"}})
        )

        await mentor_api.login("grace@example.com", "pw")

        assert request_json(route) == {"email": "grace@example.com", "password": "pw"}
        assert mentor_credentials.get_token() == "m"
        assert student_credentials.get_token() == "test-token"

    @pytest.mark.anyio
    async def test_logout(
        self, student_api: StudentAuthAPI, student_credentials: CredentialStore
    ) -> None:
        await student_api.logout()

        assert student_credentials.get_token() is None
        assert not student_api.is_authenticated()

    @pytest.mark.anyio
    async def test_client_role_must_match(
        self, auth_client: ApiClient, public_client: ApiClient
    ) -> None:
        with pytest.raises(ValueError):
            MentorAuthAPI(auth_client, public_client)
        with pytest.raises(ValueError):
            StudentAuthAPI(public_client, public_client)


class TestVerifyToken:
    """Test cases for token verification."""

    @pytest.mark.anyio
    async def test_without_token(
        self, student_api: StudentAuthAPI, student_credentials: CredentialStore
    ) -> None:
        student_credentials.clear()

        result = await student_api.verify_token()

        assert not result.success
        assert result.message == "No token"

    @pytest.mark.anyio
    async def test_server_confirms_and_refreshes_profile(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        respx_mock.get(f"{BASE_URL}/api/adminlogin/verify").mock(
            return_value=httpx.Response(
                200, json={"success": True, "user": {"id": "u1", "name": "Ada L."}}
            )
        )

        result = await student_api.verify_token()

        assert result.success
        assert student_credentials.get_user() == {"id": "u1", "name": "Ada L."}

    @pytest.mark.anyio
    async def test_server_rejects(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        respx_mock.get(f"{BASE_URL}/api/adminlogin/verify").mock(
            return_value=httpx.Response(401, json={"message": "Invalid token"})
        )

        result = await student_api.verify_token()

        assert not result.success
        assert result.message == "Invalid token"
        assert student_credentials.get_token() is None

    @pytest.mark.anyio
    async def test_offline_fallback_accepts_unexpired_token(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        student_credentials.set_token(make_jwt({"id": "u1", "exp": int(time.time()) + 3600}))
        route = respx_mock.get(f"{BASE_URL}/api/adminlogin/verify").mock(
            side_effect=httpx.ConnectError
        )

        result = await student_api.verify_token()

        assert route.call_count == 1
        assert result.success
        assert result.user == {"id": "u1", "name": "Ada"}

    @pytest.mark.anyio
    async def test_offline_fallback_clears_expired_token(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        student_credentials.set_token(make_jwt({"id": "u1", "exp": int(time.time()) - 10}))
        respx_mock.get(f"{BASE_URL}/api/adminlogin/verify").mock(
            side_effect=httpx.ConnectError
        )

        result = await student_api.verify_token()

        assert not result.success
        assert result.message == "Token expired"
        assert student_credentials.get_token() is None

    @pytest.mark.anyio
    async def test_offline_fallback_with_opaque_token(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        respx_mock.get(f"{BASE_URL}/api/adminlogin/verify").mock(
            side_effect=httpx.ConnectError
        )

        result = await student_api.verify_token()

        assert not result.success
        assert result.message == "Invalid token format"
        assert student_credentials.get_token() == "test-token"

    @pytest.mark.anyio
    async def test_offline_fallback_clears_undecodable_token(
        self,
        student_api: StudentAuthAPI,
        student_credentials: CredentialStore,
        respx_mock: respx.MockRouter,
    ) -> None:
        student_credentials.set_token("header.!!!.signature")
        respx_mock.get(f"{BASE_URL}/api/adminlogin/verify").mock(
            side_effect=httpx.ConnectError
        )

        result = await student_api.verify_token()

        assert not result.success
        assert result.message == "Token verification failed"
        assert student_credentials.get_token() is None


class TestContentCalls:
    @pytest.mark.anyio
    async def test_student_content_is_authenticated(
        self, student_api: StudentAuthAPI, respx_mock: respx.MockRouter
    ) -> None:
        route = respx_mock.get(f"{BASE_URL}/api/assessments/tasks").mock(
            return_value=httpx.Response(200, json=[{"id": "t1"}])
        )

        assert await student_api.get_tasks() == [{"id": "t1"}]
        assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.anyio
    async def test_mentor_directory_is_public(
        self, student_api: StudentAuthAPI, respx_mock: respx.MockRouter
    ) -> None:
        route = respx_mock.get(f"{BASE_URL}/api/onboardmentors").mock(
            return_value=httpx.Response(200, json=[])
        )

        await student_api.get_all_mentors()

        assert "Authorization" not in route.calls.last.request.headers

    @pytest.mark.anyio
    async def test_mentor_requires_own_credential(self, mentor_api: MentorAuthAPI) -> None:
        with pytest.raises(UnauthenticatedError):
            await mentor_api.get_assigned_students()
