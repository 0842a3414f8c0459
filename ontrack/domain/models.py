from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class LoginResponse(BaseModel):
    """Payload returned by the login endpoints.

    Attributes:
        token (Optional[str]): Bearer credential issued by the backend.
        user (Optional[Dict[str, Any]]): Profile of the authenticated identity.
        message (Optional[str]): Server-provided status message.
    """

    model_config = ConfigDict(extra="allow")

    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class VerifyResult(BaseModel):
    """Outcome of a credential verification.

    Attributes:
        success (bool): Whether the stored credential is usable.
        user (Optional[Dict[str, Any]]): Profile confirmed by the server or decoded locally.
        message (Optional[str]): Reason when verification failed.
    """

    success: bool
    user: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class ResourceState(BaseModel):
    """Snapshot of a cached resource as seen by a dashboard consumer.

    ``error`` being set means ``data`` may be outdated rather than absent.

    Attributes:
        data (Any): Last successfully fetched or cached JSON value.
        loading (bool): A fetch is in flight and no fresh cached value exists.
        error (Optional[str]): Human-readable classification of the last failure.
        is_from_cache (bool): ``data`` came from the durable cache.
    """

    model_config = ConfigDict(frozen=True)

    data: Any = None
    loading: bool = False
    error: Optional[str] = None
    is_from_cache: bool = False


class DashboardSnapshot(BaseModel):
    """Per-endpoint states collected by the phased dashboard loader."""

    resources: Dict[str, ResourceState] = Field(default_factory=dict)
    phases_completed: int = 0

    @property
    def errors(self) -> Dict[str, str]:
        return {
            endpoint: state.error
            for endpoint, state in self.resources.items()
            if state.error is not None
        }
