"""Uniform CRUD calls for the backend entity routers."""

from typing import Any, Dict, Optional
from urllib.parse import quote

from ...constants import ENTITIES_WITH_TOTAL, ENTITY_ROUTES
from ...enums import Entity
from .api_client import ApiClient
from .resilience import NO_RETRY


class EntityAPI:
    """
    List, fetch, create, update and delete records of one entity.

    Each router mounts at ``/<entity>``; creation goes to the router's own
    create path and updates use the verb that router accepts. Reads retry per
    the client's read policy, writes are sent exactly once.
    """

    def __init__(self, client: ApiClient, entity: Entity):
        self._client = client
        self.entity = entity
        self.create_suffix, self.update_method = ENTITY_ROUTES[entity]

    @property
    def base_path(self) -> str:
        return f"/{self.entity.value}"

    def _item_path(self, item_id: str) -> str:
        if not item_id:
            raise ValueError(f"{self.entity.value}: an id is required")
        return f"{self.base_path}/{quote(str(item_id), safe='')}"

    async def list(self, params: Optional[Dict[str, str]] = None) -> Any:
        path = self.base_path
        if params:
            query = "&".join(
                f"{quote(str(k), safe='')}={quote(str(v), safe='')}"
                for k, v in params.items()
            )
            path = f"{path}?{query}"
        return await self._client.get(path)

    async def get(self, item_id: str) -> Any:
        return await self._client.get(self._item_path(item_id))

    async def create(self, body: Dict[str, Any]) -> Any:
        return await self._client.post(
            f"{self.base_path}{self.create_suffix}", body, policy=NO_RETRY
        )

    async def update(self, item_id: str, body: Dict[str, Any]) -> Any:
        return await self._client.request(
            self.update_method, self._item_path(item_id), body=body, policy=NO_RETRY
        )

    async def delete(self, item_id: str) -> Any:
        return await self._client.delete(self._item_path(item_id), policy=NO_RETRY)

    async def total(self) -> Any:
        if self.entity not in ENTITIES_WITH_TOTAL:
            raise ValueError(f"{self.entity.value} has no total endpoint")
        return await self._client.get(f"{self.base_path}/total")
