"""Phased loading of the admin dashboard."""

from typing import Dict, Sequence, Tuple

import anyio

from .cached_resource import CachedResource
from .fetch_layer import FetchLayer
from ..constants import DASHBOARD_PHASES
from ..domain.models import DashboardSnapshot, ResourceState
from ..logging import info, LogRecord, LogEvent

Phase = Sequence[Tuple[str, bool]]


class AdminDashboard:
    """
    Loads the admin dashboard metrics in phases.

    Core totals load first, secondary totals next and the detailed breakdowns
    last. Endpoints within a phase load concurrently; a phase starts only
    after every resource of the previous phase has settled, whether it
    succeeded or failed.
    """

    def __init__(
        self,
        layer: FetchLayer,
        phases: Sequence[Phase] = DASHBOARD_PHASES,
    ):
        self._layer = layer
        self._phases = phases
        self._resources: Dict[str, CachedResource] = {}
        self.phases_completed = 0

    def _resource(self, endpoint: str, public: bool) -> CachedResource:
        resource = self._resources.get(endpoint)
        if resource is None:
            resource = (
                self._layer.public(endpoint)
                if public
                else self._layer.dashboard(endpoint)
            )
            self._resources[endpoint] = resource
        return resource

    async def _load_phase(self, index: int, phase: Phase, force: bool) -> None:
        resources = [self._resource(endpoint, public) for endpoint, public in phase]
        async with anyio.create_task_group() as tg:
            for resource in resources:
                tg.start_soon(resource.load, force)

        failed = [r.endpoint for r in resources if r.state.error is not None]
        info(
            LogRecord(
                event=LogEvent.DASHBOARD_PHASE.value,
                message=f"Dashboard phase {index + 1} settled",
                data={"endpoints": len(resources), "failed": failed},
            )
        )

    async def load(self, force: bool = False) -> DashboardSnapshot:
        """
        Load every phase in order.

        Args:
            force: Bypass fresh cache entries

        Returns:
            Per-endpoint states after the last phase settled
        """
        self.phases_completed = 0
        for index, phase in enumerate(self._phases):
            await self._load_phase(index, phase, force)
            self.phases_completed = index + 1
        return self.snapshot()

    async def refresh(self) -> DashboardSnapshot:
        """Drop the dashboard cache and reload everything from the backend."""
        self._layer.clear_dashboard_cache()
        return await self.load(force=True)

    def snapshot(self) -> DashboardSnapshot:
        states: Dict[str, ResourceState] = {}
        for phase in self._phases:
            for endpoint, _ in phase:
                resource = self._resources.get(endpoint)
                # Phases not reached yet are reported as deferred, not loading
                states[endpoint] = resource.state if resource else ResourceState()
        return DashboardSnapshot(
            resources=states, phases_completed=self.phases_completed
        )

    def close(self) -> None:
        for resource in self._resources.values():
            resource.close()
