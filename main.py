import sys

import anyio
from dotenv import load_dotenv

from ontrack.application.dashboard import AdminDashboard
from ontrack.application.fetch_layer import FetchLayer
from ontrack.config import Settings, ConfigurationError
from ontrack.domain.models import DashboardSnapshot
from ontrack.logging import init_logging, shutdown_logging

load_dotenv()

try:
    settings = Settings()
except ConfigurationError as e:
    print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"\nUnexpected error during configuration: {e}", file=sys.stderr)
    sys.exit(1)


async def load_dashboard() -> DashboardSnapshot:
    async with FetchLayer(settings) as layer:
        dashboard = AdminDashboard(layer)
        try:
            return await dashboard.load()
        finally:
            dashboard.close()


if __name__ == "__main__":
    init_logging(settings)
    try:
        snapshot = anyio.run(load_dashboard)
        print(snapshot.model_dump_json(indent=2))
    finally:
        shutdown_logging()
