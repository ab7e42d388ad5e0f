"""Check OpenProject connectivity and name resolution from the command line.

Usage:
    python -m scripts.check_connection            # Probe the API entry points
    python -m scripts.check_connection --resolve  # Also resolve default type/status
"""

import asyncio
import logging
import sys

from feedback_api.config import RemoteEndpointConfig, get_settings
from feedback_api.services.http_client import create_client
from feedback_api.services.work_packages import WorkPackageService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


async def main() -> int:
    resolve = "--resolve" in sys.argv
    config = RemoteEndpointConfig.from_settings(get_settings())

    async with create_client(config) as client:
        service = WorkPackageService(config, client)
        if not service.is_configured():
            print("ERROR: OPENPROJECT_URL and OPENPROJECT_API_KEY must be set")
            return 1

        print(f"Probing {config.base_url} ...")
        probe = await service.test_connection()
        if not probe.success:
            print(f"ERROR: {probe.message}")
            return 1
        print(f"  OK via {probe.endpoint} (HTTP {probe.status_code})")

        if not resolve:
            return 0

        if config.default_project_id is None:
            print("ERROR: OPENPROJECT_PROJECT_ID is not set")
            return 1

        type_id = await service.resolver.resolve_type_id(
            config.default_project_id, config.default_type_name
        )
        status_id = await service.resolver.resolve_status_id(
            config.default_status_name
        )
        print(f"  Type   {config.default_type_name!r}: {type_id}")
        print(f"  Status {config.default_status_name!r}: {status_id}")
        if type_id is None:
            print("ERROR: default type not found; work packages cannot be created")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
