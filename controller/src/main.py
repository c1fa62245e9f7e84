"""
ReleaseTrain Controller - Main entry point.
"""

import asyncio
import logging
import sys

from controller.src.bootstrap import create_release_train
from controller.src.config import get_settings
from controller.src.errors import TopologyConfigError
from controller.src.k8s.client import init_k8s_client, ensure_namespace, ensure_workspace_claim
from controller.src.services.status_reporter import StatusReporter
from controller.src.services.topology_parser import load_topology
from controller.src.worker import worker_loop

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

async def serve(train):
    if get_settings().maintenance_enabled:
        train.maintenance.start()
    try:
        await worker_loop(train.scheduler)
    finally:
        await train.maintenance.stop()
        await train.scheduler.close()

def main():
    """Main entry point."""
    settings = get_settings()

    logger.info("Starting ReleaseTrain Controller")
    logger.info(f"Topology file: {settings.topology_file}")
    logger.info(f"Redis URL: {settings.redis_url}")

    try:
        topology = load_topology(settings.topology_file)
    except TopologyConfigError as e:
        logger.error(f"Invalid release topology: {e}")
        sys.exit(1)

    if settings.build_runner == "kubernetes":
        logger.info(f"Kubernetes namespace: {settings.k8s_namespace}")
        if not init_k8s_client():
            logger.error("Failed to initialize Kubernetes client")
            sys.exit(1)

        try:
            ensure_namespace()
            ensure_workspace_claim()
        except Exception as e:
            logger.error(f"Kubernetes build environment not ready: {e}")
            sys.exit(1)

    train = create_release_train(
        settings,
        topology,
        reporter=StatusReporter.from_url(settings.database_url),
    )

    logger.info("Starting worker...")
    try:
        asyncio.run(serve(train))
    except KeyboardInterrupt:
        logger.info("Controller shutting down...")

if __name__ == "__main__":
    main()
