#!/usr/bin/env python3
"""
Infrascaler - Main Entry Point
Keeps a containerized worker fleet deployed, healthy and sized to its load
"""

import asyncio
import os
import signal
import sys
from typing import Optional

from prometheus_client import start_http_server

from infrascaler.api.server import APIServer
from infrascaler.config.settings import InfrastructureConfig
from infrascaler.core.exceptions import InfrastructureError
from infrascaler.core.logging_config import get_logger, log_separator, setup_logging
from infrascaler.core.orchestrator import InfrastructureOrchestrator

logger = get_logger(__name__)


class InfrascalerService:
    """Main service that wires the orchestrator, the HTTP API and the metrics exporter"""

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None, deploy: bool = True):
        """Initialize the service"""
        if config_path and os.path.exists(config_path):
            self.settings = InfrastructureConfig.load_from_yaml_with_env_override(config_path)
        else:
            self.settings = InfrastructureConfig()

        setup_logging(self.settings.logging, level_override=log_level)
        self.deploy = deploy
        self.orchestrator = InfrastructureOrchestrator(self.settings)
        self.api_server = APIServer(self.orchestrator, self.settings, shutdown_callback=self.request_stop)
        self._stop_event: Optional[asyncio.Event] = None

        logger.info("Infrascaler service initialized")
        logger.debug(f"Settings: {self.settings.summary()}")

    def request_stop(self):
        if self._stop_event is not None and not self._stop_event.is_set():
            logger.info("Stop requested")
            self._stop_event.set()

    async def run(self):
        """Main run loop"""
        log_separator(logger, "INFRASCALER")
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)

        start_http_server(self.settings.api.metrics_port)
        logger.info(f"Prometheus metrics server started on :{self.settings.api.metrics_port}")

        server = self.api_server.create_server(self.settings.api.host, self.settings.api.port)
        server_task = asyncio.create_task(server.serve())
        server_task.add_done_callback(lambda _: self.request_stop())

        try:
            if self.deploy:
                await self.orchestrator.deploy()
            else:
                await self.orchestrator.initialize()
            await self._stop_event.wait()
        finally:
            try:
                await self.orchestrator.shutdown()
            except InfrastructureError as e:
                logger.error(f"Error during shutdown: {e}")
            server.should_exit = True
            await asyncio.gather(server_task, return_exceptions=True)
            logger.info("Infrascaler service stopped")


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Infrascaler autoscaling orchestrator')
    parser.add_argument(
        '--config',
        default=os.getenv('CONFIG_PATH', 'config/infrascaler.yaml'),
        help='Path to configuration file'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Override the configured log level'
    )
    parser.add_argument(
        '--no-deploy',
        action='store_true',
        help='Validate and monitor only; do not deploy the service'
    )

    args = parser.parse_args()

    service = InfrascalerService(args.config, log_level=args.log_level, deploy=not args.no_deploy)
    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except InfrastructureError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
