"""aiohttp application for the custom domain admin API."""

from __future__ import annotations

import asyncio

import structlog
from aiohttp import web

from vowsite.core.config import VowsiteConfig
from vowsite.domains.service import DomainProvisioningService
from vowsite.server.api import DomainApiHandler, error_middleware

logger = structlog.get_logger()


def create_app(
    service: DomainProvisioningService, admin_token: str | None = None
) -> web.Application:
    """Build the application with all domain routes registered."""
    app = web.Application(middlewares=[error_middleware], client_max_size=64 * 1024)
    handler = DomainApiHandler(service, admin_token=admin_token)
    handler.register_routes(app)
    return app


class DomainApiServer:
    """Runs the admin API on a TCP socket."""

    def __init__(self, config: VowsiteConfig, service: DomainProvisioningService | None = None):
        self.config = config
        self.service = service or DomainProvisioningService.from_config(config)
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        app = create_app(self.service, admin_token=self.config.server_admin_token)
        self._runner = web.AppRunner(app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.config.server_host, self.config.server_port)
        await site.start()
        if not self.config.server_admin_token:
            logger.warning("Admin API is running without authentication")
        logger.info(
            "Domain API started",
            host=self.config.server_host,
            port=self.config.server_port,
            environment=self.config.environment,
        )

    async def stop(self) -> None:
        logger.info("Stopping domain API...")
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Domain API stopped")


async def run_server(config: VowsiteConfig) -> None:
    """Run the admin API until cancelled."""
    server = DomainApiServer(config)
    try:
        await server.start()
        await asyncio.Event().wait()
    finally:
        await server.stop()
