"""Admin HTTP API."""

from vowsite.server.api import DomainApiHandler, error_middleware
from vowsite.server.app import DomainApiServer, create_app, run_server

__all__ = [
    "DomainApiHandler",
    "DomainApiServer",
    "create_app",
    "error_middleware",
    "run_server",
]
