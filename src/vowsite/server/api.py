"""DomainApiHandler - HTTP handlers for custom domain administration."""

from __future__ import annotations

import secrets
from typing import Any

import structlog
from aiohttp import web

from vowsite.core.exceptions import VowsiteError
from vowsite.domains.service import MESSAGE_REMOVED, DomainProvisioningService
from vowsite.observability.metrics import generate_metrics, get_content_type

logger = structlog.get_logger()


def ok_response(data: Any, status: int = 200) -> web.Response:
    return web.json_response({"ok": True, "data": data}, status=status)


def error_response(code: str, status: int, message: str, retryable: bool = False) -> web.Response:
    return web.json_response(
        {"ok": False, "error": code, "message": message, "retryable": retryable},
        status=status,
    )


@web.middleware
async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Map service errors onto the JSON error envelope."""
    try:
        return await handler(request)
    except VowsiteError as e:
        log = logger.error if e.http_status >= 500 else logger.info
        log(
            "Request failed",
            method=request.method,
            path=request.path,
            code=e.code,
            error=e.message,
        )
        return error_response(e.code, e.http_status, e.user_message, e.retryable)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled error", method=request.method, path=request.path)
        return error_response("INTERNAL_ERROR", 500, VowsiteError.user_message)


class DomainApiHandler:
    """Handles HTTP requests for custom domains.

    Routes:
        GET    /weddings/{wedding_id}/custom-domain              - Domain settings
        POST   /weddings/{wedding_id}/custom-domain              - Attach a domain
        POST   /weddings/{wedding_id}/custom-domain/verify       - Run verification
        POST   /weddings/{wedding_id}/custom-domain/certificate  - Certificate issued
        DELETE /weddings/{wedding_id}/custom-domain              - Detach the domain
        GET    /site-config/domain/lookup?domain=                - Host to tenant lookup
        GET    /health                                           - Health check
        GET    /metrics                                          - Prometheus metrics

    Admin routes require a Bearer token when one is configured.
    """

    def __init__(self, service: DomainProvisioningService, admin_token: str | None = None):
        """Initialize the handler.

        Args:
            service: Domain provisioning service.
            admin_token: Required Bearer token for admin routes, None to disable.
        """
        self._service = service
        self._admin_token = admin_token

    def register_routes(self, app: web.Application) -> None:
        """Register domain routes on an aiohttp application.

        Args:
            app: The aiohttp Application to add routes to.
        """
        base = "/weddings/{wedding_id}/custom-domain"
        app.router.add_get(base, self.handle_get)
        app.router.add_post(base, self.handle_add)
        app.router.add_delete(base, self.handle_remove)
        app.router.add_post(f"{base}/verify", self.handle_verify)
        app.router.add_post(f"{base}/certificate", self.handle_certificate)
        app.router.add_get("/site-config/domain/lookup", self.handle_lookup)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/metrics", self.handle_metrics)

    def _check_auth(self, request: web.Request) -> web.Response | None:
        """Check the Bearer token.

        Returns:
            None if authorized, or an error Response if not.
        """
        if not self._admin_token:
            return None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
            # Constant-time comparison to prevent timing attacks
            if secrets.compare_digest(token.encode(), self._admin_token.encode()):
                return None

        logger.warning("Unauthorized admin request", path=request.path, remote=request.remote)
        return error_response("UNAUTHORIZED", 401, "Authentication required.")

    async def handle_get(self, request: web.Request) -> web.Response:
        if auth_error := self._check_auth(request):
            return auth_error

        overview = await self._service.get_domain(request.match_info["wedding_id"])
        data: dict[str, Any] = {
            "customDomain": overview.config.to_api_dict() if overview.config else None,
            "defaultDomainUrl": overview.default_url,
        }
        if overview.custom_url:
            data["customDomainUrl"] = overview.custom_url
        return ok_response(data)

    async def handle_add(self, request: web.Request) -> web.Response:
        if auth_error := self._check_auth(request):
            return auth_error

        try:
            body = await request.json()
        except ValueError:
            return error_response("VALIDATION_ERROR", 400, "Request body must be JSON.")

        domain = body.get("domain") if isinstance(body, dict) else None
        if not isinstance(domain, str) or not domain.strip():
            return error_response("VALIDATION_ERROR", 400, "Field 'domain' is required.")

        config, instructions = await self._service.add_domain(
            request.match_info["wedding_id"], domain
        )
        return ok_response(
            {"customDomain": config.to_api_dict(), "instructions": instructions},
            status=201,
        )

    async def handle_verify(self, request: web.Request) -> web.Response:
        if auth_error := self._check_auth(request):
            return auth_error

        config, message = await self._service.verify_domain(request.match_info["wedding_id"])
        return ok_response(
            {
                "customDomain": config.to_api_dict(),
                "message": message,
                "allRecordsVerified": config.all_records_verified,
            }
        )

    async def handle_certificate(self, request: web.Request) -> web.Response:
        """Called by the certificate issuer once the domain's certificate is live."""
        if auth_error := self._check_auth(request):
            return auth_error

        config = await self._service.confirm_certificate(request.match_info["wedding_id"])
        return ok_response({"customDomain": config.to_api_dict()})

    async def handle_remove(self, request: web.Request) -> web.Response:
        if auth_error := self._check_auth(request):
            return auth_error

        await self._service.remove_domain(request.match_info["wedding_id"])
        return ok_response({"success": True, "message": MESSAGE_REMOVED})

    async def handle_lookup(self, request: web.Request) -> web.Response:
        """Resolve a request host to the tenant whose active domain it is."""
        host = request.query.get("domain", "")
        if not host:
            return error_response("VALIDATION_ERROR", 400, "Query parameter 'domain' is required.")

        tenant_id = await self._service.lookup_tenant(host)
        if tenant_id is None:
            return error_response("DOMAIN_NOT_FOUND", 404, "No site is configured for this domain.")
        return ok_response(
            {"tenantId": tenant_id, "defaultUrl": self._service.default_url(tenant_id)}
        )

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})

    async def handle_metrics(self, request: web.Request) -> web.Response:
        return web.Response(body=generate_metrics(), headers={"Content-Type": get_content_type()})
