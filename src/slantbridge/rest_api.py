"""slantbridge REST API -- exposes the order orchestrator over HTTP via FastAPI.

Routes mirror the storefront backend that consumes the proxy::

    POST   /api/slant3d/upload                    {"modelUrl": "..."}
    POST   /api/slant3d/pricing/estimate          {"modelUrl": "...", "options": {...}}
    POST   /api/slant3d/order                     {"modelUrl": "...", "options": {...}, "customerData": {...}}
    POST   /api/slant3d/shipping/estimate         {"modelUrl": "...", "options": {...}, "customerData": {...}}
    GET    /api/slant3d/order/{order_id}/tracking
    GET    /api/slant3d/orders
    DELETE /api/slant3d/order/{order_id}
    GET    /api/health

Every response uses the same envelope::

    {"success": true, "data": {...}}
    {"success": false, "error": "<message>", "code": "<kind>"}

FastAPI and uvicorn are optional dependencies.  Install them with::

    pip install slantbridge[rest]
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from starlette.requests import Request  # module-level so PEP 563 deferred annotations resolve

from slantbridge import __version__, parse_float_env, parse_int_env
from slantbridge.deadline import Deadline
from slantbridge.errors import ClassifiedError, ValidationError
from slantbridge.orchestrator import OrderOrchestrator, get_orchestrator

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

API_PREFIX = "/api/slant3d"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _cors_origins_from_env() -> list[str]:
    raw = os.environ.get("SLANTBRIDGE_CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class RestApiConfig:
    """Configuration for the REST API server."""

    host: str = field(default_factory=lambda: os.environ.get("SLANTBRIDGE_REST_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: parse_int_env("SLANTBRIDGE_REST_PORT", 8430))
    cors_origins: list[str] = field(default_factory=_cors_origins_from_env)
    # Upper bound on one inbound request, probes and provider call included.
    request_timeout: float = field(default_factory=lambda: parse_float_env("SLANTBRIDGE_REQUEST_TIMEOUT", 60.0))


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _body_field(body: dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in body:
            return body[name]
    return None


async def _in_thread(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking orchestrator call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError(f"Invalid JSON body: {exc}") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    config: RestApiConfig | None = None,
    orchestrator: OrderOrchestrator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    .. note:: Loads ``.env`` from the working directory and
       ``~/.slantbridge/.env`` so that ``SLANT3D_API_KEY`` is available
       without manual export.

    Args:
        config: Server configuration.  Defaults to :class:`RestApiConfig`.
        orchestrator: Orchestrator to serve.  Defaults to the process-wide
            instance from :func:`~slantbridge.orchestrator.get_orchestrator`,
            resolved on first request.
    """
    from dotenv import load_dotenv

    load_dotenv()
    load_dotenv(Path.home() / ".slantbridge" / ".env")

    try:
        from fastapi import FastAPI
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI is required for the REST API. Install it with: pip install slantbridge[rest]"
        ) from None

    if config is None:
        config = RestApiConfig()

    app = FastAPI(
        title="slantbridge REST API",
        description="Fulfillment order proxy for the Slant3D print-on-demand API",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _orch() -> OrderOrchestrator:
        return orchestrator if orchestrator is not None else get_orchestrator()

    def _deadline() -> Deadline:
        return Deadline.after(config.request_timeout)

    def _ok(data: Any) -> JSONResponse:
        return JSONResponse({"success": True, "data": data})

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            {"success": False, "error": exc.message, "code": exc.code},
            status_code=exc.http_status,
        )

    @app.exception_handler(ClassifiedError)
    async def _classified_error(request: Request, exc: ClassifiedError):
        logger.error(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.kind.value,
            exc.cause,
        )
        return JSONResponse(
            {"success": False, "error": exc.message, "code": exc.kind.value},
            status_code=exc.http_status,
        )

    # ----- Health check ---------------------------------------------------

    @app.get("/api/health")
    async def health():
        """Server health check."""
        return {"status": "ok", "version": __version__, "configured": _orch().config.is_configured}

    # ----- Model upload ---------------------------------------------------

    @app.post(f"{API_PREFIX}/upload")
    async def upload_model(request: Request):
        deadline = _deadline()
        body = await _json_body(request)
        orch = _orch()
        result = await _in_thread(orch.register_model, _body_field(body, "modelUrl", "model_url"), deadline=deadline)
        return _ok(result)

    # ----- Pricing --------------------------------------------------------

    @app.post(f"{API_PREFIX}/pricing/estimate")
    async def pricing_estimate(request: Request):
        deadline = _deadline()
        body = await _json_body(request)
        orch = _orch()
        result = await _in_thread(
            orch.estimate_pricing,
            _body_field(body, "modelUrl", "model_url"),
            body.get("options") or {},
            deadline=deadline,
        )
        return _ok(result)

    # ----- Orders ---------------------------------------------------------

    @app.post(f"{API_PREFIX}/order")
    async def create_order(request: Request):
        deadline = _deadline()
        body = await _json_body(request)
        orch = _orch()
        result = await _in_thread(
            orch.create_order,
            _body_field(body, "modelUrl", "model_url"),
            body.get("options") or {},
            _body_field(body, "customerData", "customer_data") or {},
            deadline=deadline,
        )
        return _ok(result)

    @app.post(f"{API_PREFIX}/shipping/estimate")
    async def shipping_estimate(request: Request):
        deadline = _deadline()
        body = await _json_body(request)
        orch = _orch()
        result = await _in_thread(
            orch.estimate_shipping,
            _body_field(body, "modelUrl", "model_url"),
            body.get("options") or {},
            _body_field(body, "customerData", "customer_data") or {},
            deadline=deadline,
        )
        return _ok(result)

    @app.get(f"{API_PREFIX}/order/{{order_id}}/tracking")
    async def order_tracking(order_id: str):
        deadline = _deadline()
        return _ok(await _in_thread(_orch().get_tracking, order_id, deadline=deadline))

    @app.get(f"{API_PREFIX}/orders")
    async def list_orders():
        deadline = _deadline()
        return _ok(await _in_thread(_orch().list_orders, deadline=deadline))

    @app.delete(f"{API_PREFIX}/order/{{order_id}}")
    async def cancel_order(order_id: str):
        deadline = _deadline()
        return _ok(await _in_thread(_orch().cancel_order, order_id, deadline=deadline))

    return app


# ---------------------------------------------------------------------------
# Server runner
# ---------------------------------------------------------------------------


def run_rest_server(
    config: RestApiConfig | None = None,
    orchestrator: OrderOrchestrator | None = None,
) -> None:
    """Start the REST API server (blocking).

    Creates the FastAPI application and runs it with uvicorn.
    """
    try:
        import uvicorn
    except ImportError:
        raise ImportError(
            "Uvicorn is required to run the REST server. Install with: pip install slantbridge[rest]"
        ) from None

    if config is None:
        config = RestApiConfig()

    if orchestrator is None:
        orchestrator = get_orchestrator()
    app = create_app(config, orchestrator)

    if not orchestrator.config.is_configured:
        logger.warning("SLANT3D_API_KEY is not set; provider calls will fail with 503")

    logger.info("Starting slantbridge REST API on %s:%d", config.host, config.port)
    logger.debug("Proxy configuration: %s", orchestrator.config.to_dict())
    uvicorn.run(app, host=config.host, port=config.port)
