"""Plain HTTP/JSON routes mounted on the FastMCP server.

These mirror the MCP tools for clients that speak HTTP only (the web
dashboard, data buyers). Status codes come from the domain error taxonomy.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from pulsenet.core.errors import PulseNetError, ValidationError
from pulsenet.domains.health.domain_logic.service import error_body

if TYPE_CHECKING:
    from pulsenet.domains.health.domain_logic.service import PulseNetService

logger = logging.getLogger(__name__)


async def _read_json(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("body", f"Malformed JSON body: {exc}") from exc
    if not isinstance(body, dict):
        raise ValidationError("body", "Request body must be a JSON object")
    return body


async def _respond(handler: Callable[[], Awaitable[dict[str, Any]]]) -> JSONResponse:
    try:
        return JSONResponse(await handler())
    except PulseNetError as exc:
        status, body = error_body(exc)
        if status >= 500:
            logger.error("Request failed: %s", exc)
        return JSONResponse(body, status_code=status)


def register_http_routes(
    mcp: FastMCP,
    service: PulseNetService,
    health_status: Callable[[], Awaitable[dict[str, Any]]],
) -> None:
    """Register the HTTP/JSON routes on the MCP server's ASGI app."""

    # --- Data ---

    @mcp.custom_route("/data/submit", methods=["POST"])
    async def submit_data(request: Request) -> JSONResponse:
        async def _handle() -> dict[str, Any]:
            return await service.submit(await _read_json(request))
        return await _respond(_handle)

    @mcp.custom_route("/data/stats", methods=["GET"])
    async def data_stats(request: Request) -> JSONResponse:
        return await _respond(service.platform_stats)

    @mcp.custom_route("/data/user/{address}", methods=["GET"])
    async def data_user(request: Request) -> JSONResponse:
        address = request.path_params["address"]
        return await _respond(lambda: service.user_stats(address))

    @mcp.custom_route("/data/verify", methods=["POST"])
    async def data_verify(request: Request) -> JSONResponse:
        async def _handle() -> dict[str, Any]:
            body = await _read_json(request)
            return service.verify_proof(body.get("proof"), body.get("dataHash"))
        return await _respond(_handle)

    # --- Users (summary first: it would otherwise match {address}) ---

    @mcp.custom_route("/user/stats/summary", methods=["GET"])
    async def user_summary(request: Request) -> JSONResponse:
        async def _handle() -> dict[str, Any]:
            return service.registration_summary()
        return await _respond(_handle)

    @mcp.custom_route("/user/register", methods=["POST"])
    async def user_register(request: Request) -> JSONResponse:
        async def _handle() -> dict[str, Any]:
            return service.register(await _read_json(request))
        return await _respond(_handle)

    @mcp.custom_route("/user/verify", methods=["POST"])
    async def user_verify(request: Request) -> JSONResponse:
        async def _handle() -> dict[str, Any]:
            return service.verify_user(await _read_json(request))
        return await _respond(_handle)

    @mcp.custom_route("/user/{address}", methods=["GET"])
    async def user_lookup(request: Request) -> JSONResponse:
        address = request.path_params["address"]

        async def _handle() -> dict[str, Any]:
            return service.get_registration(address)
        return await _respond(_handle)

    # --- Rewards / health ---

    @mcp.custom_route("/rewards/balance/{address}", methods=["GET"])
    async def reward_balance(request: Request) -> JSONResponse:
        address = request.path_params["address"]
        return await _respond(lambda: service.reward_balance(address))

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        status = await health_status()
        return JSONResponse(status, status_code=200 if status["status"] == "healthy" else 503)
