"""HTTP surface of the playground execution relay.

Endpoints:
    GET  /health    - Liveness check (does not reflect engine health)
    POST /execute   - Run a code submission, return captured output

Usage:
    playbox --host 0.0.0.0 --port 3001
"""

import argparse
import json
import logging
from http import HTTPStatus
from typing import Optional

from aiohttp import web

from playbox.config import RelayConfig
from playbox.errors import ExecutionFailed, SubmissionInvalid
from playbox.models import Submission
from playbox.session_manager import ExecutionSessionManager

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", RelayConfig)
MANAGER_KEY = web.AppKey("manager", ExecutionSessionManager)

CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _allowed_origin(config: RelayConfig, origin: Optional[str]) -> Optional[str]:
    if "*" in config.cors_origins:
        return "*"
    if origin and origin in config.cors_origins:
        return origin
    return None


def _apply_cors(request: web.Request, headers) -> None:
    origin = _allowed_origin(request.app[CONFIG_KEY], request.headers.get("Origin"))
    if origin:
        headers["Access-Control-Allow-Origin"] = origin
        headers.update(CORS_HEADERS)
        if origin != "*":
            headers["Vary"] = "Origin"


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and tag every response with CORS headers."""
    if request.method == "OPTIONS":
        response = web.Response(status=HTTPStatus.NO_CONTENT)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            _apply_cors(request, e.headers)
            raise
    _apply_cors(request, response.headers)
    return response


def failure_body(message: str) -> dict:
    """Uniform body for internal failures; stderr duplicates the message."""
    return {
        "error": "Execution failed",
        "message": message,
        "output": "",
        "stderr": message,
    }


async def health(request: web.Request) -> web.Response:
    """Health check endpoint."""
    return web.json_response({"status": "ok", "message": "Carrion Playground API is running"})


async def execute(request: web.Request) -> web.Response:
    """Validate the submission, run it, and return the result."""
    config = request.app[CONFIG_KEY]
    manager = request.app[MANAGER_KEY]

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response({"error": "Invalid JSON"}, status=HTTPStatus.BAD_REQUEST)

    try:
        code = body.get("code") if isinstance(body, dict) else None
        submission = Submission.parse(code, max_length=config.max_code_length)
    except SubmissionInvalid as e:
        return web.json_response({"error": str(e)}, status=HTTPStatus.BAD_REQUEST)

    try:
        result = await manager.execute(submission)
    except ExecutionFailed as e:
        return web.json_response(
            failure_body(str(e)), status=HTTPStatus.INTERNAL_SERVER_ERROR
        )
    except Exception as e:
        logger.exception("Unexpected execution error")
        return web.json_response(
            failure_body(str(e)), status=HTTPStatus.INTERNAL_SERVER_ERROR
        )

    return web.json_response(result.to_dict())


async def _on_startup(app: web.Application) -> None:
    await app[MANAGER_KEY].start()


async def _on_cleanup(app: web.Application) -> None:
    await app[MANAGER_KEY].stop()


def create_app(
    config: Optional[RelayConfig] = None,
    manager: Optional[ExecutionSessionManager] = None,
) -> web.Application:
    """Create the aiohttp application."""
    config = config or RelayConfig()
    manager = manager or ExecutionSessionManager(config)

    app = web.Application(
        middlewares=[cors_middleware],
        client_max_size=config.max_body_size,
    )
    app[CONFIG_KEY] = config
    app[MANAGER_KEY] = manager
    app.router.add_get("/health", health)
    app.router.add_post("/execute", execute)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def main(argv: Optional[list[str]] = None) -> None:
    config = RelayConfig.from_env()

    parser = argparse.ArgumentParser(description="Playground execution relay")
    parser.add_argument("--host", default=config.host, help=f"Address to bind (default: {config.host})")
    parser.add_argument("--port", type=int, default=config.port, help=f"Port to listen on (default: {config.port})")
    args = parser.parse_args(argv)
    config.host = args.host
    config.port = args.port

    logging.basicConfig(level=config.log_level)

    app = create_app(config)

    logger.info(f"Playground API listening on port {config.port}")
    logger.info(f"Health check: http://localhost:{config.port}/health")

    # run_app handles SIGINT/SIGTERM; in-flight executions are not drained
    web.run_app(app, host=config.host, port=config.port, shutdown_timeout=1.0, print=None)


if __name__ == "__main__":
    main()
