from __future__ import annotations

import contextlib
import logging
import sys
from typing import Any, AsyncIterator, Dict, List, Optional

import anyio
import uvicorn
from dotenv import load_dotenv
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from .audit import Auditor
from .catalog import TOOLS
from .config import AppConfig, load_config
from .dispatcher import Dispatcher, ToolResult
from .errors import ConfigError
from .esxi_client import EsxiClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def mcp_tools() -> List[types.Tool]:
    return [types.Tool(**spec.describe()) for spec in TOOLS]


def to_call_result(result: ToolResult) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=result.to_text())],
        isError=result.is_error,
    )


def build_mcp_server(name: str, dispatcher: Dispatcher) -> Server:
    server = Server(name)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return mcp_tools()

    # Arguments are validated by the dispatcher so that failures use its envelope.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        logger.debug("Tool called: %s", name)
        result = await anyio.to_thread.run_sync(dispatcher.dispatch, name, arguments or {})
        return to_call_result(result)

    return server


def build_app(cfg: AppConfig, client: Optional[EsxiClient] = None) -> Starlette:
    client = client if client is not None else EsxiClient(cfg.esxi)
    dispatcher = Dispatcher(client, Auditor(cfg.server.audit_log_path))
    session_manager = StreamableHTTPSessionManager(app=build_mcp_server(cfg.server.name, dispatcher))

    async def handle_mcp(scope: Scope, receive: Receive, send: Send) -> None:
        await session_manager.handle_request(scope, receive, send)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "server": cfg.server.name})

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            try:
                yield
            finally:
                await anyio.to_thread.run_sync(client.close)

    return Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Mount(cfg.server.mcp_path, app=handle_mcp),
        ],
        lifespan=lifespan,
    )


def main() -> None:
    load_dotenv()
    try:
        cfg = load_config()
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error("Configuration error: %s", e)
        logger.error("Please set ESXI_HOST and ESXI_PASSWORD environment variables")
        sys.exit(1)

    logging.basicConfig(level=cfg.server.log_level, format=LOG_FORMAT)
    app = build_app(cfg)
    logger.info(
        "ESXi MCP server for %s listening on http://%s:%d%s",
        cfg.esxi.host, cfg.server.host, cfg.server.port, cfg.server.mcp_path,
    )
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level=cfg.server.log_level.lower())


if __name__ == "__main__":
    main()
