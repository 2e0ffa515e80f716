"""
esxi-mcp: an MCP server for VMware ESXi hosts.

Exposes VM lifecycle, host/datastore/network inventory and snapshot
management on a single ESXi host's REST API as MCP tools served over
streamable HTTP.
"""

from .esxi_client import EsxiClient
from .gateway import HttpGateway
from .session import SessionManager
from .config import AppConfig, load_config
from .dispatcher import Dispatcher, ToolResult
from .catalog import TOOLS, ToolName
from .errors import (
    AuthenticationError,
    ConfigError,
    EsxiMcpError,
    GatewayError,
    InvalidArgument,
    MissingArgument,
    NoHostsFound,
    NotFound,
    UnknownTool,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "EsxiClient",
    "HttpGateway",
    "SessionManager",
    # Config
    "AppConfig",
    "load_config",
    # Tools
    "Dispatcher",
    "ToolResult",
    "TOOLS",
    "ToolName",
    # Errors
    "EsxiMcpError",
    "AuthenticationError",
    "GatewayError",
    "NotFound",
    "NoHostsFound",
    "UnknownTool",
    "MissingArgument",
    "InvalidArgument",
    "ConfigError",
]
