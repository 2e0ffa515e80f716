"""
Tests for the MCP server wiring.
"""

import json

from starlette.testclient import TestClient

from esxi_mcp.catalog import TOOLS
from esxi_mcp.config import AppConfig, ServerConfig
from esxi_mcp.dispatcher import ToolResult
from esxi_mcp.server import build_app, mcp_tools, to_call_result


def test_tools_are_served_verbatim():
    tools = mcp_tools()
    assert [t.name for t in tools] == [spec.name.value for spec in TOOLS]
    for tool, spec in zip(tools, TOOLS):
        assert tool.description == spec.description
        assert tool.inputSchema == spec.input_schema


def test_success_result():
    result = to_call_result(ToolResult({"success": True}))
    assert result.isError is False
    assert json.loads(result.content[0].text) == {"success": True}


def test_error_result():
    result = to_call_result(ToolResult({"error": "Unknown tool: x", "error_type": "UnknownTool"}, is_error=True))
    assert result.isError is True
    assert json.loads(result.content[0].text)["error_type"] == "UnknownTool"


def test_health_endpoint(cfg, client):
    app = build_app(AppConfig(esxi=cfg, server=ServerConfig(name="esxi-test")), client=client)

    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "server": "esxi-test"}
