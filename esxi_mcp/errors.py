from __future__ import annotations

from typing import Any, Dict, List, Optional


class EsxiMcpError(Exception):
    """Base class for errors surfaced by the ESXi MCP server."""


class ConfigError(EsxiMcpError):
    pass


class AuthenticationError(EsxiMcpError):
    """Session creation failed: bad credentials or an unreachable auth endpoint."""


class GatewayError(EsxiMcpError):
    """Non-2xx response, transport failure or malformed body from the management API.

    ``status_code`` is ``None`` when no HTTP response was received at all
    (timeout, connection refused, TLS failure) or when a successful response
    carried a body of the wrong shape.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Dict[str, Any]] = None,
        path: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body if isinstance(response_body, dict) else {}
        self.path = path

        self.error_type = self._extract_error_type()
        self.error_messages = self._extract_error_messages()

        parts = []
        if status_code is not None:
            parts.append(f"HTTP {status_code}")
        if path:
            parts.append(f"on {path}")
        detail = " ".join(parts)
        if self.error_type:
            detail += f" [{self.error_type}]"
        if self.error_messages:
            detail += f": {'; '.join(self.error_messages)}"

        super().__init__(f"{message}: {detail}" if detail else message)

    def _extract_error_type(self) -> Optional[str]:
        # {"error_type": "NOT_FOUND", "messages": [...]}
        if "error_type" in self.response_body:
            return self.response_body["error_type"]
        # {"type": "com.vmware.vapi.std.errors.not_found", ...}
        if isinstance(self.response_body.get("type"), str):
            return self.response_body["type"].split(".")[-1].upper()
        return None

    def _extract_error_messages(self) -> List[str]:
        messages = []
        for msg in self.response_body.get("messages", []) or []:
            if isinstance(msg, dict) and "default_message" in msg:
                messages.append(msg["default_message"])
            elif isinstance(msg, str):
                messages.append(msg)
        if isinstance(self.response_body.get("message"), str):
            messages.append(self.response_body["message"])
        return messages

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class NotFound(EsxiMcpError):
    pass


class NoHostsFound(EsxiMcpError):
    pass


class UnknownTool(EsxiMcpError):
    pass


class MissingArgument(EsxiMcpError):
    pass


class InvalidArgument(EsxiMcpError):
    pass
