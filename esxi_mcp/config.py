from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError

_TRUTHY = {"1", "true", "yes"}


class EsxiConfig(BaseModel):
    host: str
    username: str = "root"
    password: str
    verify_ssl: bool = True
    ca_bundle: Optional[str] = None

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        return v.rstrip("/")

    @property
    def base_url(self) -> str:
        return f"https://{self.host}"


class ServerConfig(BaseModel):
    name: str = "esxi-mcp"
    host: str = "0.0.0.0"
    port: int = 3000
    mcp_path: str = "/mcp"
    audit_log_path: Optional[str] = None
    log_level: str = Field(default="INFO")


class AppConfig(BaseModel):
    esxi: EsxiConfig
    server: ServerConfig


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def load_config() -> AppConfig:
    host = os.getenv("ESXI_HOST", "").strip()
    password = os.getenv("ESXI_PASSWORD", "")
    if not host:
        raise ConfigError("ESXI_HOST environment variable is required")
    if not password:
        raise ConfigError("ESXI_PASSWORD environment variable is required")

    return AppConfig(
        esxi=EsxiConfig(
            host=host,
            username=os.getenv("ESXI_USERNAME", "root") or "root",
            password=password,
            verify_ssl=not _flag("ESXI_INSECURE"),
            ca_bundle=os.getenv("ESXI_CA_BUNDLE") or None,
        ),
        server=ServerConfig(
            name=os.getenv("SERVER_NAME", "esxi-mcp"),
            host=os.getenv("SERVER_HOST", "0.0.0.0"),
            port=int(os.getenv("SERVER_PORT", "3000")),
            mcp_path=os.getenv("MCP_PATH", "/mcp"),
            audit_log_path=os.getenv("AUDIT_LOG_PATH") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        ),
    )
