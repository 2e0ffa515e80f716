"""
Data models for ESXi inventory objects.

Every model accepts and keeps fields it does not declare, so newer API
versions pass through untouched. Identifiers (``vm``, ``host``,
``datastore``, ``network``, ``snapshot``) are opaque strings.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EsxiModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _keyed_to_list(value: Any, key: str) -> Any:
    # {"4000": {...}} -> [{"nic": "4000", ...}], preserving upstream order
    if isinstance(value, dict):
        return [{key: k, **(v if isinstance(v, dict) else {})} for k, v in value.items()]
    return value


class VMSummary(EsxiModel):
    """One row of the VM inventory; ``power_state`` is poweredOn, poweredOff or suspended."""

    vm: str
    name: str
    power_state: str
    cpu_count: Optional[int] = None
    memory_size_MiB: Optional[int] = None


class VMCpu(EsxiModel):
    count: Optional[int] = None
    cores_per_socket: Optional[int] = None
    hot_add_enabled: Optional[bool] = None
    hot_remove_enabled: Optional[bool] = None


class VMMemory(EsxiModel):
    size_MiB: Optional[int] = None
    hot_add_enabled: Optional[bool] = None


class VMHardware(EsxiModel):
    version: Optional[str] = None


class NicBacking(EsxiModel):
    network: Optional[str] = None
    network_name: Optional[str] = None


class VMNic(EsxiModel):
    nic: Optional[str] = None
    label: Optional[str] = None
    type: Optional[str] = None
    mac_address: Optional[str] = None
    backing: NicBacking = Field(default_factory=NicBacking)
    state: Optional[str] = None


class VMDisk(EsxiModel):
    disk: Optional[str] = None
    label: Optional[str] = None
    type: Optional[str] = None
    capacity: Optional[int] = None


class VMDetail(EsxiModel):
    name: str
    power_state: Optional[str] = None
    cpu: VMCpu = Field(default_factory=VMCpu)
    memory: VMMemory = Field(default_factory=VMMemory)
    guest_OS: Optional[str] = None
    hardware: VMHardware = Field(default_factory=VMHardware)
    nics: List[VMNic] = Field(default_factory=list)
    disks: List[VMDisk] = Field(default_factory=list)

    @field_validator("nics", mode="before")
    @classmethod
    def nics_as_list(cls, v: Any) -> Any:
        return _keyed_to_list(v, "nic") if v is not None else []

    @field_validator("disks", mode="before")
    @classmethod
    def disks_as_list(cls, v: Any) -> Any:
        return _keyed_to_list(v, "disk") if v is not None else []


class HostProduct(EsxiModel):
    name: Optional[str] = None
    version: Optional[str] = None
    build: Optional[str] = None


class HostCpu(EsxiModel):
    model: Optional[str] = None
    count: Optional[int] = None
    cores: Optional[int] = None
    threads: Optional[int] = None


class HostMemory(EsxiModel):
    total_MiB: Optional[int] = None


class HostInfo(EsxiModel):
    name: Optional[str] = None
    product: HostProduct = Field(default_factory=HostProduct)
    cpu: HostCpu = Field(default_factory=HostCpu)
    memory: HostMemory = Field(default_factory=HostMemory)

    @field_validator("product", "cpu", "memory", mode="before")
    @classmethod
    def empty_when_missing(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}


class DatastoreInfo(EsxiModel):
    datastore: Optional[str] = None
    name: str
    type: Optional[str] = None
    free_space: int = 0
    capacity: int = 0


class NetworkInfo(EsxiModel):
    network: str
    name: str
    type: Optional[str] = None


class SnapshotInfo(EsxiModel):
    snapshot: str
    name: str
    description: Optional[str] = None
    create_time: Optional[str] = None
    parent: Optional[str] = None
