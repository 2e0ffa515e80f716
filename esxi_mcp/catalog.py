"""
Tool catalog: the fixed set of tools this server exposes.

Each tool has a name, a description, the JSON schema advertised to clients
and a pydantic model that the dispatcher validates arguments against. The
schema is what clients see; the model must agree with it on required fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict


class ToolName(str, Enum):
    LIST_VMS = "esxi_list_vms"
    GET_VM = "esxi_get_vm"
    POWER_ON = "esxi_power_on"
    POWER_OFF = "esxi_power_off"
    RESTART_VM = "esxi_restart_vm"
    SUSPEND_VM = "esxi_suspend_vm"
    HOST_INFO = "esxi_host_info"
    LIST_DATASTORES = "esxi_list_datastores"
    GET_DATASTORE = "esxi_get_datastore"
    LIST_NETWORKS = "esxi_list_networks"
    LIST_SNAPSHOTS = "esxi_list_snapshots"
    CREATE_SNAPSHOT = "esxi_create_snapshot"
    DELETE_SNAPSHOT = "esxi_delete_snapshot"
    REVERT_SNAPSHOT = "esxi_revert_snapshot"


# --- Argument models ---

class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class NoArgs(ToolArgs):
    pass


class ListVMsArgs(ToolArgs):
    filter: Optional[str] = None


class GetVMArgs(ToolArgs):
    vm_id: Optional[str] = None
    vm_name: Optional[str] = None


class VMArgs(ToolArgs):
    vm_id: str


class PowerOffArgs(VMArgs):
    force: bool = False


class RestartArgs(VMArgs):
    graceful: bool = False


class DatastoreArgs(ToolArgs):
    datastore_id: str


class CreateSnapshotArgs(VMArgs):
    name: str
    description: str = ""
    memory: bool = False


class SnapshotArgs(VMArgs):
    snapshot_id: str


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    description: str
    input_schema: Dict[str, Any]
    args_model: Type[ToolArgs]

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name.value, "description": self.description, "inputSchema": self.input_schema}


def _schema(properties: Optional[Dict[str, Any]] = None, required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


def _prop(type_: str, description: str) -> Dict[str, str]:
    return {"type": type_, "description": description}


TOOLS: List[ToolSpec] = [
    # VM management
    ToolSpec(
        ToolName.LIST_VMS,
        "List all VMs on the ESXi host with their power state",
        _schema({"filter": _prop("string", "Filter VMs by name or power state (optional)")}),
        ListVMsArgs,
    ),
    ToolSpec(
        ToolName.GET_VM,
        "Get detailed information about a specific VM",
        _schema({
            "vm_id": _prop("string", "VM identifier (e.g., vm-1)"),
            "vm_name": _prop("string", "VM name (alternative to vm_id)"),
        }),
        GetVMArgs,
    ),
    ToolSpec(
        ToolName.POWER_ON,
        "Power on a VM",
        _schema({"vm_id": _prop("string", "VM identifier to power on")}, ["vm_id"]),
        VMArgs,
    ),
    ToolSpec(
        ToolName.POWER_OFF,
        "Power off a VM. Uses graceful shutdown if VMware Tools is installed, otherwise forces power off",
        _schema({
            "vm_id": _prop("string", "VM identifier to power off"),
            "force": _prop("boolean", "Force power off without graceful shutdown (default: false)"),
        }, ["vm_id"]),
        PowerOffArgs,
    ),
    ToolSpec(
        ToolName.RESTART_VM,
        "Restart a VM",
        _schema({
            "vm_id": _prop("string", "VM identifier to restart"),
            "graceful": _prop("boolean", "Use graceful reboot via VMware Tools if available (default: false)"),
        }, ["vm_id"]),
        RestartArgs,
    ),
    ToolSpec(
        ToolName.SUSPEND_VM,
        "Suspend a VM",
        _schema({"vm_id": _prop("string", "VM identifier to suspend")}, ["vm_id"]),
        VMArgs,
    ),
    # Host information
    ToolSpec(
        ToolName.HOST_INFO,
        "Get ESXi host information including CPU, memory, and version",
        _schema(),
        NoArgs,
    ),
    ToolSpec(
        ToolName.LIST_DATASTORES,
        "List all datastores with capacity and usage information",
        _schema(),
        NoArgs,
    ),
    ToolSpec(
        ToolName.GET_DATASTORE,
        "Get capacity and usage information for a single datastore",
        _schema({"datastore_id": _prop("string", "Datastore identifier (e.g., datastore-1)")}, ["datastore_id"]),
        DatastoreArgs,
    ),
    ToolSpec(
        ToolName.LIST_NETWORKS,
        "List all networks and port groups",
        _schema(),
        NoArgs,
    ),
    # Snapshot management
    ToolSpec(
        ToolName.LIST_SNAPSHOTS,
        "List all snapshots of a VM",
        _schema({"vm_id": _prop("string", "VM identifier")}, ["vm_id"]),
        VMArgs,
    ),
    ToolSpec(
        ToolName.CREATE_SNAPSHOT,
        "Create a snapshot of a VM",
        _schema({
            "vm_id": _prop("string", "VM identifier"),
            "name": _prop("string", "Snapshot name"),
            "description": _prop("string", "Snapshot description (optional)"),
            "memory": _prop("boolean", "Include memory state in snapshot (default: false)"),
        }, ["vm_id", "name"]),
        CreateSnapshotArgs,
    ),
    ToolSpec(
        ToolName.DELETE_SNAPSHOT,
        "Delete a snapshot from a VM",
        _schema({
            "vm_id": _prop("string", "VM identifier"),
            "snapshot_id": _prop("string", "Snapshot identifier to delete"),
        }, ["vm_id", "snapshot_id"]),
        SnapshotArgs,
    ),
    ToolSpec(
        ToolName.REVERT_SNAPSHOT,
        "Revert a VM to a specific snapshot",
        _schema({
            "vm_id": _prop("string", "VM identifier"),
            "snapshot_id": _prop("string", "Snapshot identifier to revert to"),
        }, ["vm_id", "snapshot_id"]),
        SnapshotArgs,
    ),
]

TOOLS_BY_NAME: Dict[str, ToolSpec] = {t.name.value: t for t in TOOLS}


def lookup(name: str) -> Optional[ToolSpec]:
    return TOOLS_BY_NAME.get(name)
