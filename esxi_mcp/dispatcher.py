from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .audit import AuditEvent, Auditor
from .catalog import (
    CreateSnapshotArgs,
    DatastoreArgs,
    GetVMArgs,
    ListVMsArgs,
    PowerOffArgs,
    RestartArgs,
    SnapshotArgs,
    ToolArgs,
    ToolName,
    VMArgs,
    lookup,
)
from .errors import EsxiMcpError, GatewayError, InvalidArgument, MissingArgument, UnknownTool
from .esxi_client import EsxiClient
from .models import DatastoreInfo

logger = logging.getLogger(__name__)

GIB = 1024 ** 3


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


@dataclass
class ToolResult:
    payload: Any
    is_error: bool = False

    def to_text(self) -> str:
        return json.dumps(self.payload, indent=2, default=str)


def error_envelope(exc: BaseException) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"error": str(exc) or exc.__class__.__name__, "error_type": exc.__class__.__name__}
    if isinstance(exc, GatewayError) and exc.status_code is not None:
        envelope["status_code"] = exc.status_code
    return envelope


def datastore_usage(ds: DatastoreInfo) -> Dict[str, Any]:
    """Datastore fields plus human-readable sizes; ``used_percent`` is None for zero capacity."""
    data = ds.to_dict()
    data["free_space_GB"] = _round_half_up(ds.free_space / GIB)
    data["capacity_GB"] = _round_half_up(ds.capacity / GIB)
    data["used_percent"] = _round_half_up((ds.capacity - ds.free_space) / ds.capacity * 100) if ds.capacity else None
    return data


def _parse_args(name: str, model: type, arguments: Dict[str, Any]) -> ToolArgs:
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors() if err["type"] == "missing"]
        if missing:
            raise MissingArgument(f"Missing required argument(s) for {name}: {', '.join(missing)}") from e
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise InvalidArgument(f"Invalid arguments for {name}: {problems}") from e


class Dispatcher:
    """Routes ``(tool name, arguments)`` to the client and wraps the outcome.

    :meth:`dispatch` never raises: failures come back as a :class:`ToolResult`
    with ``is_error`` set and an ``{"error": ...}`` payload.
    """

    def __init__(self, client: EsxiClient, auditor: Optional[Auditor] = None):
        self._client = client
        self._auditor = auditor
        self._handlers: Dict[ToolName, Callable[[Any], Any]] = {
            ToolName.LIST_VMS: self._list_vms,
            ToolName.GET_VM: self._get_vm,
            ToolName.POWER_ON: self._power_on,
            ToolName.POWER_OFF: self._power_off,
            ToolName.RESTART_VM: self._restart_vm,
            ToolName.SUSPEND_VM: self._suspend_vm,
            ToolName.HOST_INFO: self._host_info,
            ToolName.LIST_DATASTORES: self._list_datastores,
            ToolName.GET_DATASTORE: self._get_datastore,
            ToolName.LIST_NETWORKS: self._list_networks,
            ToolName.LIST_SNAPSHOTS: self._list_snapshots,
            ToolName.CREATE_SNAPSHOT: self._create_snapshot,
            ToolName.DELETE_SNAPSHOT: self._delete_snapshot,
            ToolName.REVERT_SNAPSHOT: self._revert_snapshot,
        }
        unhandled = set(ToolName) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No handler for tools: {sorted(t.value for t in unhandled)}")

    def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Run a tool and return its payload, raising on any failure."""
        spec = lookup(name)
        if spec is None:
            raise UnknownTool(f"Unknown tool: {name}")
        args = _parse_args(name, spec.args_model, arguments or {})
        return self._handlers[spec.name](args)

    def dispatch(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        start = time.perf_counter()
        error: Optional[str] = None
        try:
            result = ToolResult(self.call(name, arguments))
        except EsxiMcpError as e:
            error = str(e)
            logger.info("Tool %s failed: %s", name, e)
            result = ToolResult(error_envelope(e), is_error=True)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.exception("Unexpected error in tool %s", name)
            result = ToolResult(error_envelope(e), is_error=True)

        if self._auditor is not None:
            try:
                self._auditor.log(AuditEvent(
                    ts=time.time(), tool=name, ok=error is None,
                    duration_ms=(time.perf_counter() - start) * 1000.0,
                    args=dict(arguments) if isinstance(arguments, dict) else {}, error=error, host=self._client.host,
                ))
            except Exception:
                logger.exception("Audit logging failed for %s", name)
        return result

    # --- VM tools ---

    def _list_vms(self, args: ListVMsArgs) -> List[Dict[str, Any]]:
        vms = self._client.list_vms()
        if args.filter:
            needle = args.filter.lower()
            vms = [vm for vm in vms if needle in vm.name.lower() or needle in vm.power_state.lower()]
        return [vm.to_dict() for vm in vms]

    def _get_vm(self, args: GetVMArgs) -> Dict[str, Any]:
        vm_id = self._client.resolve_vm_id(args.vm_id, args.vm_name)
        return self._client.get_vm(vm_id).to_dict()

    def _power_on(self, args: VMArgs) -> Dict[str, Any]:
        self._client.power_on(args.vm_id)
        return {"success": True, "message": f"VM {args.vm_id} powered on"}

    def _power_off(self, args: PowerOffArgs) -> Dict[str, Any]:
        method = self._client.shutdown_vm(args.vm_id, force=args.force)
        return {"success": True, "method": method, "message": f"VM {args.vm_id} powered off"}

    def _restart_vm(self, args: RestartArgs) -> Dict[str, Any]:
        method = self._client.reboot_vm(args.vm_id, graceful=args.graceful)
        return {"success": True, "method": method, "message": f"VM {args.vm_id} restarted"}

    def _suspend_vm(self, args: VMArgs) -> Dict[str, Any]:
        self._client.suspend(args.vm_id)
        return {"success": True, "message": f"VM {args.vm_id} suspended"}

    # --- Host tools ---

    def _host_info(self, args: ToolArgs) -> Dict[str, Any]:
        return self._client.get_host_info().to_dict()

    def _list_datastores(self, args: ToolArgs) -> List[Dict[str, Any]]:
        return [datastore_usage(ds) for ds in self._client.list_datastores()]

    def _get_datastore(self, args: DatastoreArgs) -> Dict[str, Any]:
        return datastore_usage(self._client.get_datastore(args.datastore_id))

    def _list_networks(self, args: ToolArgs) -> List[Dict[str, Any]]:
        return [n.to_dict() for n in self._client.list_networks()]

    # --- Snapshot tools ---

    def _list_snapshots(self, args: VMArgs) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self._client.list_snapshots(args.vm_id)]

    def _create_snapshot(self, args: CreateSnapshotArgs) -> Dict[str, Any]:
        snapshot_id = self._client.create_snapshot(
            args.vm_id, args.name, description=args.description, memory=args.memory
        )
        return {
            "success": True,
            "snapshot_id": snapshot_id,
            "message": f'Snapshot "{args.name}" created for VM {args.vm_id}',
        }

    def _delete_snapshot(self, args: SnapshotArgs) -> Dict[str, Any]:
        self._client.delete_snapshot(args.vm_id, args.snapshot_id)
        return {"success": True, "message": f"Snapshot {args.snapshot_id} deleted from VM {args.vm_id}"}

    def _revert_snapshot(self, args: SnapshotArgs) -> Dict[str, Any]:
        self._client.revert_snapshot(args.vm_id, args.snapshot_id)
        return {"success": True, "message": f"VM {args.vm_id} reverted to snapshot {args.snapshot_id}"}
