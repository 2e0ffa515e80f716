from __future__ import annotations

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from .config import EsxiConfig
from .errors import GatewayError, MissingArgument, NoHostsFound, NotFound
from .gateway import HttpGateway
from .models import (
    DatastoreInfo,
    HostInfo,
    NetworkInfo,
    SnapshotInfo,
    VMDetail,
    VMSummary,
)

logger = logging.getLogger(__name__)


def _seg(identifier: str) -> str:
    return quote(str(identifier), safe="")


def _as_list(data: Any, path: str) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, dict) and "value" in data:
        data = data["value"]
    if not isinstance(data, list):
        raise GatewayError(f"Unexpected response: expected a list, got {type(data).__name__}", path=path)
    return data


class EsxiClient:
    """VM, host, datastore, network and snapshot operations for one ESXi host."""

    def __init__(self, cfg: EsxiConfig, http: Optional[requests.Session] = None):
        self._cfg = cfg
        self.gateway = HttpGateway(cfg, http=http)

    @property
    def host(self) -> str:
        return self._cfg.host

    def _vm_path(self, vm: str, suffix: str = "") -> str:
        return f"/api/vcenter/vm/{_seg(vm)}{suffix}"

    # --- VM Operations ---

    def list_vms(self) -> List[VMSummary]:
        data = self.gateway.request("GET", "/api/vcenter/vm", operation="list VMs")
        return [VMSummary.model_validate(v) for v in _as_list(data, "/api/vcenter/vm")]

    def find_vm_by_name(self, name: str) -> Optional[VMSummary]:
        wanted = name.lower()
        for vm in self.list_vms():
            if vm.name.lower() == wanted:
                return vm
        return None

    def resolve_vm_id(self, vm_id: Optional[str] = None, vm_name: Optional[str] = None) -> str:
        """Return ``vm_id`` if given, otherwise look the VM up by display name."""
        if vm_id:
            return vm_id
        if vm_name:
            vm = self.find_vm_by_name(vm_name)
            if vm is None:
                raise NotFound(f"VM not found: {vm_name}")
            return vm.vm
        raise MissingArgument("Either vm_id or vm_name is required")

    def get_vm_power_state(self, vm: str) -> str:
        data = self.gateway.request("GET", self._vm_path(vm, "/power"), operation=f"get power state of VM '{vm}'")
        return data.get("state") if isinstance(data, dict) else data

    def get_vm(self, vm: str) -> VMDetail:
        data = self.gateway.request("GET", self._vm_path(vm), operation=f"get VM '{vm}'")
        detail = VMDetail.model_validate(data)
        # The detail payload can lag behind; the power endpoint is authoritative.
        detail.power_state = self.get_vm_power_state(vm)
        return detail

    def _power(self, vm: str, action: str, operation: str) -> None:
        self.gateway.request(
            "POST", self._vm_path(vm, "/power"), params={"action": action}, operation=f"{operation} VM '{vm}'"
        )

    def power_on(self, vm: str) -> None:
        self._power(vm, "start", "power on")

    def power_off(self, vm: str) -> None:
        # Hard stop. There is no stronger action; see shutdown_vm for the guest path.
        self._power(vm, "stop", "power off")

    def restart(self, vm: str) -> None:
        self._power(vm, "reset", "reset")

    def suspend(self, vm: str) -> None:
        self._power(vm, "suspend", "suspend")

    # --- Guest Operations (need VMware Tools in the guest) ---

    def _guest_power(self, vm: str, action: str):
        return self.gateway.try_request(
            "POST", self._vm_path(vm, "/guest/power"), params={"action": action}, operation=f"{action} guest of VM '{vm}'"
        )

    def shutdown_vm(self, vm: str, force: bool = False) -> str:
        """Power a VM off, trying an in-guest shutdown first unless ``force``.

        Returns ``"guest"`` or ``"hard"`` depending on which path stopped it.
        """
        if not force:
            _, error = self._guest_power(vm, "shutdown")
            if error is None:
                return "guest"
            logger.warning("Guest shutdown of VM %s failed, forcing power off: %s", vm, error)
        self.power_off(vm)
        return "hard"

    def reboot_vm(self, vm: str, graceful: bool = False) -> str:
        if graceful:
            _, error = self._guest_power(vm, "reboot")
            if error is None:
                return "guest"
            logger.warning("Guest reboot of VM %s failed, resetting: %s", vm, error)
        self.restart(vm)
        return "hard"

    # --- Host/Datastore/Network ---

    def get_host_info(self) -> HostInfo:
        hosts = _as_list(self.gateway.request("GET", "/api/vcenter/host", operation="list hosts"), "/api/vcenter/host")
        if not hosts:
            raise NoHostsFound("No hosts found")

        first = hosts[0]
        host_id = first.get("host") or ""
        detail = self.gateway.request("GET", f"/api/vcenter/host/{_seg(host_id)}", operation="get host details")
        detail = detail if isinstance(detail, dict) else {}
        return HostInfo(
            name=first.get("name"),
            product=detail.get("product"),
            cpu=detail.get("cpu"),
            memory=detail.get("memory"),
        )

    def list_datastores(self) -> List[DatastoreInfo]:
        data = self.gateway.request("GET", "/api/vcenter/datastore", operation="list datastores")
        return [DatastoreInfo.model_validate(d) for d in _as_list(data, "/api/vcenter/datastore")]

    def get_datastore(self, datastore: str) -> DatastoreInfo:
        data = self.gateway.request(
            "GET", f"/api/vcenter/datastore/{_seg(datastore)}", operation=f"get datastore '{datastore}'"
        )
        info = DatastoreInfo.model_validate(data)
        if info.datastore is None:
            info.datastore = datastore
        return info

    def list_networks(self) -> List[NetworkInfo]:
        data = self.gateway.request("GET", "/api/vcenter/network", operation="list networks")
        return [NetworkInfo.model_validate(n) for n in _as_list(data, "/api/vcenter/network")]

    # --- Snapshots ---

    def list_snapshots(self, vm: str) -> List[SnapshotInfo]:
        data, error = self.gateway.try_request(
            "GET", self._vm_path(vm, "/snapshots"), operation=f"list snapshots for VM '{vm}'"
        )
        if error is not None:
            # Standalone ESXi editions may not expose the snapshot API at all.
            if getattr(error, "is_not_found", False):
                logger.warning("Snapshot API not available on %s, returning empty list", self.host)
                return []
            raise error
        return [SnapshotInfo.model_validate(s) for s in _as_list(data, self._vm_path(vm, "/snapshots"))]

    def create_snapshot(self, vm: str, name: str, description: str = "", memory: bool = False) -> Any:
        body = {"name": name, "description": description, "memory": memory}
        return self.gateway.request(
            "POST", self._vm_path(vm, "/snapshots"), json_body=body,
            operation=f"create snapshot '{name}' for VM '{vm}'",
        )

    def delete_snapshot(self, vm: str, snapshot: str) -> None:
        self.gateway.request(
            "DELETE", self._vm_path(vm, f"/snapshots/{_seg(snapshot)}"),
            operation=f"delete snapshot '{snapshot}' for VM '{vm}'",
        )

    def revert_snapshot(self, vm: str, snapshot: str) -> None:
        self.gateway.request(
            "POST", self._vm_path(vm, f"/snapshots/{_seg(snapshot)}"), params={"action": "revert"},
            operation=f"revert VM '{vm}' to snapshot '{snapshot}'",
        )

    # --- Session ---

    def disconnect(self) -> None:
        self.gateway.session.logout()

    def close(self) -> None:
        self.gateway.close()
