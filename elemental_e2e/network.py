# /*
# Copyright 2026 The Elemental E2E Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Node identities: hostnames and DHCP reservations in the libvirt network file."""

from __future__ import annotations

import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from elemental_e2e import logger
from elemental_e2e.constants import (
    NET_FIRST_NODE_HOST,
    NET_IP_PREFIX,
    NET_LAST_HOST,
    NET_MAC_PREFIX,
)


@dataclass(frozen=True)
class HostNetConfig:
    """DHCP reservation of a node.

    Attributes:
        name: Node hostname.
        mac: MAC address of the node NIC.
        ip: Reserved IPv4 address.
    """

    name: str
    mac: str
    ip: str


def hostname_for(root: str, index: int) -> str:
    """Build the hostname of node ``index`` (``node-007`` style).

    Raises:
        ValueError: If the index is negative.
    """
    if index < 0:
        raise ValueError(f"node index must not be negative, got {index}")
    return f"{root}-{index:03d}"


def _max_index() -> int:
    return NET_LAST_HOST - NET_FIRST_NODE_HOST


def host_net_config(hostname: str, index: int) -> HostNetConfig:
    """Compute the MAC and IP address reserved for node ``index``.

    Raises:
        ValueError: If the index does not fit in the /24 node range.
    """
    if not 0 <= index <= _max_index():
        raise ValueError(f"node index {index} outside of 0..{_max_index()}")
    return HostNetConfig(
        name=hostname,
        mac=f"{NET_MAC_PREFIX}:01:{index:02x}",
        ip=f"{NET_IP_PREFIX}.{NET_FIRST_NODE_HOST + index}",
    )


class NetworkConfig:
    """libvirt network definition file holding node DHCP reservations.

    Reservations are appended while nodes are launched one after the other;
    the lock keeps the read-modify-write of the file exclusive anyway.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _dhcp(self, tree: ET.ElementTree) -> ET.Element:
        dhcp = tree.getroot().find("./ip/dhcp")
        if dhcp is None:
            raise RuntimeError(f"No <ip><dhcp> section in {self.path}")
        return dhcp

    def hosts(self) -> list[HostNetConfig]:
        """List all DHCP reservations of the network."""
        with self._lock:
            tree = ET.parse(self.path)
        return [
            HostNetConfig(name=h.get("name", ""), mac=h.get("mac", ""), ip=h.get("ip", ""))
            for h in self._dhcp(tree).findall("host")
        ]

    def lookup(self, hostname: str) -> HostNetConfig:
        """Return the reservation of a node.

        Raises:
            LookupError: If the node is not registered in the network.
        """
        for host in self.hosts():
            if host.name == hostname:
                return host
        raise LookupError(f"Host {hostname} not found in {self.path}")

    def add_node(self, hostname: str, index: int) -> HostNetConfig:
        """Register a node in the network file, reusing an existing reservation.

        Args:
            hostname: Node hostname.
            index: Node index, used to derive the MAC and IP address.

        Returns:
            The node reservation.
        """
        wanted = host_net_config(hostname, index)
        with self._lock:
            tree = ET.parse(self.path)
            dhcp = self._dhcp(tree)
            for host in dhcp.findall("host"):
                if host.get("name") == hostname:
                    return HostNetConfig(name=hostname, mac=host.get("mac", ""), ip=host.get("ip", ""))
                if host.get("mac") == wanted.mac or host.get("ip") == wanted.ip:
                    raise RuntimeError(
                        f"Address of {hostname} already reserved by {host.get('name')} in {self.path}"
                    )
            ET.SubElement(dhcp, "host", {"mac": wanted.mac, "name": wanted.name, "ip": wanted.ip})
            ET.indent(tree)
            tree.write(self.path, encoding="unicode")
        logger.info("Registered %s (%s, %s) in %s", hostname, wanted.mac, wanted.ip, self.path)
        return wanted
