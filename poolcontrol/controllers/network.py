"""WiFi interface introspection for wifi/state"""

import logging
import socket
import subprocess
from typing import Optional

from .. import config
from ..models.state import WifiState

logger = logging.getLogger(__name__)

WIRELESS_PROC = "/proc/net/wireless"


class NetworkMonitor:
    """Reads SSID, IP address and RSSI of the WiFi interface."""

    def __init__(self, interface: str = None, proc_path: str = WIRELESS_PROC):
        self.interface = interface or config.WIFI_INTERFACE
        self.proc_path = proc_path

    def _get_ssid(self) -> Optional[str]:
        try:
            ssid = subprocess.check_output(
                ["iwgetid", self.interface, "-r"], stderr=subprocess.DEVNULL, timeout=5
            ).decode().strip()
            return ssid or None
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Could not read SSID: {e}")
            return None

    def _get_rssi(self) -> Optional[int]:
        """Signal level (dBm) of the interface from /proc/net/wireless."""
        try:
            with open(self.proc_path) as f:
                lines = f.readlines()
        except OSError as e:
            logger.debug(f"Could not read {self.proc_path}: {e}")
            return None
        return parse_proc_wireless(lines, self.interface)

    def _get_local_ip(self) -> Optional[str]:
        try:
            s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                s.connect(('8.8.8.8', 80))
                return s.getsockname()[0]
            finally:
                s.close()
        except OSError:
            return None

    def read_wifi_state(self) -> WifiState:
        ssid = self._get_ssid()
        ip = self._get_local_ip()
        if not ssid or not ip:
            return WifiState.disconnected()
        rssi = self._get_rssi()
        return WifiState.connected(ssid, ip, rssi if rssi is not None else -100)


def parse_proc_wireless(lines, interface: str) -> Optional[int]:
    """
    Extract the signal level of one interface.

    Inter-| sta-|   Quality        |   Discarded packets
     face | tus | link level noise |  nwid  crypt   frag  retry   misc | beacon | 22
     wlan0: 0000   54.  -56.  -256        0      0      0      0     12        0
    """
    for line in lines[2:]:
        name, sep, rest = line.partition(":")
        if not sep or name.strip() != interface:
            continue
        fields = rest.split()
        if len(fields) < 3:
            return None
        try:
            return int(float(fields[2].rstrip(".")))
        except ValueError:
            return None
    return None
