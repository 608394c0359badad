import logging
import os
import shutil
import subprocess
import tempfile
import threading

from ssidroam.errors import WirelessControlError
from ssidroam.iw_scan_parser import parse_wpa_scan_results
from ssidroam.models import CmdResult, NetworkInfo, SignalPoll, SupplicantStatus
from ssidroam.status_parsers import (
    parse_default_gateway,
    parse_ip_addr,
    parse_iw_link,
    parse_iw_link_ssid,
    parse_iwconfig,
    parse_iwconfig_essid,
    parse_link_state,
    parse_list_networks,
    parse_resolv_conf,
    parse_signal_poll,
    parse_wpa_status,
)

#Various shell commands live here. Every call is bounded by a local timeout.

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
ROAM_TIMEOUT = 10.0
SCAN_TIMEOUT = 30.0
DHCLIENT_TIMEOUT = 30.0
DHCPCD_TIMEOUT = 10.0
PING_TIMEOUT = 2

RESOLV_CONF = "/etc/resolv.conf"


def needs_sudo() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() != 0


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def run_cmd(cmd: list[str], timeout: float = DEFAULT_TIMEOUT, sudo: bool = False) -> CmdResult:
    """Run a command with a hard timeout. Timeouts and missing binaries come back as data."""
    full_cmd = ["sudo", *cmd] if sudo else list(cmd)
    try:
        r = subprocess.run(full_cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        logger.debug("command timed out after %ss: %s", timeout, " ".join(full_cmd))
        return CmdResult(full_cmd, None, _as_text(e.stdout), _as_text(e.stderr), timed_out=True)
    except FileNotFoundError as e:
        return CmdResult(full_cmd, 127, "", str(e))
    return CmdResult(full_cmd, r.returncode, r.stdout or "", r.stderr or "")


# ============================================================
#  wpa_cli / iw / iwconfig
# ============================================================

class WirelessClient:
    """
    Adapter over wpa_cli and the link-layer query tools for one interface.
    Calls are serialized: the control socket is single-session per device.
    """

    def __init__(self, iface: str, sudo: bool | None = None, runner=run_cmd):
        self.iface = iface
        self.sudo = needs_sudo() if sudo is None else sudo
        self._runner = runner
        self._lock = threading.Lock()

    def _run(self, cmd, timeout=DEFAULT_TIMEOUT) -> CmdResult:
        with self._lock:
            return self._runner(cmd, timeout=timeout, sudo=self.sudo)

    def _wpa(self, *args, timeout=DEFAULT_TIMEOUT) -> CmdResult:
        return self._run(["wpa_cli", "-i", self.iface, *args], timeout=timeout)

    def _require(self, result: CmdResult, what: str) -> str:
        if not result.ok:
            reason = "timed out" if result.timed_out else f"exit code {result.returncode}"
            raise WirelessControlError(f"wpa_cli {what} failed ({reason})", cmd=result.cmd, timed_out=result.timed_out)
        return result.stdout

    # --- wpa_cli ---

    def scan(self) -> bool:
        """Trigger a scan. False when wpa_cli refused (FAIL-BUSY etc.) or failed."""
        r = self._wpa("scan")
        return r.ok and r.output.upper().startswith("OK")

    def scan_results(self):
        return parse_wpa_scan_results(self._require(self._wpa("scan_results"), "scan_results"))

    def status(self) -> SupplicantStatus:
        return parse_wpa_status(self._require(self._wpa("status"), "status"))

    def signal_poll(self) -> SignalPoll:
        return parse_signal_poll(self._require(self._wpa("signal_poll"), "signal_poll"))

    def roam(self, bssid: str, timeout: float = ROAM_TIMEOUT) -> CmdResult:
        return self._wpa("roam", bssid, timeout=timeout)

    def ping(self) -> bool:
        r = self._wpa("ping")
        return r.ok and "PONG" in r.output.upper()

    def network_id_for(self, bssid: str) -> str | None:
        r = self._wpa("list_networks")
        if not r.ok:
            return None
        return parse_list_networks(r.stdout, bssid)

    def select_network(self, network_id: str, timeout: float = ROAM_TIMEOUT) -> CmdResult:
        return self._wpa("select_network", network_id, timeout=timeout)

    # --- link layer ---

    def iw_scan(self, timeout: float = SCAN_TIMEOUT, freqs=None) -> CmdResult:
        cmd = ["iw", "dev", self.iface, "scan"]
        if freqs:
            cmd += ["freq", *map(str, freqs)]
        return self._run(cmd, timeout=timeout)

    def iw_link_bssid(self) -> str | None:
        r = self._run(["iw", "dev", self.iface, "link"])
        return parse_iw_link(r.stdout) if r.ok else None

    def iwconfig_bssid(self) -> str | None:
        r = self._run(["iwconfig", self.iface])
        return parse_iwconfig(r.stdout) if r.ok else None

    def iw_link_ssid(self) -> str | None:
        r = self._run(["iw", "dev", self.iface, "link"])
        return parse_iw_link_ssid(r.stdout) if r.ok else None

    def iwconfig_ssid(self) -> str | None:
        r = self._run(["iwconfig", self.iface])
        return parse_iwconfig_essid(r.stdout) if r.ok else None


# ============================================================
#  ip / ping
# ============================================================

class IpClient:
    def __init__(self, sudo: bool | None = None, runner=run_cmd, resolv_conf: str = RESOLV_CONF):
        self.sudo = needs_sudo() if sudo is None else sudo
        self._runner = runner
        self.resolv_conf = resolv_conf

    def address(self, iface: str) -> str | None:
        r = self._runner(["ip", "-4", "addr", "show", iface], timeout=DEFAULT_TIMEOUT, sudo=False)
        return parse_ip_addr(r.stdout)[0] if r.ok else None

    def gateway(self, iface: str) -> str | None:
        r = self._runner(["ip", "route"], timeout=DEFAULT_TIMEOUT, sudo=False)
        return parse_default_gateway(r.stdout, iface) if r.ok else None

    def ping(self, host: str, wait_s: int = PING_TIMEOUT) -> bool:
        r = self._runner(["ping", "-c", "1", "-W", str(wait_s), host], timeout=wait_s + 3, sudo=False)
        return r.ok

    def link_is_up(self, iface: str) -> bool:
        r = self._runner(["ip", "link", "show", iface, "up"], timeout=DEFAULT_TIMEOUT, sudo=False)
        return r.ok and bool(r.output)

    def set_link(self, iface: str, up: bool) -> bool:
        r = self._runner(["ip", "link", "set", iface, "up" if up else "down"], timeout=DEFAULT_TIMEOUT, sudo=self.sudo)
        return r.ok

    def dns_servers(self) -> list[str]:
        try:
            with open(self.resolv_conf) as f:
                return parse_resolv_conf(f.read())
        except OSError:
            return []

    def network_info(self, iface: str) -> NetworkInfo:
        addr = self._runner(["ip", "-4", "addr", "show", iface], timeout=DEFAULT_TIMEOUT, sudo=False)
        ip_address, cidr = parse_ip_addr(addr.stdout) if addr.ok else (None, None)
        link = self._runner(["ip", "link", "show", iface], timeout=DEFAULT_TIMEOUT, sudo=False)
        return NetworkInfo(
            ip_address=ip_address,
            cidr=cidr,
            gateway=self.gateway(iface),
            dns_servers=self.dns_servers(),
            link_state=parse_link_state(link.stdout) if link.ok else None,
        )


# ============================================================
#  DHCP clients
# ============================================================

class LeaseClient:
    """dhcpcd (daemon) and dhclient (one-shot) front-end."""

    def __init__(self, sudo: bool | None = None, runner=run_cmd, run_dir: str = "/run"):
        self.sudo = needs_sudo() if sudo is None else sudo
        self._runner = runner
        self.run_dir = run_dir

    def _run(self, cmd, timeout=DEFAULT_TIMEOUT) -> CmdResult:
        return self._runner(cmd, timeout=timeout, sudo=self.sudo)

    def run_dir_writable(self) -> bool:
        probe = os.path.join(self.run_dir, ".ssidroam_write_test")
        try:
            with open(probe, "w"):
                pass
            os.remove(probe)
            return True
        except OSError:
            return False

    def dhcpcd_available(self) -> bool:
        return shutil.which("dhcpcd") is not None

    def dhclient_available(self) -> bool:
        return shutil.which("dhclient") is not None

    def dhcpcd_running(self) -> bool:
        r = self._runner(["pgrep", "-f", "dhcpcd"], timeout=DEFAULT_TIMEOUT, sudo=False)
        return r.ok and bool(r.output)

    def dhcpcd_release(self, iface: str) -> CmdResult:
        return self._run(["dhcpcd", "-k", iface], timeout=DHCPCD_TIMEOUT)

    def dhcpcd_renew(self, iface: str) -> CmdResult:
        return self._run(["dhcpcd", "-n", iface], timeout=DHCPCD_TIMEOUT)

    def dhcpcd_stop(self) -> CmdResult:
        return self._run(["pkill", "-x", "dhcpcd"])

    def dhcpcd_launch(self, iface: str) -> CmdResult:
        return self._run(["dhcpcd", iface], timeout=DHCPCD_TIMEOUT)

    def dhcpcd_start(self, iface: str):
        """
        Start dhcpcd for `iface` in the foreground (`-B`) as our child.
        Returns (Popen, log_path); the caller checks it is still alive.
        """
        try:
            os.makedirs(os.path.join(self.run_dir, "dhcpcd"), exist_ok=True)
        except OSError as e:
            logger.debug("could not create %s/dhcpcd, continuing anyway: %s", self.run_dir, e)
        log = tempfile.NamedTemporaryFile("w", prefix=f"dhcpcd_{iface}_", suffix=".log", delete=False)
        cmd = (["sudo"] if self.sudo else []) + ["dhcpcd", "-B", iface]
        try:
            proc = subprocess.Popen(cmd, stdout=log, stderr=subprocess.STDOUT, text=True)
        except FileNotFoundError as e:
            log.write(str(e))
            log.close()
            return None, log.name
        log.close()
        return proc, log.name

    def dhclient_release(self, iface: str) -> CmdResult:
        return self._run(["dhclient", "-r", iface], timeout=DHCPCD_TIMEOUT)

    def dhclient_request(self, iface: str, timeout: float = DHCLIENT_TIMEOUT) -> CmdResult:
        return self._run(["dhclient", "-v", iface], timeout=timeout)
