"""
Shared pytest fixtures for the roaming controller test suite.

Provides captured command output, a scripted command runner and fake
clients so no test ever touches a real radio or DHCP client.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ssidroam.models import (
    AccessPointRecord,
    AddressResult,
    AddressStatus,
    CmdResult,
    NetworkInfo,
    SignalPoll,
    SupplicantStatus,
)


# =============================================================================
# Captured command output
# =============================================================================

IW_SCAN_OUTPUT = "\n".join([
    "BSS aa:bb:cc:00:00:01(on wlan0) -- associated",
    "\tTSF: 5305243551 usec (0d, 01:28:25)",
    "\tfreq: 5180",
    "\tbeacon interval: 100 TUs",
    "\tcapability: ESS Privacy SpectrumMgmt (0x0111)",
    "\tsignal: -52.00 dBm",
    "\tlast seen: 20 ms ago",
    "\tSSID: CorpNet",
    "\tSupported rates: 6.0* 9.0 12.0* 18.0 24.0* 36.0 48.0 54.0",
    "BSS aa:bb:cc:00:00:02(on wlan0)",
    "\tfreq: 2437.0",
    "\tsignal: -61.50 dBm",
    "\tSSID: CorpNet",
    "BSS aa:bb:cc:00:00:03(on wlan0)",
    "\tfreq: 6115",
    "\tsignal: -70.00 dBm",
    "\tSSID: CorpNet",
    "BSS 11:22:33:44:55:66(on wlan0)",
    "\tfreq: 5745",
    "\tsignal: -40.00 dBm",
    "\tSSID: Guest",
    "BSS 11:22:33:44:55:77(on wlan0)",
    "\tfreq: 2412",
    "\tsignal: -80.00 dBm",
    "\tSSID:",
])

WPA_SCAN_RESULTS = "\n".join([
    "bssid / frequency / signal level / flags / ssid",
    "aa:bb:cc:00:00:01\t5180\t-52\t[WPA2-PSK-CCMP][ESS]\tCorpNet",
    "aa:bb:cc:00:00:02\t2437\t-61\t[WPA2-PSK-CCMP][ESS]\tCorpNet",
    "11:22:33:44:55:66\t5745\t-40\t[ESS]\tGuest Wi-Fi",
    "11:22:33:44:55:77\t2412\t-80\t[ESS]",
])

WPA_STATUS = "\n".join([
    "bssid=AA:BB:CC:00:00:01",
    "freq=5180",
    "ssid=CorpNet",
    "id=0",
    "mode=station",
    "pairwise_cipher=CCMP",
    "key_mgmt=WPA2-PSK",
    "wpa_state=COMPLETED",
    "ip_address=192.168.1.23",
    "address=dc:a6:32:00:00:99",
])

IP_ADDR_OUTPUT = "\n".join([
    "3: wlan0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc pfifo_fast state UP group default qlen 1000",
    "    inet 192.168.1.23/24 brd 192.168.1.255 scope global dynamic noprefixroute wlan0",
    "       valid_lft 86011sec preferred_lft 75211sec",
])

IP_ROUTE_OUTPUT = "\n".join([
    "default via 192.168.1.1 dev wlan0 proto dhcp src 192.168.1.23 metric 303",
    "default via 10.0.0.1 dev eth0 proto static metric 100",
    "192.168.1.0/24 dev wlan0 proto dhcp scope link src 192.168.1.23 metric 303",
])


@pytest.fixture
def iw_scan_output() -> str:
    return IW_SCAN_OUTPUT


@pytest.fixture
def wpa_scan_results() -> str:
    return WPA_SCAN_RESULTS


# =============================================================================
# Record helpers
# =============================================================================


def ap(bssid: str, signal: int, freq: int, ssid: str = "Net") -> AccessPointRecord:
    return AccessPointRecord(bssid=bssid, frequency_mhz=freq, signal_dbm=signal, ssid=ssid)


def ok(stdout: str = "", cmd: Optional[List[str]] = None) -> CmdResult:
    return CmdResult(cmd or [], 0, stdout, "")


def fail(returncode: int = 1, stdout: str = "", stderr: str = "", timed_out: bool = False) -> CmdResult:
    return CmdResult([], None if timed_out else returncode, stdout, stderr, timed_out=timed_out)


# =============================================================================
# Scripted runner / fakes
# =============================================================================


class FakeRunner:
    """
    Stand-in for shell_cmd_wrapper.run_cmd. Responses are keyed by the
    command joined with spaces; the longest matching prefix wins.
    """

    def __init__(self, responses: Optional[Dict[str, CmdResult]] = None):
        self.responses = dict(responses or {})
        self.calls: List[dict] = []

    def __call__(self, cmd, timeout=None, sudo=False):
        self.calls.append({"cmd": list(cmd), "timeout": timeout, "sudo": sudo})
        line = " ".join(cmd)
        matches = [k for k in self.responses if line.startswith(k)]
        if not matches:
            return CmdResult(list(cmd), 1, "", "unscripted")
        result = self.responses[max(matches, key=len)]
        return CmdResult(list(cmd), result.returncode, result.stdout, result.stderr, result.timed_out)

    def commands(self) -> List[str]:
        return [" ".join(c["cmd"]) for c in self.calls]


class FakeWirelessClient:
    """Scriptable wireless client for discovery/executor/loop tests."""

    def __init__(self):
        self.iw_scan_result = fail()
        self.iw_full_scan_result = None
        self.scan_ok = True
        self.scan_results_queue: List[List[AccessPointRecord]] = []
        self.status_bssids: List[Optional[str]] = []
        self.iw_link: Optional[str] = None
        self.iwconfig: Optional[str] = None
        self.ssid = "Net"
        self.link_ssid: Optional[str] = None
        self.roam_result = ok("OK")
        self.select_result = ok("OK")
        self.network_id: Optional[str] = None
        self.alive = True
        self.on_roam = None
        self.calls: List[tuple] = []

    def iw_scan(self, timeout=None, freqs=None):
        self.calls.append(("iw_scan", tuple(freqs or ())))
        if freqs and self.iw_full_scan_result is not None:
            return self.iw_full_scan_result
        return self.iw_scan_result

    def scan(self):
        self.calls.append(("scan",))
        return self.scan_ok

    def scan_results(self):
        self.calls.append(("scan_results",))
        return self.scan_results_queue.pop(0) if self.scan_results_queue else []

    def status(self):
        self.calls.append(("status",))
        bssid = self.status_bssids.pop(0) if len(self.status_bssids) > 1 else (self.status_bssids or [None])[0]
        return SupplicantStatus(bssid=bssid, ssid=self.ssid if bssid else None, wpa_state="COMPLETED" if bssid else "SCANNING")

    def iw_link_bssid(self):
        return self.iw_link

    def iwconfig_bssid(self):
        return self.iwconfig

    def iw_link_ssid(self):
        return self.link_ssid

    def iwconfig_ssid(self):
        return self.link_ssid

    def roam(self, bssid, timeout=None):
        self.calls.append(("roam", bssid))
        if self.on_roam:
            self.on_roam(bssid)
        return self.roam_result

    def network_id_for(self, bssid):
        self.calls.append(("network_id_for", bssid))
        return self.network_id

    def select_network(self, network_id, timeout=None):
        self.calls.append(("select_network", network_id))
        return self.select_result

    def ping(self):
        return self.alive

    def signal_poll(self):
        return SignalPoll(rssi=-55, link_speed=866, noise=None, frequency=5180)

    def called(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeIpClient:
    def __init__(self, addresses=None, gateway="192.168.1.1", reachable=True, link_up=True):
        # successive address() answers; the last one repeats
        self.addresses = list(addresses or [None])
        self.gateway_value = gateway
        self.reachable = reachable
        self.link_up = link_up
        self.link_changes: List[bool] = []
        self.pinged: List[str] = []

    def address(self, iface):
        return self.addresses.pop(0) if len(self.addresses) > 1 else self.addresses[0]

    def gateway(self, iface):
        return self.gateway_value

    def ping(self, host, wait_s=2):
        self.pinged.append(host)
        return self.reachable

    def link_is_up(self, iface):
        return self.link_up

    def set_link(self, iface, up):
        self.link_changes.append(up)
        return True

    def network_info(self, iface):
        return NetworkInfo(ip_address=self.addresses[0], cidr=None, gateway=self.gateway_value,
                           dns_servers=["1.1.1.1"], link_state="UP" if self.link_up else "DOWN")


class FakeProcess:
    """Popen stand-in; `returncode=None` means still running."""

    def __init__(self, returncode=None, pid=4242):
        self.returncode = returncode
        self.pid = pid

    def poll(self):
        return self.returncode


class FakeLeaseClient:
    def __init__(self, writable=True, dhcpcd=True, running=True, dhclient=True):
        self.run_dir = "/run"
        self.writable = writable
        self.dhcpcd = dhcpcd
        self.running = running
        self.dhclient = dhclient
        self.release_result = ok()
        self.renew_result = ok()
        self.launch_result = ok()
        # what dhcpcd_start hands back; None means the binary could not be launched
        self.start_process = None
        self.dhclient_result = ok()
        self.calls: List[str] = []

    def run_dir_writable(self):
        return self.writable

    def dhcpcd_available(self):
        return self.dhcpcd

    def dhclient_available(self):
        return self.dhclient

    def dhcpcd_running(self):
        return self.running

    def dhcpcd_release(self, iface):
        self.calls.append("dhcpcd -k")
        return self.release_result

    def dhcpcd_renew(self, iface):
        self.calls.append("dhcpcd -n")
        return self.renew_result

    def dhcpcd_stop(self):
        self.calls.append("pkill dhcpcd")
        return ok()

    def dhcpcd_launch(self, iface):
        self.calls.append("dhcpcd launch")
        return self.launch_result

    def dhcpcd_start(self, iface):
        self.calls.append("dhcpcd start")
        return self.start_process, "/nonexistent/dhcpcd.log"

    def dhclient_release(self, iface):
        self.calls.append("dhclient -r")
        return ok()

    def dhclient_request(self, iface, timeout=None):
        self.calls.append("dhclient -v")
        return self.dhclient_result


@pytest.fixture
def sleeps() -> List[float]:
    """Collects requested sleep durations; pass `sleeps.append` as the sleep function."""
    return []


@pytest.fixture
def data_dir(tmp_path, monkeypatch) -> Path:
    monkeypatch.setenv("ROAM_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def ok_address() -> AddressResult:
    return AddressResult(AddressStatus.OK, "192.168.1.23", "192.168.1.1", None)


@pytest.fixture
def restore_root_logging():
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    import logging

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
