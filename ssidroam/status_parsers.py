"""
status_parsers.py
-----------------
Parsers for the "who am I connected to" and IP-layer command outputs.
Everything here is pure text -> typed value.
"""

import re

from ssidroam.iw_scan_parser import to_int
from ssidroam.models import SupplicantStatus, SignalPoll, is_live_bssid, normalize_bssid

MAC_RE = re.compile(r"([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})")
ESSID_RE = re.compile(r'ESSID:"([^"]*)"')


def _key_values(text: str) -> dict[str, str]:
    values = {}
    for line in (text or "").splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values


def parse_wpa_status(text: str) -> SupplicantStatus:
    kv = _key_values(text)
    bssid = kv.get("bssid")
    return SupplicantStatus(
        bssid=normalize_bssid(bssid) if is_live_bssid(bssid) else None,
        ssid=kv.get("ssid"),
        freq=to_int(kv.get("freq")),
        wpa_state=kv.get("wpa_state"),
        ip_address=kv.get("ip_address"),
        network_id=kv.get("id"),
    )


def parse_signal_poll(text: str) -> SignalPoll:
    kv = _key_values(text)
    return SignalPoll(
        rssi=to_int(kv.get("RSSI")),
        link_speed=to_int(kv.get("LINKSPEED")),
        noise=to_int(kv.get("NOISE")),
        frequency=to_int(kv.get("FREQUENCY")),
    )


def parse_iw_link(text: str) -> str | None:
    """`iw dev <iface> link` -> 'Connected to aa:bb:cc:dd:ee:ff (on wlan0)'."""
    for line in (text or "").splitlines():
        if "Connected to" in line:
            m = MAC_RE.search(line)
            if m and is_live_bssid(m.group(1)):
                return normalize_bssid(m.group(1))
    return None


def parse_iwconfig(text: str) -> str | None:
    """`iwconfig <iface>` -> '... Access Point: AA:BB:CC:DD:EE:FF'."""
    for line in (text or "").splitlines():
        if "Access Point:" in line:
            m = MAC_RE.search(line.split("Access Point:", 1)[1])
            if m and is_live_bssid(m.group(1)):
                return normalize_bssid(m.group(1))
    return None


def parse_iw_link_ssid(text: str) -> str | None:
    """The 'SSID: name' line of `iw dev <iface> link` output."""
    for line in (text or "").splitlines():
        stripped = line.strip()
        if stripped.startswith("SSID:"):
            return stripped[len("SSID:"):].strip() or None
    return None


def parse_iwconfig_essid(text: str) -> str | None:
    """`iwconfig <iface>` -> 'wlan0  IEEE 802.11  ESSID:"name"'; off/any means none."""
    m = ESSID_RE.search(text or "")
    return m.group(1) if m and m.group(1) else None


def parse_iw_associated(text: str) -> str | None:
    """The BSS header flagged '-- associated' in an iw scan dump."""
    for line in (text or "").splitlines():
        if line.lstrip().startswith("BSS") and "associated" in line:
            m = MAC_RE.search(line)
            if m and is_live_bssid(m.group(1)):
                return normalize_bssid(m.group(1))
    return None


def parse_list_networks(text: str, bssid: str) -> str | None:
    """Network id of the `wpa_cli list_networks` row mentioning `bssid`."""
    target = normalize_bssid(bssid)
    for line in (text or "").splitlines():
        if line.lower().startswith("network id"):
            continue
        fields = [f.strip() for f in line.split("\t")]
        if not fields or not fields[0].isdigit():
            continue
        if any(normalize_bssid(f) == target for f in fields[1:]):
            return fields[0]
    return None


def parse_ip_addr(text: str) -> tuple[str | None, str | None]:
    """First IPv4 address on the interface, as (address, address/prefix)."""
    m = re.search(r"inet (\d+\.\d+\.\d+\.\d+)(/\d+)?", text or "")
    if not m:
        return None, None
    address = m.group(1)
    return address, address + (m.group(2) or "")


def parse_default_gateway(route_text: str, iface: str) -> str | None:
    for line in (route_text or "").splitlines():
        tokens = line.split()
        if not tokens or tokens[0] != "default":
            continue
        fields = dict(zip(tokens[1::2], tokens[2::2])) if len(tokens) > 2 else {}
        if fields.get("dev") != iface:
            continue
        if fields.get("via"):
            return fields["via"]
    return None


def parse_link_state(text: str) -> str | None:
    m = re.search(r"state (\w+)", text or "")
    return m.group(1) if m else None


def parse_resolv_conf(text: str) -> list[str]:
    servers = []
    for line in (text or "").splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            servers.append(parts[1])
    return servers
