"""
iw_scan_parser.py
-----------------
Turns raw scan dumps into AccessPointRecord lists.

Sources:
  • `iw dev <iface> scan`: parsed three independent ways
  • `wpa_cli scan_results`: tab-delimited table

The iw dump is sometimes truncated or oddly indented, so the discovery
layer runs every iw strategy over the same text and merges the results.
"""

import logging
import re
from typing import List

from ssidroam.models import AccessPointRecord, normalize_bssid

logger = logging.getLogger(__name__)

BSS_HEADER_RE = re.compile(r"^\s*BSS\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})")
SIGNAL_RE = re.compile(r"^\s*signal:\s*(-?[0-9.]+)")
FREQ_RE = re.compile(r"^\s*freq:\s*([0-9.]+)")
SSID_RE = re.compile(r"^\s*SSID:\s?(.*)$")


def clean_ssid(raw: str | None) -> str:
    if raw is None:
        return ""
    ssid = raw.strip()
    if len(ssid) >= 2 and ssid.startswith('"') and ssid.endswith('"'):
        ssid = ssid[1:-1]
    return ssid


def to_int(value) -> int | None:
    """Numeric text to int, truncating toward zero ("-67.9" -> -67)."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _make_record(bssid, freq, signal, ssid) -> AccessPointRecord | None:
    freq_i = to_int(freq)
    signal_i = to_int(signal)
    if not bssid or freq_i is None or signal_i is None:
        return None
    return AccessPointRecord(
        bssid=normalize_bssid(bssid),
        frequency_mhz=freq_i,
        signal_dbm=signal_i,
        ssid=clean_ssid(ssid),
    )


# ============================================================
#  iw strategies
# ============================================================

def parse_iw_blocks(iw_output: str) -> List[AccessPointRecord]:
    """Structured parse: split on the BSS header, read fields inside each block."""
    results: List[AccessPointRecord] = []

    # Split blocks robustly (each "BSS ..." starts a new section)
    blocks = re.split(r"(?m)^\s*(?=BSS\s+[0-9A-Fa-f:]{17}\b)", iw_output or "")
    for raw_block in blocks:
        if not raw_block.strip():
            continue

        lines = raw_block.strip().splitlines()
        bssid_match = BSS_HEADER_RE.match(lines[0])
        if not bssid_match:
            continue
        bssid = bssid_match.group(1)

        freq = signal = ssid = None
        for line in lines[1:]:
            if freq is None and (m := FREQ_RE.match(line)):
                freq = m.group(1)
            elif signal is None and (m := SIGNAL_RE.match(line)):
                signal = m.group(1)
            elif ssid is None and (m := SSID_RE.match(line)):
                ssid = m.group(1)

        record = _make_record(bssid, freq, signal, ssid)
        if record:
            results.append(record)

    logger.debug("iw block parse: %d BSS entries", len(results))
    return results


def parse_iw_lines(iw_output: str) -> List[AccessPointRecord]:
    """Line-oriented fallback: a record ends at a blank line, a new BSS header, or EOF."""
    results: List[AccessPointRecord] = []
    bssid = freq = signal = ssid = None

    def flush():
        record = _make_record(bssid, freq, signal, ssid)
        if record:
            results.append(record)

    for line in (iw_output or "").splitlines():
        header = BSS_HEADER_RE.match(line)
        if header:
            flush()
            bssid, freq, signal, ssid = header.group(1), None, None, None
            continue
        if not line.strip():
            flush()
            bssid = freq = signal = ssid = None
            continue
        stripped = line.strip()
        if stripped.startswith("signal:") and signal is None:
            signal = stripped.split()[1] if len(stripped.split()) > 1 else None
        elif stripped.startswith("freq:") and freq is None:
            freq = stripped.split()[1] if len(stripped.split()) > 1 else None
        elif stripped.startswith("SSID:") and ssid is None:
            ssid = stripped[len("SSID:"):]
    flush()

    logger.debug("iw line parse: %d BSS entries", len(results))
    return results


def parse_iw_direct(iw_output: str, target_ssid: str, lookahead: int = 20) -> List[AccessPointRecord]:
    """
    Direct lookup: for every `SSID: <target>` line, walk back to the owning
    BSS header and read signal/freq from the lines that follow that header.
    """
    lines = (iw_output or "").splitlines()
    results: List[AccessPointRecord] = []
    seen = set()

    for idx, line in enumerate(lines):
        m = SSID_RE.match(line)
        if not m or clean_ssid(m.group(1)) != target_ssid:
            continue
        header_idx = next((i for i in range(idx, -1, -1) if BSS_HEADER_RE.match(lines[i])), None)
        if header_idx is None:
            continue
        bssid = BSS_HEADER_RE.match(lines[header_idx]).group(1).lower()
        if bssid in seen:
            continue
        seen.add(bssid)

        freq = signal = None
        for follow in lines[header_idx + 1: header_idx + 1 + lookahead]:
            if BSS_HEADER_RE.match(follow):
                break
            if freq is None and (fm := FREQ_RE.match(follow)):
                freq = fm.group(1)
            elif signal is None and (sm := SIGNAL_RE.match(follow)):
                signal = sm.group(1)
        record = _make_record(bssid, freq, signal, target_ssid)
        if record:
            results.append(record)

    logger.debug("iw direct parse: %d BSS entries for %r", len(results), target_ssid)
    return results


# ============================================================
#  wpa_cli scan_results
# ============================================================

def parse_wpa_scan_results(text: str) -> List[AccessPointRecord]:
    """Parse `wpa_cli scan_results`: bssid<TAB>frequency<TAB>signal<TAB>flags<TAB>ssid."""
    results: List[AccessPointRecord] = []
    for line in (text or "").splitlines():
        if not line.strip() or line.lower().startswith("bssid"):
            continue
        parts = line.split("\t", 4)
        if len(parts) < 3:
            continue
        ssid = parts[4] if len(parts) > 4 else ""
        record = _make_record(parts[0].strip(), parts[1].strip(), parts[2].strip(), ssid)
        if record:
            results.append(record)
    logger.debug("wpa_cli scan_results parse: %d entries", len(results))
    return results


# ============================================================
#  merging
# ============================================================

def merge_records(*record_lists: List[AccessPointRecord]) -> List[AccessPointRecord]:
    """Union of several strategy outputs; the first record per BSSID wins, order kept."""
    merged: dict[str, AccessPointRecord] = {}
    for records in record_lists:
        for record in records:
            key = normalize_bssid(record.bssid)
            if key not in merged:
                merged[key] = record
    return list(merged.values())

