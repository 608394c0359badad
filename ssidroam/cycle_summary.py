"""
cycle_summary.py
----------------
Per-iteration status snapshot of the roaming loop.

Combines:
  • Session view (current BSSID, iteration, first-connection flag)
  • Scan candidates and the selection made
  • Roam outcome, address result and interface network info
"""

import json
import os
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from ssidroam.common import get_summary_path


def build_cycle_summary(
    config,
    session,
    candidates: List = None,
    selected_bssid: Optional[str] = None,
    roam_outcome=None,
    address_result=None,
    network_info=None,
    next_wait_minutes: Optional[int] = None,
    error: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> Dict:
    """Aggregate one iteration into a JSON-ready structure."""
    return {
        "timestamp": timestamp or datetime.now().astimezone().isoformat(),
        "iteration": session.iteration_count,
        "ssid": config.ssid,
        "interface": config.interface,
        "preferred_band": config.preferred_band.value,
        "min_signal_dbm": config.min_signal_dbm,
        "current_bssid": session.current_bssid or None,
        "first_connection_pending": session.is_first_connection,
        "candidates": [c.to_dict() for c in candidates or []],
        "selected_bssid": selected_bssid,
        "roam": roam_outcome.to_dict() if roam_outcome else None,
        "address": address_result.to_dict() if address_result else None,
        "network": asdict(network_info) if network_info else None,
        "next_wait_minutes": next_wait_minutes,
        "error": error,
    }


def save_cycle_summary(summary: Dict, output_path: Optional[str] = None) -> str:
    """Atomically write the summary (tmp file + fsync + replace)."""
    output_path = output_path or get_summary_path()
    tmp_path = output_path + ".tmp"

    with open(tmp_path, "w") as f:
        json.dump(summary, f, indent=2, default=str)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp_path, output_path)
    return output_path
