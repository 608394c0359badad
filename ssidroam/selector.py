"""
selector.py
-----------
Pure roam-target selection. No I/O beyond debug logging.
"""

from typing import Iterable, List

from ssidroam.log_setup import get_logger
from ssidroam.models import AccessPointRecord, normalize_bssid

log = get_logger(__name__, "select")


def filter_by_signal(records: Iterable[AccessPointRecord], min_signal_dbm: int) -> List[AccessPointRecord]:
    kept = []
    for r in records:
        if r.signal_dbm >= min_signal_dbm:
            kept.append(r)
        else:
            log.info("  BSSID FILTERED: %s (signal: %d dBm < %d dBm)", r.bssid, r.signal_dbm, min_signal_dbm)
    return kept


def exclude_current(records: Iterable[AccessPointRecord], current_bssid: str | None) -> List[AccessPointRecord]:
    current = normalize_bssid(current_bssid)
    if not current:
        return list(records)
    return [r for r in records if normalize_bssid(r.bssid) != current]


def strongest(records: List[AccessPointRecord]) -> AccessPointRecord:
    """Max signal; on ties the earliest record wins."""
    best = records[0]
    for r in records[1:]:
        if r.signal_dbm > best.signal_dbm:
            best = r
    return best


def select_next(
    records: Iterable[AccessPointRecord],
    current_bssid: str | None,
    min_signal_dbm: int,
    preferred_band: str,
) -> tuple[str | None, bool]:
    """
    Pick the next BSSID to roam to.

    Returns (bssid, True) on a selection, (None, False) when nothing passes
    the signal floor or the only survivor is the current BSSID.
    """
    preferred = getattr(preferred_band, "value", preferred_band)

    eligible = filter_by_signal(records, min_signal_dbm)
    if not eligible:
        log.info("No BSSID meets the %d dBm signal floor", min_signal_dbm)
        return None, False

    available = exclude_current(eligible, current_bssid)
    if not available:
        log.info("No different BSSIDs available for roaming (current: %s)", current_bssid)
        return None, False

    on_band = [r for r in available if r.band == preferred]
    if on_band:
        choice = strongest(on_band)
        log.info("Selected from preferred band: %s with signal %d dBm on %s",
                 choice.bssid, choice.signal_dbm, choice.band)
    else:
        choice = strongest(available)
        log.info("No preferred band (%s) candidates, selected best overall: %s with signal %d dBm on %s",
                 preferred, choice.bssid, choice.signal_dbm, choice.band)
    return choice.bssid, True
