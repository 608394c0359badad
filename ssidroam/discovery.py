"""
discovery.py
------------
Finds the access points broadcasting the target SSID.

Primary path is `iw dev <iface> scan`, parsed by every iw strategy and
merged. When that yields nothing for the SSID, scan once more with every
2.4/5/6 GHz channel listed explicitly, then fall back to `wpa_cli scan` +
`scan_results` with bounded retries.
"""

import time
from typing import List

from ssidroam.errors import TransientScanFailure, WirelessControlError
from ssidroam.freq_catalog import all_scan_frequencies, describe
from ssidroam.iw_scan_parser import merge_records, parse_iw_blocks, parse_iw_direct, parse_iw_lines
from ssidroam.log_setup import get_logger
from ssidroam.models import AccessPointRecord
from ssidroam.status_parsers import parse_iw_associated
from ssidroam.polling import poll_until

log = get_logger(__name__, "scan")

SCAN_ATTEMPTS = 3
RETRY_DELAY = 3.0
SETTLE_DELAY = 8.0


class APDiscovery:
    def __init__(self, client, attempts=SCAN_ATTEMPTS, retry_delay=RETRY_DELAY,
                 settle_delay=SETTLE_DELAY, sleep=time.sleep):
        self.client = client
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.settle_delay = settle_delay
        self.sleep = sleep
        # BSS flagged "-- associated" in the last iw scan, if any
        self.associated_bssid = None

    def discover(self, ssid: str) -> List[AccessPointRecord]:
        """Return the APs for `ssid`; raises TransientScanFailure when none are found."""
        if not ssid:
            raise ValueError("ssid must be a non-empty string")

        log.info("Scanning for SSID: %s", ssid)
        self.associated_bssid = None
        records = self._iw_discover(ssid)
        if not records:
            log.info("No target records from iw scan, retrying across all channels")
            records = self._iw_discover(ssid, all_scan_frequencies())
        if not records:
            log.info("No target records from full-spectrum iw scan, falling back to wpa_cli scan")
            records = self._wpa_discover(ssid)

        if not records:
            raise TransientScanFailure(
                f"no BSSIDs found for SSID '{ssid}' after {self.attempts} attempts",
                attempts=self.attempts,
            )

        for r in records:
            log.info("  Found BSSID: %s, Signal: %d dBm, Frequency: %s", r.bssid, r.signal_dbm, describe(r.frequency_mhz))
        log.info("Found %d BSSIDs for SSID '%s'", len(records), ssid)
        return records

    def _iw_discover(self, ssid, freqs=None):
        r = self.client.iw_scan(freqs=freqs)
        if r.timed_out:
            log.warning("iw scan timed out")
            return []
        if not r.ok or not r.output:
            log.info("iw scan returned no data (exit code %s)", r.returncode)
            return []
        self.associated_bssid = self.associated_bssid or parse_iw_associated(r.stdout)
        merged = merge_records(
            parse_iw_blocks(r.stdout),
            parse_iw_lines(r.stdout),
            parse_iw_direct(r.stdout, ssid),
        )
        return self._keep_target(merged, ssid)

    def _wpa_discover(self, ssid):
        def attempt():
            if not self.client.scan():
                log.info("wpa_cli scan trigger failed")
                return None
            # give the radio time to sweep every band
            self.sleep(self.settle_delay)
            try:
                results = self.client.scan_results()
            except WirelessControlError as e:
                log.warning("Reading scan results failed: %s", e)
                return None
            return self._keep_target(results, ssid)

        def miss(n):
            log.info("Scan attempt %d of %d returned no results for '%s', retrying...", n, self.attempts, ssid)

        return poll_until(attempt, interval=self.retry_delay, max_attempts=self.attempts,
                          sleep=self.sleep, on_miss=miss) or []

    def _keep_target(self, records, ssid):
        kept = []
        other = 0
        for r in records:
            if r.ssid == ssid:
                kept.append(r)
            elif not r.ssid:
                log.debug("Hidden/empty SSID: BSSID=%s, Signal=%d dBm, Freq=%d MHz", r.bssid, r.signal_dbm, r.frequency_mhz)
            else:
                other += 1
        log.debug("Scan analysis: %d total, %d matching '%s', %d other SSIDs", len(records), len(kept), ssid, other)
        return kept
