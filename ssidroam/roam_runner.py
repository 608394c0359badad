"""
roam_runner.py
--------------
The roaming loop: discover -> select -> roam -> reconcile, then sleep a
random number of minutes and do it again until told to stop.
"""

import random
import signal
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ssidroam.cycle_summary import build_cycle_summary, save_cycle_summary
from ssidroam.discovery import APDiscovery
from ssidroam.errors import AddressAcquisitionFailure, RoamingError, TransientScanFailure, WirelessControlError
from ssidroam.freq_catalog import describe
from ssidroam.log_setup import current_iteration, get_logger
from ssidroam.models import AccessPointRecord, AddressResult, RoamingSession, RoamOutcome, RoamState, normalize_bssid
from ssidroam.reconciler import ConnectivityReconciler
from ssidroam.roam_executor import RoamExecutor
from ssidroam.selector import select_next
from ssidroam.shell_cmd_wrapper import IpClient, LeaseClient, WirelessClient

log = get_logger(__name__, "loop")

HEALTH_RETRY_SECONDS = 30


@dataclass
class IterationResult:
    healthy: bool = True
    candidates: List[AccessPointRecord] = field(default_factory=list)
    selected_bssid: Optional[str] = None
    roam: Optional[RoamOutcome] = None
    address: Optional[AddressResult] = None
    error: Optional[str] = None


class RoamingLoop:
    def __init__(self, config, client, ip, discovery, executor, reconciler,
                 stop_event=None, session=None, rng=None, summary_path=None):
        self.config = config
        self.client = client
        self.ip = ip
        self.discovery = discovery
        self.executor = executor
        self.reconciler = reconciler
        self.stop_event = stop_event or threading.Event()
        self.session = session or RoamingSession()
        self.rng = rng or random.Random()
        self.summary_path = summary_path

    @classmethod
    def from_config(cls, config, stop_event=None):
        client = WirelessClient(config.interface)
        ip = IpClient()
        return cls(
            config,
            client,
            ip,
            APDiscovery(client),
            RoamExecutor(client, ssid=config.ssid),
            ConnectivityReconciler(ip, LeaseClient()),
            stop_event=stop_event,
        )

    # --- startup ---

    def log_network_info(self):
        iface = self.config.interface
        info = self.ip.network_info(iface)
        log.info("Current network information:", extra={"phase": "startup"})
        log.info("  Interface %s state: %s", iface, info.link_state or "unknown", extra={"phase": "startup"})
        if info.ip_address:
            log.info("  IP address: %s", info.ip_address, extra={"phase": "startup"})
            log.info("  Subnet: %s", info.cidr, extra={"phase": "startup"})
        else:
            log.info("  IP address: Not assigned", extra={"phase": "startup"})
        log.info("  Gateway: %s", info.gateway or "Not found", extra={"phase": "startup"})
        log.info("  DNS servers: %s", ", ".join(info.dns_servers) or "Not found", extra={"phase": "startup"})

        _, bssid = self.executor.query_current()
        log.info("  Current BSSID: %s", bssid or "Not connected", extra={"phase": "startup"})
        try:
            poll = self.client.signal_poll()
        except WirelessControlError as e:
            log.info("  Signal info: unavailable (%s)", e, extra={"phase": "startup"})
        else:
            log.info("  Signal: %s dBm, link speed: %s Mbps, frequency: %s",
                     poll.rssi, poll.link_speed, describe(poll.frequency) if poll.frequency else "unknown",
                     extra={"phase": "startup"})
        return info

    # --- one iteration ---

    def health_check(self) -> bool:
        iface = self.config.interface
        if not self.ip.link_is_up(iface):
            log.error("Interface %s is down or doesn't exist", iface)
            return False
        if not self.client.ping():
            log.warning("wpa_cli not responding properly on interface %s", iface)
            return False
        return True

    def refresh_current_bssid(self):
        method, bssid = self.executor.query_current()
        self.session.confirm(bssid)
        if bssid:
            log.info("Currently connected to: %s (via %s)", bssid, method)
        else:
            log.info("Not currently associated with any BSSID")
        return bssid

    def adopt_scanned_association(self, candidates):
        """Fill in current_bssid from the discovery scan's associated BSS when status had none."""
        if self.session.current_bssid:
            return None
        associated = normalize_bssid(self.discovery.associated_bssid)
        if not associated or associated not in {normalize_bssid(c.bssid) for c in candidates}:
            return None
        self.session.confirm(associated)
        log.info("Currently connected to: %s (via iw scan)", associated)
        return associated

    def run_iteration(self) -> IterationResult:
        n = self.session.next_iteration()
        current_iteration.set(n)
        log.info("=== Roaming Iteration %d ===", n)
        result = IterationResult()

        if not self.health_check():
            result.healthy = False
            result.error = "interface health check failed"
            return result

        self.refresh_current_bssid()

        try:
            result.candidates = self.discovery.discover(self.config.ssid)
        except TransientScanFailure as e:
            log.warning("%s; will retry next cycle", e, extra={"phase": e.phase})
            result.error = str(e)
            return result

        self.adopt_scanned_association(result.candidates)

        if len(result.candidates) == 1:
            only = result.candidates[0]
            log.info("Only one BSSID available for SSID '%s' (%s), ensuring connection health",
                     self.config.ssid, only.bssid, extra={"phase": "select"})
            if not self.session.current_bssid:
                result.roam = self.executor.roam(only.bssid, self.session)
            if result.roam is None or result.roam.state != RoamState.FAILED:
                result.address = self.reconcile()
            return result

        target, found = select_next(
            result.candidates,
            self.session.current_bssid,
            self.config.min_signal_dbm,
            self.config.preferred_band,
        )
        if not found:
            log.info("No roam target this cycle, staying on %s", self.session.current_bssid or "(none)",
                     extra={"phase": "select"})
            result.address = self.reconcile()
            return result

        result.selected_bssid = target
        result.roam = self.executor.roam(target, self.session)
        if result.roam.state == RoamState.FAILED:
            log.error("Roaming failed in iteration %d, will retry in next cycle", n, extra={"phase": "roam"})
            result.error = f"roam to {target} failed"
            return result

        result.address = self.reconcile()
        return result

    def reconcile(self) -> AddressResult:
        try:
            address = self.reconciler.require_address(self.config.interface)
        except AddressAcquisitionFailure as e:
            log.error("%s; continuing, the next cycle may recover", e, extra={"phase": e.phase})
            return e.result

        if self.session.is_first_connection:
            log.info("First connection successful", extra={"phase": "connectivity"})
            self.session.is_first_connection = False
        return address

    # --- forever ---

    def next_wait_minutes(self) -> int:
        return self.rng.randint(self.config.min_wait_minutes, self.config.max_wait_minutes)

    def run_forever(self):
        log.info("Starting roaming loop for SSID '%s' on %s", self.config.ssid, self.config.interface,
                 extra={"phase": "startup"})
        self.log_network_info()

        while not self.stop_event.is_set():
            try:
                result = self.run_iteration()
            except RoamingError as e:
                log.error("Iteration failed: %s", e, extra={"phase": e.phase})
                result = IterationResult(error=str(e))
            except Exception as e:
                log.exception("Unexpected error in iteration: %s", e)
                result = IterationResult(error=f"{type(e).__name__}: {e}")

            if result.healthy:
                wait_minutes = self.next_wait_minutes()
                wait_seconds = wait_minutes * 60
                log.info("Randomly selected wait time: %d minutes", wait_minutes)
            else:
                wait_minutes = None
                wait_seconds = HEALTH_RETRY_SECONDS
                log.error("Interface health check failed. Waiting %d seconds before retry...", wait_seconds)

            self.write_summary(result, wait_minutes)
            if self.stop_event.wait(wait_seconds):
                break

        log.info("Roaming loop stopped after %d iterations", self.session.iteration_count)

    def write_summary(self, result: IterationResult, wait_minutes):
        summary = build_cycle_summary(
            self.config,
            self.session,
            candidates=result.candidates,
            selected_bssid=result.selected_bssid,
            roam_outcome=result.roam,
            address_result=result.address,
            network_info=self.ip.network_info(self.config.interface),
            next_wait_minutes=wait_minutes,
            error=result.error,
        )
        try:
            return save_cycle_summary(summary, self.summary_path)
        except OSError as e:
            log.warning("Could not write cycle summary: %s", e)
            return None

    def stop(self):
        self.stop_event.set()


def install_signal_handlers(stop_event: threading.Event):
    """SIGINT/SIGTERM set the stop event; the loop exits at its next wait."""

    def handler(signum, frame):
        log.info("Received %s, stopping...", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)
