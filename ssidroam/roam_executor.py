"""
roam_executor.py
----------------
Issues a roam and confirms where the radio actually ended up.

  Idle -> Roaming -> Verifying -> Connected | Failed

Verification asks three independent sources in order (wpa_cli status,
iw link, iwconfig) and takes the first live BSSID. Landing on a different
BSSID of the same SSID is a degraded success; landing on another network
is a failure.
"""

import time

from ssidroam.errors import RoamCommandFailure, WirelessControlError
from ssidroam.log_setup import get_logger
from ssidroam.models import RoamOutcome, RoamState, RoamingSession, is_live_bssid, normalize_bssid
from ssidroam.polling import poll_until

log = get_logger(__name__, "roam")

SETTLE_DELAY = 3.0
ALT_SETTLE_DELAY = 2.0
VERIFY_INTERVAL = 1.0
VERIFY_ATTEMPTS = 8


class RoamExecutor:
    def __init__(self, client, ssid=None, settle_delay=SETTLE_DELAY, alt_settle_delay=ALT_SETTLE_DELAY,
                 verify_interval=VERIFY_INTERVAL, verify_attempts=VERIFY_ATTEMPTS, sleep=time.sleep):
        self.client = client
        self.ssid = ssid
        self.settle_delay = settle_delay
        self.alt_settle_delay = alt_settle_delay
        self.verify_interval = verify_interval
        self.verify_attempts = verify_attempts
        self.sleep = sleep
        self.state = RoamState.IDLE
        # (name, bssid source, ssid source)
        self.verifiers = [
            ("wpa_cli status", self._status_bssid, self._status_ssid),
            ("iw link", self.client.iw_link_bssid, self.client.iw_link_ssid),
            ("iwconfig", self.client.iwconfig_bssid, self.client.iwconfig_ssid),
        ]

    # --- "who am I connected to" ---

    def _status_bssid(self):
        try:
            return self.client.status().bssid
        except WirelessControlError as e:
            log.debug("wpa_cli status unavailable: %s", e)
            return None

    def _status_ssid(self):
        try:
            return self.client.status().ssid
        except WirelessControlError as e:
            log.debug("wpa_cli status unavailable: %s", e)
            return None

    def current_ssid(self) -> str | None:
        for _, _, ssid_of in self.verifiers:
            ssid = ssid_of()
            if ssid:
                return ssid
        return None

    def query_current(self) -> tuple[str | None, str | None]:
        """(method, bssid) from the first verification source reporting a live BSSID."""
        for name, bssid_of, _ in self.verifiers:
            bssid = bssid_of()
            if is_live_bssid(bssid):
                return name, normalize_bssid(bssid)
        return None, None

    # --- state machine ---

    def _enter(self, state: RoamState, outcome: RoamOutcome):
        log.debug("roam state %s -> %s", self.state.value, state.value)
        self.state = state
        outcome.state = state

    def roam(self, target_bssid: str, session: RoamingSession) -> RoamOutcome:
        target = normalize_bssid(target_bssid)
        if not target:
            raise ValueError("target BSSID must not be empty")

        self.state = RoamState.IDLE
        outcome = RoamOutcome(target_bssid=target)

        if session.current_bssid and normalize_bssid(session.current_bssid) == target:
            log.info("Already connected to %s, skipping roam", target)
            return self._skip(outcome, target, "session")

        fresh = self._status_bssid()
        if fresh and normalize_bssid(fresh) == target:
            log.info("Safety check: already connected to %s (verified via wpa_cli), skipping roam", target)
            session.confirm(fresh)
            return self._skip(outcome, target, "wpa_cli status")

        previous = session.current_bssid or normalize_bssid(fresh)
        self._enter(RoamState.ROAMING, outcome)
        log.info("Attempting to roam to %s...", target)
        command_failed = False
        try:
            self._issue_roam(target, outcome)
        except RoamCommandFailure as e:
            command_failed = True
            log.warning("%s", e)

        self.sleep(self.settle_delay)
        self._enter(RoamState.VERIFYING, outcome)
        method, actual = self._verify(target)

        if actual is None:
            self._enter(RoamState.FAILED, outcome)
            reason = "timeout" if outcome.command_timed_out else "no BSSID reported by any method"
            log.error("Failed to roam to %s (%s)", target, reason)
            return outcome

        outcome.actual_bssid = actual
        outcome.method = method

        if actual == target:
            self._enter(RoamState.CONNECTED, outcome)
            session.confirm(actual)
            log.info("Roam successful - connected to target BSSID %s (via %s)", actual, method)
            return outcome

        if self.ssid:
            outcome.actual_ssid = self.current_ssid()
            if outcome.actual_ssid != self.ssid:
                self._enter(RoamState.FAILED, outcome)
                session.confirm(actual)
                log.error("Roam to %s left the radio on %s, SSID %s instead of %s", target, actual,
                          outcome.actual_ssid or "unknown", self.ssid)
                return outcome

        if command_failed and actual == normalize_bssid(previous):
            # nothing moved: the command path failed and we are still where we were
            self._enter(RoamState.FAILED, outcome)
            session.confirm(actual)
            log.error("Failed to roam to %s; still associated with %s", target, actual)
            return outcome

        self._enter(RoamState.CONNECTED, outcome)
        outcome.degraded = True
        session.confirm(actual)
        log.warning("Roam completed but connected to different BSSID: %s (expected: %s, via %s)", actual, target, method)
        return outcome

    def _skip(self, outcome, target, method):
        outcome.skipped = True
        outcome.actual_bssid = target
        outcome.method = method
        outcome.state = RoamState.CONNECTED
        self.state = RoamState.CONNECTED
        return outcome

    def _issue_roam(self, target, outcome):
        r = self.client.roam(target)
        outcome.command_output = r.output or None
        outcome.command_timed_out = r.timed_out
        if r.output:
            log.info("wpa_cli roam output: %s", r.output)
        log.info("wpa_cli roam exit code: %s", "timeout" if r.timed_out else r.returncode)

        if r.ok and r.output.upper().startswith("OK"):
            return

        log.warning("wpa_cli roam command failed, trying select_network approach...")
        outcome.used_alternate_path = True
        network_id = self.client.network_id_for(target)
        if not network_id:
            raise RoamCommandFailure(f"Could not find network ID for BSSID {target}", target=target,
                                     timed_out=r.timed_out)
        log.info("Found network ID %s for BSSID %s, selecting...", network_id, target)
        alt = self.client.select_network(network_id)
        if not alt.ok:
            raise RoamCommandFailure(f"select_network {network_id} failed", target=target, timed_out=r.timed_out)
        log.info("select_network command successful")
        self.sleep(self.alt_settle_delay)

    def _verify(self, target):
        last_seen = {}

        def probe():
            method, bssid = self.query_current()
            if bssid:
                last_seen["method"], last_seen["bssid"] = method, bssid
            return bssid == target

        def miss(n):
            log.debug("verification attempt %d/%d: %s", n, self.verify_attempts, last_seen.get("bssid") or "no BSSID")

        if poll_until(probe, interval=self.verify_interval, max_attempts=self.verify_attempts,
                      sleep=self.sleep, on_miss=miss):
            return last_seen["method"], target
        return last_seen.get("method"), last_seen.get("bssid")
