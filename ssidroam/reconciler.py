"""
reconciler.py
-------------
Keeps the IP layer consistent after a roam.

If the interface already has an address and the default gateway answers a
ping, nothing happens. Otherwise address acquisition walks a fallback chain:

  a) dhcpcd daemon running     -> release + renew (restart on failure)
  b) dhcpcd not running        -> start it in the foreground for the interface
  c) dhcpcd unusable / failed  -> dhclient release + request (30 s bound)
  d) last resort               -> ip link down/up, re-check

Address-without-gateway is reported as DEGRADED, not as a failure.
"""

import os
import time

from ssidroam.errors import AddressAcquisitionFailure
from ssidroam.log_setup import get_logger
from ssidroam.models import AddressResult, AddressStatus
from ssidroam.polling import poll_until

log = get_logger(__name__, "connectivity")

POLL_INTERVAL = 1.0
POLL_ATTEMPTS = 10


class ConnectivityReconciler:
    def __init__(self, ip, lease, poll_interval=POLL_INTERVAL, poll_attempts=POLL_ATTEMPTS,
                 daemon_grace=3.0, release_wait=2.0, restart_wait=3.0, sleep=time.sleep):
        self.ip = ip
        self.lease = lease
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.daemon_grace = daemon_grace
        self.release_wait = release_wait
        self.restart_wait = restart_wait
        self.sleep = sleep

    def ensure_address(self, iface: str, force_renew: bool = False) -> AddressResult:
        address = self.ip.address(iface)

        if address and not force_renew:
            log.info("IP address already assigned: %s", address)
            gateway = self.ip.gateway(iface)
            if gateway:
                log.info("Testing IP connectivity by pinging gateway: %s", gateway)
                if self.ip.ping(gateway):
                    log.info("IP address is working correctly, no renewal needed")
                    return AddressResult(AddressStatus.OK, address, gateway)
                log.info("IP address appears invalid (gateway unreachable), attempting to renew...")
            else:
                log.info("No gateway found, IP renewal may be needed")
        else:
            log.info("No IP address found or renewal requested, attempting to renew...")

        strategy = self._run_chain(iface)
        if strategy is None:
            log.warning("All IP renewal methods failed, restarting interface as last resort")
            strategy = "link-cycle"
            self._cycle_link(iface)

        address = self._wait_for_address(iface)
        if not address and strategy != "link-cycle":
            log.warning("Renewal via %s produced no address after %d checks, restarting interface",
                        strategy, self.poll_attempts)
            strategy = "link-cycle"
            self._cycle_link(iface)
            address = self.ip.address(iface)

        return self._evaluate(iface, address, strategy)

    def require_address(self, iface: str, force_renew: bool = False) -> AddressResult:
        """Like ensure_address, but raises AddressAcquisitionFailure when no address was obtained."""
        result = self.ensure_address(iface, force_renew)
        if not result.acquired:
            raise AddressAcquisitionFailure(f"no IPv4 address on {iface} after {result.strategy or 'all strategies'}",
                                            result=result)
        return result

    # --- chain ---

    def _strategies(self):
        steps = []
        run_writable = self.lease.run_dir_writable()
        if not run_writable:
            log.info("Filesystem %s is read-only, will use dhclient instead of dhcpcd", self.lease.run_dir)
        if run_writable and self.lease.dhcpcd_available():
            if self.lease.dhcpcd_running():
                steps.append(("dhcpcd-renew", self._dhcpcd_renew))
            else:
                steps.append(("dhcpcd-start", self._dhcpcd_start))
        if self.lease.dhclient_available():
            steps.append(("dhclient", self._dhclient))
        return steps

    def _run_chain(self, iface):
        for name, step in self._strategies():
            log.info("Attempting IP renewal for %s via %s", iface, name)
            try:
                step(iface)
            except AddressAcquisitionFailure as e:
                log.warning("%s failed: %s", name, e)
                continue
            return name
        return None

    def _dhcpcd_renew(self, iface):
        self.ip.set_link(iface, up=True)
        self.sleep(1)
        if self.lease.dhcpcd_release(iface).ok:
            log.info("Interface released from dhcpcd daemon")
            self.sleep(self.release_wait)
        else:
            log.info("Failed to release interface, continuing anyway...")

        if self.lease.dhcpcd_renew(iface).ok:
            log.info("dhcpcd renewal command successful")
            return
        log.info("dhcpcd renewal command failed, trying direct daemon restart...")
        self.lease.dhcpcd_stop()
        # old daemon must drop its pidfile and control socket first
        self.sleep(self.restart_wait)
        if not self.lease.dhcpcd_launch(iface).ok:
            raise AddressAcquisitionFailure("dhcpcd daemon restart failed")
        log.info("dhcpcd daemon restarted successfully")

    def _dhcpcd_start(self, iface):
        self.ip.set_link(iface, up=True)
        self.sleep(2)
        proc, log_path = self.lease.dhcpcd_start(iface)
        if proc is None:
            raise AddressAcquisitionFailure("could not launch dhcpcd")
        log.info("dhcpcd daemon started with PID: %s", proc.pid)
        self.sleep(self.daemon_grace)
        returncode = proc.poll()
        if returncode is None:
            _remove_quietly(log_path)
            return
        if returncode == 0:
            log.info("dhcpcd obtained a lease and detached: %s", _read_quietly(log_path).strip() or "(no output)")
            _remove_quietly(log_path)
            return
        output = _read_quietly(log_path)
        _remove_quietly(log_path)
        raise AddressAcquisitionFailure(f"dhcpcd exited unexpectedly: {output.strip() or '(no output)'}")

    def _dhclient(self, iface):
        self.ip.set_link(iface, up=True)
        if self.lease.dhclient_release(iface).ok:
            log.info("Released old IP with dhclient")
        else:
            log.info("No old IP to release (or release failed)")
        self.sleep(self.release_wait)

        r = self.lease.dhclient_request(iface)
        detail = (r.stderr or r.stdout).strip() or "(empty)"
        if r.ok:
            log.info("dhclient renewal command successful")
            log.debug("dhclient output: %s", detail)
        elif r.timed_out:
            # lease may still land; the address poll decides
            log.info("dhclient timed out, checking for an address anyway")
        else:
            raise AddressAcquisitionFailure(f"dhclient exit code {r.returncode}: {detail}")

    def _cycle_link(self, iface):
        self.ip.set_link(iface, up=False)
        self.sleep(2)
        self.ip.set_link(iface, up=True)
        self.sleep(3)

    # --- verification ---

    def _wait_for_address(self, iface):
        def miss(n):
            log.debug("No IP address found on attempt %d of %d", n, self.poll_attempts)

        return poll_until(lambda: self.ip.address(iface), interval=self.poll_interval,
                          max_attempts=self.poll_attempts, sleep=self.sleep, on_miss=miss)

    def _evaluate(self, iface, address, strategy):
        if not address:
            log.error("All IP assignment attempts failed for %s", iface)
            return AddressResult(AddressStatus.FAILED, strategy=strategy)

        log.info("IP address assigned successfully: %s", address)
        gateway = self.ip.gateway(iface)
        if not gateway:
            log.warning("IP address assigned but no gateway found")
            return AddressResult(AddressStatus.DEGRADED, address, None, strategy)
        if self.ip.ping(gateway):
            log.info("IP address is working correctly (gateway %s reachable)", gateway)
            return AddressResult(AddressStatus.OK, address, gateway, strategy)
        log.warning("IP address assigned but gateway %s unreachable", gateway)
        return AddressResult(AddressStatus.DEGRADED, address, gateway, strategy)


def _read_quietly(path):
    try:
        with open(path) as f:
            return f.read()
    except OSError:
        return ""


def _remove_quietly(path):
    try:
        os.remove(path)
    except OSError:
        pass
