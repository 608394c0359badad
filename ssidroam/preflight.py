import os
import shutil

from ssidroam.errors import PreflightError
from ssidroam.log_setup import get_logger

log = get_logger(__name__, "startup")

REQUIRED_TOOLS = ("wpa_cli", "iw", "ip", "ping")
OPTIONAL_TOOLS = ("iwconfig", "dhcpcd", "dhclient", "pgrep", "sudo")


def check_required_tools(which=shutil.which) -> dict[str, bool]:
    """Report tool availability; raise PreflightError if a required one is missing."""
    log.info("Checking required tools...")
    found = {}
    for tool in REQUIRED_TOOLS + OPTIONAL_TOOLS:
        found[tool] = which(tool) is not None
        log.info("  %s %s: %s", "✓" if found[tool] else "✗", tool, "Found" if found[tool] else "Missing")

    missing = [t for t in REQUIRED_TOOLS if not found[t]]
    if missing:
        raise PreflightError(f"Missing required tools: {', '.join(missing)}")
    if not (found["dhcpcd"] or found["dhclient"]):
        log.warning("Neither dhcpcd nor dhclient found; address renewal is limited to interface restarts")
    return found


def check_privileges() -> bool:
    """True when running as root; otherwise commands go through sudo."""
    if hasattr(os, "geteuid") and os.geteuid() != 0:
        log.warning("Not running as root; network commands will be run via sudo")
        return False
    return True
