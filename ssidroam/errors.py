"""Exception taxonomy for the roaming controller."""


class RoamingError(Exception):
    """Base class; anything raised inside one loop iteration is logged and survived."""

    phase = "loop"


class ConfigurationError(RoamingError):
    """Invalid or missing configuration. Fatal at startup only."""

    phase = "startup"


class PreflightError(RoamingError):
    phase = "startup"


class WirelessControlError(RoamingError):
    """A control command failed in a way the caller cannot interpret."""

    def __init__(self, message, cmd=None, timed_out=False):
        super().__init__(message)
        self.cmd = cmd
        self.timed_out = timed_out


class TransientScanFailure(RoamingError):
    phase = "scan"

    def __init__(self, message, attempts=0):
        super().__init__(message)
        self.attempts = attempts


class RoamCommandFailure(RoamingError):
    phase = "roam"

    def __init__(self, message, target=None, timed_out=False):
        super().__init__(message)
        self.target = target
        self.timed_out = timed_out


class AddressAcquisitionFailure(RoamingError):
    phase = "connectivity"

    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result
