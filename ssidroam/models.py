from dataclasses import dataclass, field, asdict
from enum import Enum

from ssidroam.freq_catalog import BANDS, band_for_frequency

ZERO_BSSID = "00:00:00:00:00:00"


def normalize_bssid(bssid: str | None) -> str:
    """Lowercase and strip all whitespace; None becomes ''."""
    if not bssid:
        return ""
    return "".join(bssid.split()).lower()


def is_live_bssid(bssid: str | None) -> bool:
    norm = normalize_bssid(bssid)
    return bool(norm) and norm != ZERO_BSSID and norm != "(none)"


class BandPreference(str, Enum):
    BAND_24 = "2.4G"
    BAND_5 = "5G"
    BAND_6 = "6G"

    @classmethod
    def parse(cls, value: str) -> "BandPreference":
        cleaned = (value or "").strip().upper()
        for member in cls:
            if member.value.upper() == cleaned:
                return member
        raise ValueError(f"band must be one of {', '.join(BANDS)} (got {value!r})")


@dataclass(frozen=True)
class AccessPointRecord:
    bssid: str
    frequency_mhz: int
    signal_dbm: int
    ssid: str

    @property
    def band(self) -> str:
        return band_for_frequency(self.frequency_mhz)

    def to_dict(self):
        d = asdict(self)
        d["band"] = self.band
        return d


@dataclass
class RoamingSession:
    current_bssid: str = ""
    is_first_connection: bool = True
    iteration_count: int = 0

    def confirm(self, bssid: str):
        """Record a BSSID confirmed by a verification method."""
        self.current_bssid = normalize_bssid(bssid) if is_live_bssid(bssid) else ""

    def next_iteration(self) -> int:
        self.iteration_count += 1
        return self.iteration_count


@dataclass
class SupplicantStatus:
    bssid: str | None = None
    ssid: str | None = None
    freq: int | None = None
    wpa_state: str | None = None
    ip_address: str | None = None
    network_id: str | None = None

    @property
    def connected(self) -> bool:
        return self.wpa_state == "COMPLETED" and is_live_bssid(self.bssid)


@dataclass
class SignalPoll:
    rssi: int | None = None
    link_speed: int | None = None
    noise: int | None = None
    frequency: int | None = None


@dataclass
class NetworkInfo:
    ip_address: str | None = None
    cidr: str | None = None
    gateway: str | None = None
    dns_servers: list[str] = field(default_factory=list)
    link_state: str | None = None


@dataclass
class CmdResult:
    cmd: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout.strip()


class RoamState(str, Enum):
    IDLE = "Idle"
    ROAMING = "Roaming"
    VERIFYING = "Verifying"
    CONNECTED = "Connected"
    FAILED = "Failed"


@dataclass
class RoamOutcome:
    target_bssid: str
    state: RoamState = RoamState.IDLE
    actual_bssid: str | None = None
    actual_ssid: str | None = None
    method: str | None = None
    degraded: bool = False
    skipped: bool = False
    used_alternate_path: bool = False
    command_timed_out: bool = False
    command_output: str | None = None

    @property
    def success(self) -> bool:
        return self.state == RoamState.CONNECTED

    def to_dict(self):
        d = asdict(self)
        d["state"] = self.state.value
        return d


class AddressStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class AddressResult:
    status: AddressStatus
    ip_address: str | None = None
    gateway: str | None = None
    strategy: str | None = None

    @property
    def acquired(self) -> bool:
        return self.status != AddressStatus.FAILED

    def to_dict(self):
        d = asdict(self)
        d["status"] = self.status.value
        return d
