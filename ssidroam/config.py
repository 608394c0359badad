"""
config.py
---------
Startup configuration.

Sources, lowest to highest precedence:
  1. parameters file (KEY=value, e.g. parameters.txt)
  2. process environment (a .env file is loaded into it first)
  3. command-line flags

Required: SSID_Name, Min_Time_Roam, Max_Time_Roam, Min_Signal, Preferred_Band.
Anything missing or invalid raises ConfigurationError.
"""

import os
from dataclasses import dataclass

from dotenv import dotenv_values, load_dotenv

from ssidroam.errors import ConfigurationError
from ssidroam.models import BandPreference

DEFAULT_PARAMETERS_FILE = "parameters.txt"
DEFAULT_INTERFACE = "wlan0"

KEYS = ("SSID_Name", "Min_Time_Roam", "Max_Time_Roam", "Min_Signal", "Preferred_Band", "Interface", "Log_Level")
REQUIRED = KEYS[:5]
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class RoamConfig:
    ssid: str
    min_wait_minutes: int
    max_wait_minutes: int
    min_signal_dbm: int
    preferred_band: BandPreference
    interface: str = DEFAULT_INTERFACE
    log_level: str = "INFO"

    def describe(self) -> list[str]:
        return [
            f"SSID: {self.ssid}",
            f"Interface: {self.interface}",
            f"Roam time: {self.min_wait_minutes}-{self.max_wait_minutes} minutes",
            f"Min signal: {self.min_signal_dbm} dBm",
            f"Preferred band: {self.preferred_band.value}",
        ]


def _parse_int(key, value, allow_negative):
    text = str(value).strip()
    try:
        number = int(text)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer (got {value!r})") from None
    if number < 0 and not allow_negative:
        raise ConfigurationError(f"{key} must not be negative (got {number})")
    return number


def read_parameters_file(path: str | None) -> dict:
    """KEY=value pairs from the parameters file; {} when no file is given or found."""
    if not path:
        return {}
    if not os.path.isfile(path):
        raise ConfigurationError(f"Parameters file not found: {path}")
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def merge_sources(file_values: dict, environ: dict, cli_values: dict) -> dict:
    merged = {}
    for key in KEYS:
        for source in (cli_values, environ, file_values):
            value = source.get(key)
            if value is not None and str(value).strip() != "":
                merged[key] = value
                break
    return merged


def build_config(values: dict) -> RoamConfig:
    missing = [k for k in REQUIRED if k not in values]
    if missing:
        raise ConfigurationError(f"Missing required parameter(s): {', '.join(missing)}")

    ssid = str(values["SSID_Name"]).strip()
    if not ssid:
        raise ConfigurationError("SSID_Name must not be empty")

    min_wait = _parse_int("Min_Time_Roam", values["Min_Time_Roam"], allow_negative=False)
    max_wait = _parse_int("Max_Time_Roam", values["Max_Time_Roam"], allow_negative=False)
    if min_wait > max_wait:
        raise ConfigurationError("Min_Time_Roam cannot be greater than Max_Time_Roam")

    min_signal = _parse_int("Min_Signal", values["Min_Signal"], allow_negative=True)

    try:
        band = BandPreference.parse(str(values["Preferred_Band"]))
    except ValueError as e:
        raise ConfigurationError(f"Preferred_Band: {e}") from None

    log_level = str(values.get("Log_Level") or "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(f"Log_Level must be one of {', '.join(LOG_LEVELS)} (got {log_level!r})")

    return RoamConfig(
        ssid=ssid,
        min_wait_minutes=min_wait,
        max_wait_minutes=max_wait,
        min_signal_dbm=min_signal,
        preferred_band=band,
        interface=str(values.get("Interface") or DEFAULT_INTERFACE).strip(),
        log_level=log_level,
    )


def load_config(cli_values: dict | None = None, parameters_file: str | None = None,
                environ: dict | None = None, dotenv_path: str | None = ".env") -> RoamConfig:
    """Resolve the configuration from all sources. Raises ConfigurationError."""
    if environ is None:
        if dotenv_path and os.path.exists(dotenv_path):
            load_dotenv(dotenv_path)
        environ = dict(os.environ)
    if parameters_file is None and os.path.isfile(DEFAULT_PARAMETERS_FILE):
        parameters_file = DEFAULT_PARAMETERS_FILE

    file_values = read_parameters_file(parameters_file)
    return build_config(merge_sources(file_values, environ, cli_values or {}))
