"""
freq_catalog.py
---------------
Static channel/frequency tables and the frequency -> band lookup.

Band ranges (MHz, inclusive):
  • 2.4G : 2400 - 2500
  • 5G   : 5000 - 5924
  • 6G   : 5925 - 7125

The 5G/6G split sits at 5925 MHz, where the 6 GHz allocation starts
(first 20 MHz channel centre is 5955).
"""

BAND_24 = "2.4G"
BAND_5 = "5G"
BAND_6 = "6G"
BAND_UNKNOWN = "Unknown"

BANDS = (BAND_24, BAND_5, BAND_6)

# (band, low, high) inclusive
_BAND_RANGES = (
    (BAND_24, 2400, 2500),
    (BAND_5, 5000, 5924),
    (BAND_6, 5925, 7125),
)

FREQS_24 = [2412, 2417, 2422, 2427, 2432, 2437, 2442, 2447, 2452, 2457, 2462, 2467, 2472, 2484]

FREQS_5 = [
    5180, 5200, 5220, 5240, 5260, 5280, 5300, 5320,
    5500, 5520, 5540, 5560, 5580, 5600, 5620, 5640, 5660, 5680, 5700, 5720,
    5745, 5765, 5785, 5805, 5825,
]

FREQS_6 = list(range(5955, 7116, 20))


def _to_mhz(freq) -> int | None:
    if freq is None:
        return None
    try:
        return int(float(freq))
    except (TypeError, ValueError):
        return None


def band_for_frequency(freq) -> str:
    """Map a channel frequency in MHz (int, float or numeric string) to a band label."""
    mhz = _to_mhz(freq)
    if mhz is None:
        return BAND_UNKNOWN
    for band, low, high in _BAND_RANGES:
        if low <= mhz <= high:
            return band
    return BAND_UNKNOWN


def channel_for_frequency(freq) -> int | None:
    """Channel number for a frequency, or None when it is not a known channel centre."""
    mhz = _to_mhz(freq)
    if mhz is None:
        return None
    if mhz == 2484:
        return 14
    if 2412 <= mhz <= 2472:
        return (mhz - 2407) // 5
    if mhz in FREQS_6:
        return (mhz - 5950) // 5
    if 5000 <= mhz <= 5924:
        return (mhz - 5000) // 5
    return None


def all_scan_frequencies() -> list[int]:
    """Every channel centre across 2.4, 5 and 6 GHz (full-spectrum scan list)."""
    return FREQS_24 + FREQS_5 + FREQS_6


def describe(freq) -> str:
    channel = channel_for_frequency(freq)
    band = band_for_frequency(freq)
    if channel is None:
        return f"{freq} MHz ({band})"
    return f"{freq} MHz (ch {channel}, {band})"
