from typing import Dict, Optional

from exceptions import UnknownStatusCode

WAITING = "WAITING"
CHARGING = "CHARGING"
READY = "READY"
PAUSED = "PAUSED"
SCHEDULED = "SCHEDULED"
DISCHARGING = "DISCHARGING"
ERROR = "ERROR"
DISCONNECTED = "DISCONNECTED"
LOCKED = "LOCKED"
UPDATING = "UPDATING"

STATUS_LOOKUP: Dict[int, str] = {
    164: WAITING,
    180: WAITING,
    181: WAITING,
    183: WAITING,
    184: WAITING,
    185: WAITING,
    186: WAITING,
    187: WAITING,
    188: WAITING,
    189: WAITING,
    193: CHARGING,
    194: CHARGING,
    161: READY,
    162: READY,
    178: PAUSED,
    182: PAUSED,
    177: SCHEDULED,
    179: SCHEDULED,
    196: DISCHARGING,
    14: ERROR,
    15: ERROR,
    0: DISCONNECTED,
    163: DISCONNECTED,
    209: LOCKED,
    210: LOCKED,
    165: LOCKED,
    166: UPDATING,
}

CHARGING_CLASSES = frozenset({CHARGING, DISCHARGING})


def lookup_status(code: int) -> Optional[str]:
    """Return the status class for ``code``, or None when the table has no entry."""
    return STATUS_LOOKUP.get(code)


def get_status_name(code: int) -> str:
    """Return the status class for ``code``.

    Raises:
        UnknownStatusCode: if the code is not in the lookup table
    """
    name = lookup_status(code)
    if name is None:
        raise UnknownStatusCode(code)
    return name


def is_charging_class(code: int) -> bool:
    return lookup_status(code) in CHARGING_CLASSES


def convert_seconds(seconds: int) -> str:
    """Format a duration as ``1h 5m``, ``5m 10s`` or ``10s``."""
    seconds = int(seconds)
    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {seconds}")

    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
