import secrets
import time
from datetime import UTC, datetime


def new_id(prefix: str) -> str:
    """Time-ordered unique id such as ``msg_1718000000000_3fa2b1``."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def utc_now_iso() -> str:
    """Current UTC time in the ``2024-06-10T12:00:00.000Z`` form browsers emit."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
