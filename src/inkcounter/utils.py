from __future__ import annotations

import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone


def utc_now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def from_hex(value: str) -> bytes:
    """Parse a hex string with or without the 0x prefix."""
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


@dataclass(frozen=True)
class UuidV7:
    value: str

    def __str__(self) -> str:
        return self.value

    @property
    def timestamp_ms(self) -> int:
        return int(self.value.replace("-", "")[:12], 16)


def uuidv7() -> UuidV7:
    ts_ms = int(time.time() * 1000)
    time_bytes = ts_ms.to_bytes(6, "big")
    rand = int.from_bytes(os.urandom(10), "big")
    rand_a = (rand >> 68) & 0x0FFF
    rand_b = (rand >> 6) & ((1 << 62) - 1)

    byte6 = 0x70 | ((rand_a >> 8) & 0x0F)
    byte7 = rand_a & 0xFF
    byte8 = 0x80 | ((rand_b >> 56) & 0x3F)
    bytes9_15 = (rand_b & ((1 << 56) - 1)).to_bytes(7, "big")

    raw = bytearray()
    raw.extend(time_bytes)
    raw.append(byte6)
    raw.append(byte7)
    raw.append(byte8)
    raw.extend(bytes9_15)
    hexed = raw.hex()
    uuid = f"{hexed[0:8]}-{hexed[8:12]}-{hexed[12:16]}-{hexed[16:20]}-{hexed[20:32]}"
    return UuidV7(uuid)
