# serialdesk/transport/ports.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from serial.tools import list_ports as _list_ports


@dataclass(frozen=True)
class PortInfo:
    device: str
    description: str = ""
    manufacturer: str = ""
    product: str = ""
    vid: Optional[int] = None
    pid: Optional[int] = None

    @property
    def usb_id(self) -> str:
        if self.vid is None or self.pid is None:
            return ""
        return f"{self.vid:04X}:{self.pid:04X}"

    def describe(self) -> str:
        parts = [self.device]
        if self.usb_id:
            parts.append(f"[{self.usb_id}]")
        text = " ".join(filter(None, [self.manufacturer, self.product, self.description]))
        if text:
            parts.append(text)
        return " ".join(parts)


def list_ports() -> List[PortInfo]:
    """Return detected serial ports, sorted by device name."""
    ports = [
        PortInfo(
            device=p.device,
            description=p.description or "",
            manufacturer=p.manufacturer or "",
            product=p.product or "",
            vid=p.vid,
            pid=p.pid,
        )
        for p in _list_ports.comports()
    ]
    return sorted(ports, key=lambda p: p.device)
