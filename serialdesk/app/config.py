# serialdesk/app/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

LINE_ENDINGS = {
    "none": "",
    "cr": "\r",
    "lf": "\n",
    "crlf": "\r\n",
}


@dataclass(frozen=True)
class SerialDeskConfig:
    port: str
    profile: Optional[str] = None
    settings_overrides: dict = field(default_factory=dict)
    config_dir: Optional[str] = None
    line_ending: str = "none"
    read_timeout_s: float = 0.05

    @property
    def line_suffix(self) -> str:
        return LINE_ENDINGS[self.line_ending]
