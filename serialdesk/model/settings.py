# serialdesk/model/settings.py
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Literal, Mapping, Optional

from serialdesk.core.errors import SettingsError

Parity = Literal["none", "even", "odd"]
FlowControl = Literal["none", "hardware"]

BAUD_RATES = (
    110,
    300,
    600,
    1200,
    2400,
    4800,
    9600,
    14400,
    19200,
    38400,
    57600,
    115200,
    128000,
    256000,
)

DATA_BITS = (7, 8)
STOP_BITS = (1, 2)
PARITIES = ("none", "even", "odd")
FLOW_CONTROLS = ("none", "hardware")

BUFFER_SIZE_RANGE = (64, 4096)
PACKAGE_TIMEOUT_RANGE_MS = (0, 5000)

# camelCase names accepted in partial updates
_ALIASES = {
    "baudRate": "baud_rate",
    "dataBits": "data_bits",
    "stopBits": "stop_bits",
    "flowControl": "flow_control",
    "bufferSize": "buffer_size",
    "packageTimeoutMs": "package_timeout_ms",
    "packageTimeout": "package_timeout_ms",
}


@dataclass(frozen=True)
class SerialSettings:
    """
    Physical line configuration plus receive-side packet coalescing.

    Attributes:
        baud_rate: Line speed, passed verbatim to the transport.
        data_bits: 7 or 8.
        stop_bits: 1 or 2.
        parity: "none" | "even" | "odd".
        flow_control: "none" | "hardware" (RTS/CTS).
        buffer_size: Max bytes requested per read, in [64, 4096].
        package_timeout_ms: Coalescing window in ms, in [0, 5000]; 0 disables coalescing.
    """

    baud_rate: int = 115200
    data_bits: int = 8
    stop_bits: int = 1
    parity: Parity = "none"
    flow_control: FlowControl = "none"
    buffer_size: int = 1024
    package_timeout_ms: int = 100

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        _require_int("baud_rate", self.baud_rate)
        if self.baud_rate <= 0:
            raise SettingsError(
                f"Invalid baud rate {self.baud_rate}.",
                hint=f"Use a positive rate, conventionally one of {list(BAUD_RATES)}.",
                details={"field": "baud_rate", "value": self.baud_rate},
            )

        _require_choice("data_bits", self.data_bits, DATA_BITS)
        _require_choice("stop_bits", self.stop_bits, STOP_BITS)
        _require_choice("parity", self.parity, PARITIES)
        _require_choice("flow_control", self.flow_control, FLOW_CONTROLS)

        _require_range("buffer_size", self.buffer_size, BUFFER_SIZE_RANGE)
        _require_range("package_timeout_ms", self.package_timeout_ms, PACKAGE_TIMEOUT_RANGE_MS)

    def merged(self, partial: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "SerialSettings":
        """Return a new validated copy with `partial` (and kwargs) applied."""
        changes: Dict[str, Any] = {}
        known = {f.name for f in fields(self)}

        for key, value in {**dict(partial or {}), **kwargs}.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise SettingsError(
                    f"Unknown serial setting '{key}'.",
                    hint=f"Valid settings: {sorted(known)}",
                    details={"key": key},
                )
            changes[name] = value

        if not changes:
            return self
        return replace(self, **changes)

    @property
    def is_standard_baud_rate(self) -> bool:
        return self.baud_rate in BAUD_RATES

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SerialSettings":
        return cls().merged(data)


def _require_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SettingsError(
            f"Setting '{name}' must be an integer.",
            hint=f"Got {type(value).__name__}.",
            details={"field": name, "value": value},
        )


def _require_choice(name: str, value: Any, choices: tuple) -> None:
    if isinstance(value, bool) or value not in choices:
        raise SettingsError(
            f"Invalid value {value!r} for setting '{name}'.",
            hint=f"Allowed: {list(choices)}",
            details={"field": name, "value": value},
        )


def _require_range(name: str, value: Any, bounds: tuple[int, int]) -> None:
    _require_int(name, value)
    lo, hi = bounds
    if not lo <= value <= hi:
        raise SettingsError(
            f"Setting '{name}'={value} out of range.",
            hint=f"Expected {lo}..{hi}.",
            details={"field": name, "value": value, "min": lo, "max": hi},
        )
