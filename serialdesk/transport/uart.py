# serialdesk/transport/uart.py
from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import serial
from serial import SerialException

from serialdesk.model.settings import SerialSettings

from .base import Transport
from .errors import TransportIOError, TransportOpenError

_log = logging.getLogger(__name__)

_BYTESIZE = {7: serial.SEVENBITS, 8: serial.EIGHTBITS}
_STOPBITS = {1: serial.STOPBITS_ONE, 2: serial.STOPBITS_TWO}
_PARITY = {"none": serial.PARITY_NONE, "even": serial.PARITY_EVEN, "odd": serial.PARITY_ODD}


def serial_kwargs(settings: SerialSettings) -> Dict[str, Any]:
    """Map SerialSettings onto pyserial constructor arguments."""
    return dict(
        baudrate=settings.baud_rate,
        bytesize=_BYTESIZE[settings.data_bits],
        stopbits=_STOPBITS[settings.stop_bits],
        parity=_PARITY[settings.parity],
        rtscts=settings.flow_control == "hardware",
    )


class UARTTransport(Transport):
    """
    Serial transport implemented via pyserial.

    `port` is anything pyserial's serial_for_url() accepts: a device name
    ("COM5", "/dev/ttyUSB0") or a URL such as "loop://" or "socket://host:port".

    read(n) blocks up to `timeout` for the first byte, then returns whatever
    else is already waiting (up to n bytes in total).
    """

    def __init__(
        self,
        port: str,
        timeout: float = 0.05,
        write_timeout: Optional[float] = None,
        exclusive: bool = True,
    ):
        self.port = port
        self.timeout = timeout
        self.write_timeout = write_timeout
        self.exclusive = exclusive
        self.ser: Optional[serial.SerialBase] = None

    @property
    def label(self) -> str:
        return self.port

    def open(self, settings: SerialSettings) -> None:
        kwargs = serial_kwargs(settings)
        kwargs.update(timeout=self.timeout, write_timeout=self.write_timeout)
        if self.exclusive and sys.platform != "win32" and "://" not in self.port:
            # asks the OS for exclusive access to the device
            kwargs["exclusive"] = True

        try:
            self.ser = serial.serial_for_url(self.port, **kwargs)
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()
        except (SerialException, ValueError) as e:
            self._drop()
            raise TransportOpenError(str(e)) from None

    def close(self) -> None:
        if self.ser is not None:
            try:
                self.ser.close()
            finally:
                self.ser = None

    def is_open(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def read(self, n: int) -> Optional[bytes]:
        ser = self.ser
        if ser is None:
            raise TransportIOError("read while transport not open")
        if not ser.is_open:
            return None

        try:
            first = ser.read(1)
            if not first:
                # timeout reached (or read cancelled)
                return b""
            waiting = ser.in_waiting
            if waiting and n > 1:
                return first + ser.read(min(waiting, n - 1))
            return first
        except SerialException as e:
            self._drop()
            raise TransportIOError(f"UART read failed: {e}") from None

    def write(self, data: bytes) -> int:
        if self.ser is None:
            raise TransportIOError("write while transport not open")

        try:
            return self.ser.write(data)
        except SerialException as e:
            self._drop()
            raise TransportIOError(f"UART write failed: {e}") from None

    def flush(self) -> None:
        if self.ser is None:
            raise TransportIOError("flush while transport not open")

        try:
            self.ser.flush()
        except SerialException as e:
            self._drop()
            raise TransportIOError(f"UART flush failed: {e}") from None

    def cancel_read(self) -> None:
        cancel = getattr(self.ser, "cancel_read", None)
        if cancel is None:
            return
        try:
            cancel()
        except (SerialException, OSError) as e:
            _log.debug("UART_CANCEL_READ_FAILED port=%s err=%s", self.port, e)

    def _drop(self) -> None:
        """Release the port after a failure so the device is not left held open."""
        ser, self.ser = self.ser, None
        if ser is None:
            return
        try:
            ser.close()
        except (SerialException, OSError) as e:
            _log.debug("UART_CLOSE_AFTER_ERROR_FAILED port=%s err=%s", self.port, e)
