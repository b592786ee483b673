from __future__ import annotations

import pytest
import serial

import serialdesk.transport.uart as uart_mod
from serialdesk.model.settings import SerialSettings
from serialdesk.transport.errors import TransportIOError, TransportOpenError


class FakeSerial:
    def __init__(self, url, **kwargs):
        self.url = url
        self.kwargs = kwargs
        self.is_open = True

        self._read_chunks = []
        self.in_waiting = 0
        self._write_ret = 0
        self._raise_on_read = None
        self._raise_on_write = None
        self._raise_on_flush = None

        self.read_sizes = []
        self.reset_in_called = 0
        self.reset_out_called = 0
        self.flush_called = 0
        self.close_called = 0
        self.cancel_called = 0

    def reset_input_buffer(self):
        self.reset_in_called += 1

    def reset_output_buffer(self):
        self.reset_out_called += 1

    def read(self, n: int) -> bytes:
        self.read_sizes.append(n)
        if self._raise_on_read is not None:
            raise self._raise_on_read
        if not self._read_chunks:
            return b""
        chunk = self._read_chunks.pop(0)
        self.in_waiting = sum(len(c) for c in self._read_chunks)
        return chunk

    def write(self, data: bytes) -> int:
        if self._raise_on_write is not None:
            raise self._raise_on_write
        return self._write_ret

    def flush(self) -> None:
        self.flush_called += 1
        if self._raise_on_flush is not None:
            raise self._raise_on_flush

    def cancel_read(self) -> None:
        self.cancel_called += 1

    def close(self) -> None:
        self.close_called += 1
        self.is_open = False


@pytest.fixture
def fake_ctor(monkeypatch):
    created = {}

    def ctor(url, **kwargs):
        s = FakeSerial(url, **kwargs)
        created["ser"] = s
        return s

    monkeypatch.setattr(uart_mod.serial, "serial_for_url", ctor)
    return created


def test_serial_kwargs_maps_settings():
    kw = uart_mod.serial_kwargs(
        SerialSettings(baud_rate=9600, data_bits=7, stop_bits=2, parity="even", flow_control="hardware")
    )
    assert kw == dict(
        baudrate=9600,
        bytesize=serial.SEVENBITS,
        stopbits=serial.STOPBITS_TWO,
        parity=serial.PARITY_EVEN,
        rtscts=True,
    )


def test_open_success_resets_buffers(fake_ctor):
    t = uart_mod.UARTTransport("loop://", timeout=0.1)
    t.open(SerialSettings(baud_rate=19200))

    ser = fake_ctor["ser"]
    assert t.ser is ser
    assert t.is_open() is True
    assert t.label == "loop://"
    assert ser.url == "loop://"
    assert ser.kwargs["baudrate"] == 19200
    assert ser.kwargs["timeout"] == 0.1
    assert ser.kwargs["write_timeout"] is None
    assert "exclusive" not in ser.kwargs  # URLs never ask for exclusive access
    assert ser.reset_in_called == 1
    assert ser.reset_out_called == 1


def test_open_device_requests_exclusive_on_posix(fake_ctor, monkeypatch):
    monkeypatch.setattr(uart_mod.sys, "platform", "linux")
    t = uart_mod.UARTTransport("/dev/ttyUSB0")
    t.open(SerialSettings())
    assert fake_ctor["ser"].kwargs["exclusive"] is True


def test_open_serial_exception_raises_transport_open_error(monkeypatch):
    def ctor(*a, **k):
        raise uart_mod.SerialException("no port")

    monkeypatch.setattr(uart_mod.serial, "serial_for_url", ctor)

    t = uart_mod.UARTTransport("COM404")
    with pytest.raises(TransportOpenError):
        t.open(SerialSettings())

    assert t.ser is None


def test_read_write_flush_not_open_raise():
    t = uart_mod.UARTTransport("COM1")
    with pytest.raises(TransportIOError):
        t.read(1)
    with pytest.raises(TransportIOError):
        t.write(b"\x00")
    with pytest.raises(TransportIOError):
        t.flush()


def test_read_timeout_returns_empty_bytes(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    assert t.read(64) == b""


def test_read_returns_first_byte_plus_waiting_up_to_n(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    ser = fake_ctor["ser"]
    ser._read_chunks = [b"\x01", b"\x02\x03"]

    assert t.read(3) == b"\x01\x02\x03"
    assert ser.read_sizes == [1, 2]


def test_read_on_closed_port_reports_end_of_stream(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    fake_ctor["ser"].is_open = False
    assert t.read(8) is None


def test_read_serial_exception_clears_ser_and_raises(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    fake_ctor["ser"]._raise_on_read = uart_mod.SerialException("read fail")

    with pytest.raises(TransportIOError):
        t.read(1)

    assert t.ser is None
    assert fake_ctor["ser"].close_called == 1


def test_write_returns_bytes_written(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    fake_ctor["ser"]._write_ret = 4

    assert t.write(b"abcd") == 4


def test_write_serial_exception_clears_ser_and_raises(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    ser = fake_ctor["ser"]
    ser._raise_on_write = uart_mod.SerialException("write fail")

    with pytest.raises(TransportIOError):
        t.write(b"x")

    assert t.ser is None
    # the port handle is released, not just forgotten
    assert ser.close_called == 1
    assert ser.is_open is False
    t.close()
    assert ser.close_called == 1


def test_flush_serial_exception_clears_ser_and_raises(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    fake_ctor["ser"]._raise_on_flush = uart_mod.SerialException("flush fail")

    with pytest.raises(TransportIOError):
        t.flush()

    assert t.ser is None
    assert fake_ctor["ser"].close_called == 1


def test_cancel_read_forwards_and_tolerates_missing_port(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.cancel_read()  # not open: no-op

    t.open(SerialSettings())
    t.cancel_read()
    assert fake_ctor["ser"].cancel_called == 1


def test_close_closes_and_clears(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    ser = fake_ctor["ser"]
    t.close()
    t.close()

    assert ser.close_called == 1
    assert t.ser is None


def test_open_failure_after_construction_releases_port(monkeypatch):
    created = {}

    def ctor(url, **kwargs):
        s = FakeSerial(url, **kwargs)

        def boom():
            raise uart_mod.SerialException("reset failed")

        s.reset_input_buffer = boom
        created["ser"] = s
        return s

    monkeypatch.setattr(uart_mod.serial, "serial_for_url", ctor)
    t = uart_mod.UARTTransport("loop://")

    with pytest.raises(TransportOpenError):
        t.open(SerialSettings())

    assert t.ser is None
    assert created["ser"].close_called == 1


def test_close_failure_after_io_error_is_tolerated(fake_ctor):
    t = uart_mod.UARTTransport("loop://")
    t.open(SerialSettings())
    ser = fake_ctor["ser"]

    def bad_close():
        ser.close_called += 1
        raise uart_mod.SerialException("already gone")

    ser.close = bad_close
    ser._raise_on_read = uart_mod.SerialException("read fail")

    with pytest.raises(TransportIOError):
        t.read(4)

    assert ser.close_called == 1
    assert t.ser is None
