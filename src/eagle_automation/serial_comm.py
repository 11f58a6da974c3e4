"""
Serial Communication Layer

Owns the single RS-232 handle to the console. Pure I/O, no protocol knowledge:
open/close, raw byte write, and a background reader thread that hands newly
arrived bytes to a callback.

Status 18R defaults (from the console manual): 19200 baud, 8N1, no handshake.
"""

import sys
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import serial
import serial.tools.list_ports

from .exceptions import (
    ParameterError, PortUnavailableError, InvalidParametersError,
    TimeoutError, CommunicationError, StateError
)

logger = logging.getLogger(__name__)


# Default serial settings (Status 18R)
DEFAULT_BAUDRATE = 19200
DEFAULT_BYTESIZE = 8
DEFAULT_TIMEOUT_MS = 500
DEFAULT_WRITE_TIMEOUT_MS = 500

# Upper bound for a single reader-thread read call
READ_CHUNK_SIZE = 4096


class Parity(Enum):
    """Parity setting"""
    NONE = 'None'
    ODD = 'Odd'
    EVEN = 'Even'
    MARK = 'Mark'
    SPACE = 'Space'


class StopBits(Enum):
    """Stop bits setting"""
    NONE = 'None'
    ONE = 'One'
    TWO = 'Two'
    ONE_POINT_FIVE = 'OnePointFive'


PARITY_MAP = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
    Parity.MARK: serial.PARITY_MARK,
    Parity.SPACE: serial.PARITY_SPACE,
}

# pyserial has no "zero stop bits" setting; StopBits.NONE is rejected on open
STOPBITS_MAP = {
    StopBits.ONE: serial.STOPBITS_ONE,
    StopBits.TWO: serial.STOPBITS_TWO,
    StopBits.ONE_POINT_FIVE: serial.STOPBITS_ONE_POINT_FIVE,
}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ConnectionParameters:
    """
    Serial connection parameters

    Immutable once a connection attempt starts. Use dataclasses.replace()
    to derive a new value for a retry with different settings.
    """
    port: str
    baudrate: int = DEFAULT_BAUDRATE
    bytesize: int = DEFAULT_BYTESIZE
    parity: Parity = Parity.NONE
    stopbits: StopBits = StopBits.ONE
    read_timeout_ms: int = DEFAULT_TIMEOUT_MS
    write_timeout_ms: int = DEFAULT_WRITE_TIMEOUT_MS

    def validate(self) -> None:
        """
        Check parameter ranges without touching hardware

        Raises:
            ParameterError: on the first invalid field
        """
        if not isinstance(self.port, str) or not self.port.strip():
            raise ParameterError("Port name must be a non-empty string")
        if not _is_int(self.baudrate) or self.baudrate <= 0:
            raise ParameterError(f"Baud rate must be a positive integer, got {self.baudrate!r}")
        if self.bytesize not in (5, 6, 7, 8):
            raise ParameterError(f"Data bits must be 5-8, got {self.bytesize!r}")
        if not isinstance(self.parity, Parity):
            raise ParameterError(f"Invalid parity: {self.parity!r}")
        if not isinstance(self.stopbits, StopBits):
            raise ParameterError(f"Invalid stop bits: {self.stopbits!r}")
        if not _is_int(self.read_timeout_ms) or self.read_timeout_ms < 0:
            raise ParameterError(f"Read timeout must be an integer >= 0 ms, got {self.read_timeout_ms!r}")
        if not _is_int(self.write_timeout_ms) or self.write_timeout_ms < 0:
            raise ParameterError(f"Write timeout must be an integer >= 0 ms, got {self.write_timeout_ms!r}")

    @property
    def read_timeout(self) -> float:
        """Read timeout in seconds"""
        return self.read_timeout_ms / 1000.0

    @property
    def write_timeout(self) -> float:
        """Write timeout in seconds"""
        return self.write_timeout_ms / 1000.0

    def __str__(self) -> str:
        return (
            f"{self.port} {self.baudrate} "
            f"{self.bytesize}{self.parity.value[0]}{self.stopbits.value}"
        )


class SerialTransport:
    """
    Serial port wrapper with a background reader

    Usage:
        transport = SerialTransport()
        transport.open(ConnectionParameters('COM3'))
        transport.start_reading(on_data=print)
        transport.write(frame)
        transport.close()
    """

    def __init__(self):
        self.params: Optional[ConnectionParameters] = None

        self._serial: Optional[serial.Serial] = None
        self._lock = threading.Lock()
        self._reader: Optional[threading.Thread] = None
        self._stop: Optional[threading.Event] = None

    @property
    def is_open(self) -> bool:
        """Port open state"""
        return self._serial is not None and self._serial.is_open

    def open(self, params: ConnectionParameters) -> None:
        """
        Open the serial port

        Args:
            params: connection parameters

        Raises:
            ParameterError: parameters fail validation
            InvalidParametersError: the driver rejects the combination
            PortUnavailableError: port missing, busy, or permission denied
        """
        params.validate()

        if self.is_open:
            logger.warning(f"Port {self.params.port} still open, closing before reopen")
            self.close()

        if params.stopbits not in STOPBITS_MAP:
            raise InvalidParametersError(
                f"Stop bits {params.stopbits.value} not supported by the serial driver"
            )

        try:
            handle = serial.Serial(
                port=params.port,
                baudrate=params.baudrate,
                bytesize=params.bytesize,
                parity=PARITY_MAP[params.parity],
                stopbits=STOPBITS_MAP[params.stopbits],
                timeout=params.read_timeout,
                write_timeout=params.write_timeout,
                xonxoff=False,
                rtscts=False,
            )
        except ValueError as e:
            raise InvalidParametersError(f"Invalid settings for {params.port}: {e}")
        except serial.SerialException as e:
            raise PortUnavailableError(f"Failed to open {params.port}: {e}")

        # Drop anything the console sent before we were listening
        try:
            handle.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            try:
                handle.close()
            except (serial.SerialException, OSError) as close_error:
                logger.warning(f"Error closing {params.port}: {close_error}")
            raise PortUnavailableError(f"Failed to prepare {params.port}: {e}")

        self._serial = handle
        self.params = params
        logger.info(f"Opened {params}")

    def close(self) -> Optional[threading.Thread]:
        """
        Close the port (idempotent)

        Stops the reader thread without joining it, so a caller holding a lock
        the reader may be waiting on cannot deadlock.

        Returns:
            The stopped reader thread, if any, for the caller to join
        """
        reader = self._reader
        if self._stop is not None:
            self._stop.set()
        self._reader = None
        self._stop = None

        handle = self._serial
        self._serial = None
        if handle is None:
            return reader

        try:
            if handle.is_open:
                if hasattr(handle, 'cancel_read'):
                    handle.cancel_read()
                handle.close()
                logger.info(f"Closed {self.params.port if self.params else 'serial port'}")
        except (serial.SerialException, OSError) as e:
            logger.error(f"Error closing serial port: {e}")

        return reader

    def write(self, data: bytes) -> None:
        """
        Write all bytes (thread safe)

        Raises:
            StateError: port not open
            TimeoutError: write timeout expired
            CommunicationError: any other I/O fault
        """
        with self._lock:
            handle = self._serial
            if handle is None or not handle.is_open:
                raise StateError("Serial port not open")

            try:
                written = handle.write(data)
                handle.flush()
            except serial.SerialTimeoutException:
                raise TimeoutError(
                    f"Write timeout after {self.params.write_timeout_ms} ms"
                )
            except (serial.SerialException, OSError) as e:
                raise CommunicationError(f"Failed to send data: {e}")

        if written is not None and written != len(data):
            raise CommunicationError(f"Short write: {written} of {len(data)} bytes")

    def start_reading(
        self,
        on_data: Callable[[bytes], None],
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> None:
        """
        Start the background reader for the current handle

        Args:
            on_data: called with every non-empty chunk, on the reader thread
            on_error: called once with a CommunicationError on a fatal read fault

        Raises:
            StateError: port not open
        """
        if not self.is_open:
            raise StateError("Serial port not open")
        if self._reader is not None and self._reader.is_alive():
            raise StateError("Reader already running")

        self._stop = threading.Event()
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(self._serial, self._stop, on_data, on_error),
            name=f"serial-reader-{self.params.port}",
            daemon=True,
        )
        self._reader.start()
        logger.debug("Reader thread started")

    @staticmethod
    def _read_loop(
        handle: serial.Serial,
        stop: threading.Event,
        on_data: Callable[[bytes], None],
        on_error: Optional[Callable[[Exception], None]]
    ) -> None:
        """Reader thread body; bound to one handle for its whole life"""
        while not stop.is_set():
            try:
                data = handle.read(min(handle.in_waiting, READ_CHUNK_SIZE) or 1)
            except (serial.SerialException, OSError) as e:
                if stop.is_set():
                    break
                logger.error(f"Read failed: {e}")
                if on_error is not None:
                    on_error(CommunicationError(f"Read failed: {e}"))
                break

            if not data or stop.is_set():
                continue

            try:
                on_data(bytes(data))
            except Exception:
                logger.exception("Receive callback raised")

        logger.debug("Reader thread stopped")

    def __enter__(self) -> 'SerialTransport':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @staticmethod
    def list_ports() -> List[str]:
        """
        Names of serial ports visible to the system

        Returns:
            Port names (e.g. ['COM1', 'COM3'] or ['/dev/ttyUSB0'])
        """
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    @staticmethod
    def get_default_port() -> Optional[str]:
        """
        Platform-appropriate default port

        Returns:
            - Windows: first COM port
            - Linux: /dev/ttyUSB0 if present, else first port
        """
        ports = SerialTransport.list_ports()

        if not ports:
            return None

        if sys.platform == 'win32':
            return ports[0]

        for preferred in ['/dev/ttyUSB0', '/dev/ttyS0']:
            if preferred in ports:
                return preferred
        return ports[0]
