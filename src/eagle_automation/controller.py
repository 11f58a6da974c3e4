"""
Console Controller

Orchestration core between the UI and the serial link: connection state
machine, command API, inbound dispatch and events.

Every operation that touches the transport, the connection state or the
frame accumulator runs under one controller-wide lock, so commands from
different widgets never interleave on the wire. Failures never raise out of
this class; they come back as False, a logged cause, and `last_error`.
"""

import logging
import threading
from enum import Enum
from functools import partial
from typing import List, Optional, TYPE_CHECKING

from .events import EventSource
from .serial_comm import SerialTransport, ConnectionParameters
from .protocol import (
    AutomationMode, SwitchType, Command,
    AutomationModeCommand, FaderLevelCommand, SwitchStateCommand,
    FrameDecoder, ErrorMessage, UnknownMessage, encode
)
from .exceptions import EagleError, ParameterError, StateError

if TYPE_CHECKING:
    from .config import AppConfig

logger = logging.getLogger(__name__)
capture_logger = logging.getLogger('eagle_automation.capture')


DEFAULT_CHANNEL_COUNT = 32
DEFAULT_FADER_MIN = 0
DEFAULT_FADER_MAX = 100

# Extra time allowed for a stopped reader thread to exit
READER_JOIN_MARGIN = 1.0


class ConnectionState(Enum):
    """Controller connection state"""
    DISCONNECTED = 'Disconnected'
    CONNECTING = 'Connecting'
    CONNECTED = 'Connected'


class ConsoleController:
    """
    Status 18R console controller

    Events:
        connection_status_changed(connected: bool, reason: Optional[str])
        data_received(message: Message)

    Usage:
        controller = ConsoleController(channel_count=32)
        controller.connection_status_changed += on_status
        controller.data_received += on_message

        if controller.connect(ConnectionParameters('COM3')):
            controller.set_automation_mode(AutomationMode.WRITE)
            controller.set_fader_level(7, 64)
            controller.set_switch_state(3, SwitchType.MUTE, True)
        controller.disconnect()
    """

    def __init__(
        self,
        params: Optional[ConnectionParameters] = None,
        channel_count: int = DEFAULT_CHANNEL_COUNT,
        fader_min: int = DEFAULT_FADER_MIN,
        fader_max: int = DEFAULT_FADER_MAX,
        validate_lrc: bool = True,
        transport: Optional[SerialTransport] = None
    ):
        """
        Args:
            params: default connection parameters for connect()
            channel_count: console channels, valid channels are 1..channel_count
            fader_min: lowest accepted fader level
            fader_max: highest accepted fader level
            validate_lrc: reject inbound frames with a bad LRC
            transport: serial transport (a SerialTransport by default)
        """
        if channel_count < 1:
            raise ParameterError(f"Channel count must be >= 1, got {channel_count}")
        if fader_min > fader_max:
            raise ParameterError(f"Fader range {fader_min}-{fader_max} is empty")

        self.params = params
        self.channel_count = channel_count
        self.fader_min = fader_min
        self.fader_max = fader_max
        self.last_error: Optional[Exception] = None

        self.connection_status_changed = EventSource('connection_status_changed')
        self.data_received = EventSource('data_received')

        self._transport = transport if transport is not None else SerialTransport()
        self._decoder = FrameDecoder(validate_lrc=validate_lrc)
        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._session = 0

    @classmethod
    def from_config(cls, config: 'AppConfig', **kwargs) -> 'ConsoleController':
        """Build a controller from the application configuration"""
        return cls(
            params=config.serial_port.to_connection_parameters(),
            channel_count=config.console.channel_count,
            fader_min=config.console.fader_min,
            fader_max=config.console.fader_max,
            validate_lrc=config.protocol.validate_lrc,
            **kwargs
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """True only when connected and the port is still open"""
        return self._state is ConnectionState.CONNECTED and self._transport.is_open

    # -- Connection ---------------------------------------------------------

    def connect(self, params: Optional[ConnectionParameters] = None) -> bool:
        """
        Open the console link

        Disconnects first if already connected. Never raises; on failure
        the cause is logged, stored in last_error and sent with the
        connection_status_changed(False, reason) event.

        Args:
            params: connection parameters (defaults to the constructor's)

        Returns:
            True if connected
        """
        stale_reader = None
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                stale_reader = self._disconnect_locked()
            connected = self._connect_locked(params if params is not None else self.params)

        self._join_reader(stale_reader)
        return connected

    def _connect_locked(self, params: Optional[ConnectionParameters]) -> bool:
        self._state = ConnectionState.CONNECTING

        try:
            if params is None:
                raise ParameterError("No connection parameters given")
            logger.info(f"Connecting to {params}")

            self._transport.open(params)
            self._session += 1
            self._decoder.clear()
            self._transport.start_reading(
                on_data=partial(self._on_data, self._session),
                on_error=partial(self._on_transport_error, self._session),
            )
        except EagleError as e:
            logger.error(f"Connection failed: {e}")
            return self._connect_failed(e)
        except Exception as e:
            logger.exception(f"Connection failed: {e}")
            return self._connect_failed(e)

        self.params = params
        self.last_error = None
        self._state = ConnectionState.CONNECTED
        logger.info(f"Connected to {params.port}")
        self._fire_status(True, None)
        return True

    def _connect_failed(self, error: Exception) -> bool:
        try:
            self._transport.close()
        except Exception as close_error:
            logger.warning(f"Error closing transport after failed connect: {close_error}")
        self._state = ConnectionState.DISCONNECTED
        self.last_error = error
        self._fire_status(False, str(error))
        return False

    def disconnect(self) -> None:
        """
        Close the console link

        Idempotent and safe from any state. Always ends DISCONNECTED and
        fires connection_status_changed(False, None).
        """
        with self._lock:
            was_connected = self._state is ConnectionState.CONNECTED
            reader = self._disconnect_locked()
            if was_connected:
                logger.info("Disconnected from console")

        self._join_reader(reader)

    def _disconnect_locked(self, reason: Optional[str] = None) -> Optional[threading.Thread]:
        reader = self._transport.close()
        self._decoder.clear()
        self._state = ConnectionState.DISCONNECTED
        self._fire_status(False, reason)
        return reader

    def _join_reader(self, reader: Optional[threading.Thread]) -> None:
        # Joined outside the lock: the reader may be waiting on it
        if reader is None or reader is threading.current_thread():
            return
        timeout = (self.params.read_timeout if self.params else 0) + READER_JOIN_MARGIN
        reader.join(timeout)
        if reader.is_alive():
            logger.warning(f"Reader thread did not stop within {timeout:.1f}s")

    def _fire_status(self, connected: bool, reason: Optional[str]) -> None:
        self.connection_status_changed.fire(connected, reason)

    # -- Commands -----------------------------------------------------------

    def set_automation_mode(self, mode: AutomationMode) -> bool:
        """Set the console-wide automation mode"""
        return self.send_command(AutomationModeCommand(mode))

    def set_fader_level(self, channel: int, level: int) -> bool:
        """
        Move a channel fader

        Args:
            channel: 1..channel_count
            level: fader_min..fader_max
        """
        return self.send_command(FaderLevelCommand(channel, level))

    def set_switch_state(self, channel: int, switch_type: SwitchType, on: bool) -> bool:
        """
        Set a channel switch (mute, solo, EQ, insert, dynamics)

        Args:
            channel: 1..channel_count
            switch_type: switch to change
            on: new state
        """
        return self.send_command(SwitchStateCommand(channel, switch_type, on))

    def send_command(self, command: Command) -> bool:
        """
        Validate, encode and write one command

        Returns:
            True only if the whole frame was written. On False, last_error
            holds StateError (not connected), ParameterError (rejected
            before any I/O) or a TransportError.
        """
        with self._lock:
            if not self.is_connected:
                self.last_error = StateError("Not connected to console")
                logger.warning(f"Cannot send {command}: not connected")
                return False

            try:
                self._check_limits(command)
                frame = encode(command)
            except ParameterError as e:
                self.last_error = e
                logger.warning(f"Rejected {command}: {e}")
                return False

            try:
                self._transport.write(frame)
            except EagleError as e:
                self.last_error = e
                logger.error(f"Failed to send {command}: {e}")
                return False

            capture_logger.debug(f"TX ({len(frame)} bytes): {frame.hex(' ').upper()}")
            self.last_error = None
            return True

    def _check_limits(self, command: Command) -> None:
        """Console-specific limits, checked before the wire-range checks in encode()"""
        channel = getattr(command, 'channel', None)
        if channel is not None:
            if isinstance(channel, bool) or not isinstance(channel, int) \
                    or not (1 <= channel <= self.channel_count):
                raise ParameterError(f"Channel must be 1-{self.channel_count}, got {channel!r}")

        if isinstance(command, FaderLevelCommand):
            level = command.level
            if isinstance(level, bool) or not isinstance(level, int) \
                    or not (self.fader_min <= level <= self.fader_max):
                raise ParameterError(
                    f"Fader level must be {self.fader_min}-{self.fader_max}, got {level!r}"
                )

    # -- Inbound ------------------------------------------------------------

    def _on_data(self, session: int, data: bytes) -> None:
        """Reader thread callback"""
        with self._lock:
            if session != self._session or self._state is not ConnectionState.CONNECTED:
                logger.debug(f"Dropped {len(data)} bytes from a closed session")
                return
            capture_logger.debug(f"RX ({len(data)} bytes): {data.hex(' ').upper()}")
            messages = self._decoder.feed(data)

        for message in messages:
            if isinstance(message, (ErrorMessage, UnknownMessage)):
                logger.warning(f"Console sent {message!r} raw={message.raw.hex(' ').upper()}")
            self.data_received.fire(message)

    def _on_transport_error(self, session: int, error: Exception) -> None:
        """Fatal read fault (cable unplugged, port vanished)"""
        with self._lock:
            if session != self._session or self._state is not ConnectionState.CONNECTED:
                return
            logger.error(f"Connection lost: {error}")
            self.last_error = error
            self._disconnect_locked(reason=str(error))

    # -- Misc ---------------------------------------------------------------

    def __enter__(self) -> 'ConsoleController':
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    @staticmethod
    def get_available_port_names() -> List[str]:
        """Serial ports visible to the system"""
        return SerialTransport.list_ports()
