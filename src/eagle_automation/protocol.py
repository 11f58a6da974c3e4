"""
Status 18R Console Communication Protocol

The console's real byte layout has not been captured yet. Until traces from
the legacy Eagle automation computer are decoded, frames use this
provisional layout, and every layout constant lives in this module:

| STX (0x02) | Type (2B ASCII) | Payload (0~nB ASCII) | ETX (0x03) | LRC (1B) |

LRC: XOR of every byte after STX, up to and including ETX.
Type and payload are printable ASCII, so STX/ETX only appear as markers.

Types:
    AM  automation mode     payload: mode digit
    FD  fader level         payload: channel(2) + level(4), decimal
    SW  switch state        payload: channel(2) + switch digit + '1'/'0'
    AK  acknowledgment      payload: acknowledged type (optional)
    TC  time code sync      payload: HH:MM:SS:FF (';' before FF = drop frame)
    ER  console error       payload: ASCII text

AM/FD/SW travel both ways; the console echoes the new state after a change.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Union

from .exceptions import ParameterError, FrameError, LRCError

logger = logging.getLogger(__name__)


# Protocol constants
STX = 0x02
ETX = 0x03

MIN_FRAME_SIZE = 5      # STX + TYPE(2) + ETX + LRC
MAX_FRAME_SIZE = 64     # longer runs without ETX are treated as garbage

MAX_WIRE_CHANNEL = 99   # two decimal digits
MAX_WIRE_LEVEL = 9999   # four decimal digits

TYPE_AUTOMATION_MODE = b'AM'
TYPE_FADER = b'FD'
TYPE_SWITCH = b'SW'
TYPE_ACK = b'AK'
TYPE_TIMECODE = b'TC'
TYPE_ERROR = b'ER'

TIMECODE_PATTERN = re.compile(r'^\d{2}:\d{2}:\d{2}[:;]\d{2}$')


class AutomationMode(Enum):
    """Console-wide automation mode (Status 18R manual, section 5)"""
    READ = 0      # play back recorded moves
    WRITE = 1     # record, overwriting existing data
    UPDATE = 2    # trim existing automation
    TOUCH = 3     # record only while a control is touched
    ISOLATE = 4   # channel ignores playback
    GLIDE = 5     # ramp from current to automated position


class SwitchType(Enum):
    """Per-channel automated switches"""
    MUTE = 0
    SOLO = 1
    EQ = 2
    INSERT = 3
    DYNAMICS = 4


# ---------------------------------------------------------------------------
# Commands (outbound)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AutomationModeCommand:
    mode: AutomationMode


@dataclass(frozen=True)
class FaderLevelCommand:
    channel: int
    level: int


@dataclass(frozen=True)
class SwitchStateCommand:
    channel: int
    switch_type: SwitchType
    on: bool


Command = Union[AutomationModeCommand, FaderLevelCommand, SwitchStateCommand]


# ---------------------------------------------------------------------------
# Messages (inbound)
# ---------------------------------------------------------------------------

class Message:
    """Base class for decoded console messages. `raw` holds the frame bytes."""
    raw: bytes


@dataclass(frozen=True)
class Acknowledgment(Message):
    acknowledged: Optional[bytes] = None
    raw: bytes = field(default=b'', compare=False, repr=False)


@dataclass(frozen=True)
class FaderUpdate(Message):
    channel: int
    level: int
    raw: bytes = field(default=b'', compare=False, repr=False)


@dataclass(frozen=True)
class SwitchUpdate(Message):
    channel: int
    switch_type: SwitchType
    on: bool
    raw: bytes = field(default=b'', compare=False, repr=False)


@dataclass(frozen=True)
class ModeUpdate(Message):
    mode: AutomationMode
    raw: bytes = field(default=b'', compare=False, repr=False)


@dataclass(frozen=True)
class TimeCodeSync(Message):
    value: str
    raw: bytes = field(default=b'', compare=False, repr=False)


@dataclass(frozen=True)
class ErrorMessage(Message):
    text: str
    raw: bytes = field(default=b'', compare=False, repr=False)


@dataclass(frozen=True)
class UnknownMessage(Message):
    raw: bytes = b''


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def calculate_lrc(data: bytes) -> int:
    """
    LRC (Longitudinal Redundancy Check)

    Args:
        data: frame bytes from STX through ETX

    Returns:
        XOR of data[1:] (STX excluded)
    """
    lrc = 0
    for byte in data[1:]:
        lrc ^= byte
    return lrc


def build_frame(frame_type: bytes, payload: bytes = b'') -> bytes:
    """
    Build a complete frame (STX ~ LRC)

    Raises:
        ParameterError: type is not two ASCII characters, payload
            contains non-printable bytes, or the frame would exceed
            MAX_FRAME_SIZE
    """
    if len(frame_type) != 2 or not _is_printable(frame_type):
        raise ParameterError(f"Frame type must be 2 printable ASCII bytes: {frame_type!r}")
    if not _is_printable(payload):
        raise ParameterError(f"Payload must be printable ASCII: {payload!r}")
    if len(payload) + MIN_FRAME_SIZE > MAX_FRAME_SIZE:
        raise ParameterError(
            f"Payload of {len(payload)} bytes exceeds the {MAX_FRAME_SIZE}-byte frame limit"
        )

    frame = bytearray()
    frame.append(STX)
    frame.extend(frame_type)
    frame.extend(payload)
    frame.append(ETX)
    frame.append(calculate_lrc(bytes(frame)))
    return bytes(frame)


def encode(command: Command) -> bytes:
    """
    Encode a command into one frame

    Pure and deterministic. Either returns the full frame or raises
    before anything is built.

    Raises:
        ParameterError: field out of the wire range or unknown command
    """
    if isinstance(command, AutomationModeCommand):
        mode = _require_enum(command.mode, AutomationMode, 'mode')
        return build_frame(TYPE_AUTOMATION_MODE, str(mode.value).encode('ascii'))

    if isinstance(command, FaderLevelCommand):
        _check_channel(command.channel)
        _check_int_range(command.level, 0, MAX_WIRE_LEVEL, 'level')
        payload = f'{command.channel:02d}{command.level:04d}'.encode('ascii')
        return build_frame(TYPE_FADER, payload)

    if isinstance(command, SwitchStateCommand):
        _check_channel(command.channel)
        switch_type = _require_enum(command.switch_type, SwitchType, 'switch type')
        if not isinstance(command.on, bool):
            raise ParameterError(f"Switch state must be bool, got {command.on!r}")
        payload = f'{command.channel:02d}{switch_type.value}{int(command.on)}'.encode('ascii')
        return build_frame(TYPE_SWITCH, payload)

    raise ParameterError(f"Unknown command: {command!r}")


def _is_printable(data: bytes) -> bool:
    return all(0x20 <= b <= 0x7E for b in data)


def _check_int_range(value: int, low: int, high: int, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParameterError(f"{label} must be an integer, got {value!r}")
    if not (low <= value <= high):
        raise ParameterError(f"{label} must be {low}-{high}, got {value}")


def _check_channel(channel: int) -> None:
    _check_int_range(channel, 1, MAX_WIRE_CHANNEL, 'channel')


def _require_enum(value, enum_cls, label: str):
    if not isinstance(value, enum_cls):
        raise ParameterError(f"Invalid {label}: {value!r}")
    return value


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def parse_frame(raw: bytes, validate_lrc: bool = True) -> Message:
    """
    Parse exactly one complete frame

    Args:
        raw: frame bytes STX ~ LRC
        validate_lrc: verify the trailing LRC

    Returns:
        The decoded message; UnknownMessage for an unrecognized type

    Raises:
        FrameError: structure or payload error
        LRCError: checksum mismatch
    """
    if len(raw) < MIN_FRAME_SIZE:
        raise FrameError(f"Frame too short: {len(raw)} bytes")
    if len(raw) > MAX_FRAME_SIZE:
        raise FrameError(f"Frame too long: {len(raw)} bytes, limit {MAX_FRAME_SIZE}")
    if raw[0] != STX:
        raise FrameError(f"Invalid STX: expected 0x02, got 0x{raw[0]:02X}")
    if raw[-2] != ETX:
        raise FrameError(f"Invalid ETX: expected 0x03, got 0x{raw[-2]:02X}")

    if validate_lrc:
        expected_lrc = calculate_lrc(raw[:-1])
        if expected_lrc != raw[-1]:
            raise LRCError(f"LRC mismatch: expected 0x{expected_lrc:02X}, got 0x{raw[-1]:02X}")

    frame_type = bytes(raw[1:3])
    payload = bytes(raw[3:-2])
    raw = bytes(raw)

    parser = _PARSERS.get(frame_type)
    if parser is None:
        return UnknownMessage(raw=raw)
    return parser(payload, raw)


def _parse_mode(payload: bytes, raw: bytes) -> Message:
    if len(payload) != 1 or not payload.isdigit():
        raise FrameError(f"Malformed AM payload: {payload!r}")
    try:
        mode = AutomationMode(int(payload))
    except ValueError:
        raise FrameError(f"Unknown automation mode: {payload!r}")
    return ModeUpdate(mode=mode, raw=raw)


def _parse_fader(payload: bytes, raw: bytes) -> Message:
    if len(payload) != 6 or not payload.isdigit():
        raise FrameError(f"Malformed FD payload: {payload!r}")
    return FaderUpdate(channel=int(payload[:2]), level=int(payload[2:]), raw=raw)


def _parse_switch(payload: bytes, raw: bytes) -> Message:
    if len(payload) != 4 or not payload.isdigit() or payload[3:] not in (b'0', b'1'):
        raise FrameError(f"Malformed SW payload: {payload!r}")
    try:
        switch_type = SwitchType(int(payload[2:3]))
    except ValueError:
        raise FrameError(f"Unknown switch type: {payload[2:3]!r}")
    return SwitchUpdate(
        channel=int(payload[:2]),
        switch_type=switch_type,
        on=payload[3:] == b'1',
        raw=raw,
    )


def _parse_ack(payload: bytes, raw: bytes) -> Message:
    if payload and len(payload) != 2:
        raise FrameError(f"Malformed AK payload: {payload!r}")
    return Acknowledgment(acknowledged=payload or None, raw=raw)


def _parse_timecode(payload: bytes, raw: bytes) -> Message:
    value = payload.decode('ascii', errors='replace')
    if not TIMECODE_PATTERN.match(value):
        raise FrameError(f"Malformed TC payload: {payload!r}")
    return TimeCodeSync(value=value, raw=raw)


def _parse_error(payload: bytes, raw: bytes) -> Message:
    return ErrorMessage(text=payload.decode('ascii', errors='replace').strip(), raw=raw)


_PARSERS = {
    TYPE_AUTOMATION_MODE: _parse_mode,
    TYPE_FADER: _parse_fader,
    TYPE_SWITCH: _parse_switch,
    TYPE_ACK: _parse_ack,
    TYPE_TIMECODE: _parse_timecode,
    TYPE_ERROR: _parse_error,
}


def decode(buffer: bytearray, validate_lrc: bool = True) -> Iterator[Message]:
    """
    Consume complete frames from the front of buffer

    Lazy: bytes are removed from buffer as each message is yielded. A
    trailing partial frame is left in place for the next call. Every
    decision depends only on bytes already seen, so the same stream gives
    the same messages however it is split across calls.

    Malformed input never stalls the stream:
        - bytes before an STX          -> one UnknownMessage, once the STX arrives
        - frame cut short by a new STX -> ErrorMessage for the cut-off part
        - no ETX within MAX_FRAME_SIZE -> ErrorMessage
        - LRC mismatch / bad payload   -> one ErrorMessage covering everything
                                          up to the next STX
        - unrecognized type            -> UnknownMessage

    A run without any STX is held until an STX arrives or it grows past
    MAX_FRAME_SIZE bytes.

    Args:
        buffer: accumulator, mutated in place
        validate_lrc: reject frames whose LRC does not match
    """
    while buffer:
        start = buffer.find(STX)
        if start == -1:
            if len(buffer) <= MAX_FRAME_SIZE:
                return
            start = len(buffer)

        if start > 0:
            noise = bytes(buffer[:start])
            del buffer[:start]
            logger.debug(f"Discarded {len(noise)} bytes before STX")
            yield UnknownMessage(raw=noise)
            continue

        # A frame is at most MAX_FRAME_SIZE bytes, so its ETX sits before MAX_FRAME_SIZE - 1
        etx_pos = buffer.find(ETX, 1, MAX_FRAME_SIZE - 1)

        if etx_pos == -1:
            if len(buffer) < MAX_FRAME_SIZE - 1:
                return
            next_stx = buffer.find(STX, 1, MAX_FRAME_SIZE - 1)
            if next_stx != -1:
                raw = bytes(buffer[:next_stx])
                del buffer[:next_stx]
                yield ErrorMessage(text=f"Truncated frame ({len(raw)} bytes)", raw=raw)
            else:
                raw = bytes(buffer[:MAX_FRAME_SIZE - 1])
                del buffer[:MAX_FRAME_SIZE - 1]
                yield ErrorMessage(text=f"No ETX within {MAX_FRAME_SIZE} bytes", raw=raw)
            continue

        if etx_pos + 1 >= len(buffer):
            # LRC not received yet
            return

        # The frame belonging to this ETX starts at the last STX before it
        frame_start = buffer.rfind(STX, 0, etx_pos)
        frame_end = etx_pos + 2

        try:
            message = parse_frame(bytes(buffer[frame_start:frame_end]), validate_lrc=validate_lrc)
        except (FrameError, LRCError) as e:
            # Resynchronize: drop the bad frame, any cut-off part before it,
            # and anything up to the next STX
            resync = buffer.find(STX, frame_end)
            if resync == -1:
                if len(buffer) - frame_end <= MAX_FRAME_SIZE:
                    return
                resync = len(buffer)
            raw = bytes(buffer[:resync])
            del buffer[:resync]
            text = str(e) if frame_start == 0 else f"Truncated frame ({frame_start} bytes), then {e}"
            logger.warning(f"Bad frame: {text}")
            yield ErrorMessage(text=text, raw=raw)
            continue

        if frame_start > 0:
            raw = bytes(buffer[:frame_start])
            del buffer[:frame_start]
            yield ErrorMessage(text=f"Truncated frame ({len(raw)} bytes)", raw=raw)
            continue

        del buffer[:frame_end]
        yield message


class FrameDecoder:
    """
    Streaming decoder with a carried-over accumulator

    Not thread safe; the owner serializes access.
    """

    def __init__(self, validate_lrc: bool = True):
        self.validate_lrc = validate_lrc
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Bytes held for an incomplete frame or a noise run awaiting its STX"""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[Message]:
        """Append received bytes and return every message now complete"""
        self._buffer.extend(data)
        return list(decode(self._buffer, validate_lrc=self.validate_lrc))

    def clear(self) -> None:
        """Drop any partial frame"""
        self._buffer.clear()
