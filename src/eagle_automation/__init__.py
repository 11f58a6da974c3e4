"""
Eagle Automation

Serial control library for the Otari Status 18R mixing console
- Connection lifecycle over RS-232
- Automation mode, fader and switch commands
- Streaming decoding of console messages

Usage:
    from eagle_automation import (
        ConsoleController, ConnectionParameters, AutomationMode, SwitchType
    )

    controller = ConsoleController(channel_count=32)
    controller.data_received += print

    if controller.connect(ConnectionParameters('COM3', baudrate=19200)):
        controller.set_automation_mode(AutomationMode.WRITE)
        controller.set_fader_level(7, 64)
        controller.set_switch_state(3, SwitchType.MUTE, True)
    controller.disconnect()
"""

__version__ = '1.0.0'

# Core classes
from .controller import ConsoleController, ConnectionState
from .serial_comm import SerialTransport, ConnectionParameters, Parity, StopBits
from .channel_model import ConsoleModel, ChannelState
from .events import EventSource

# Protocol
from .protocol import (
    AutomationMode, SwitchType,
    AutomationModeCommand, FaderLevelCommand, SwitchStateCommand,
    Message, Acknowledgment, FaderUpdate, SwitchUpdate, ModeUpdate,
    TimeCodeSync, ErrorMessage, UnknownMessage,
    FrameDecoder, encode, decode, calculate_lrc,
    STX, ETX
)

# Configuration
from .config import AppConfig, load_config, save_config

# Exceptions
from .exceptions import (
    EagleError,
    ParameterError,
    TransportError,
    PortUnavailableError,
    InvalidParametersError,
    TimeoutError,
    CommunicationError,
    ProtocolError,
    FrameError,
    LRCError,
    StateError
)

__all__ = [
    # Version
    '__version__',

    # Core
    'ConsoleController',
    'ConnectionState',
    'SerialTransport',
    'ConnectionParameters',
    'Parity',
    'StopBits',
    'ConsoleModel',
    'ChannelState',
    'EventSource',

    # Protocol
    'AutomationMode',
    'SwitchType',
    'AutomationModeCommand',
    'FaderLevelCommand',
    'SwitchStateCommand',
    'Message',
    'Acknowledgment',
    'FaderUpdate',
    'SwitchUpdate',
    'ModeUpdate',
    'TimeCodeSync',
    'ErrorMessage',
    'UnknownMessage',
    'FrameDecoder',
    'encode',
    'decode',
    'calculate_lrc',
    'STX',
    'ETX',

    # Configuration
    'AppConfig',
    'load_config',
    'save_config',

    # Exceptions
    'EagleError',
    'ParameterError',
    'TransportError',
    'PortUnavailableError',
    'InvalidParametersError',
    'TimeoutError',
    'CommunicationError',
    'ProtocolError',
    'FrameError',
    'LRCError',
    'StateError',
]
