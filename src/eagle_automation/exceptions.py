"""
Eagle Automation Custom Exceptions

Hierarchy:
    EagleError
    ├── ParameterError          invalid parameters, caught before any I/O
    ├── TransportError          serial port faults, recoverable by reconnect
    │   ├── PortUnavailableError
    │   ├── InvalidParametersError
    │   ├── TimeoutError
    │   └── CommunicationError
    ├── ProtocolError           malformed inbound frames
    │   ├── FrameError
    │   └── LRCError
    └── StateError              operation attempted while disconnected
"""


class EagleError(Exception):
    """Base exception for the console control library"""
    pass


class ParameterError(EagleError):
    """Invalid connection parameters, channel, level or configuration value"""
    pass


class TransportError(EagleError):
    """Serial transport fault"""
    pass


class PortUnavailableError(TransportError):
    """Port missing, in use, or permission denied"""
    pass


class InvalidParametersError(TransportError):
    """Baud/data bits/parity/stop bits combination rejected by the driver"""
    pass


class TimeoutError(TransportError):  # noqa: A001
    """Write did not complete within the configured write timeout"""
    pass


class CommunicationError(TransportError):
    """Any other I/O fault (cable unplugged, short write, driver error)"""
    pass


class ProtocolError(EagleError):
    """Malformed or unrecognized inbound frame"""
    pass


class FrameError(ProtocolError):
    """Frame structure error (missing STX/ETX, bad length, bad payload)"""
    pass


class LRCError(ProtocolError):
    """LRC verification failed"""
    pass


class StateError(EagleError):
    """Operation requires an open connection"""
    pass
