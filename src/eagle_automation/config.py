"""
Application Configuration

YAML settings file, loaded once at startup and passed explicitly to the
controller and UI.

    serial_port:
      port_name: COM3
      baud_rate: 19200
      data_bits: 8
      parity: None
      stop_bits: One
      read_timeout: 500      # ms
      write_timeout: 500     # ms
    console:
      model: Otari Status 18R
      channel_count: 32
      vca_groups: 8
      fader_min: 0
      fader_max: 100
    protocol:
      validate_lrc: true
    logging:
      debug: false
      log_directory: logs
      capture_protocol: true
"""

import logging
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .serial_comm import ConnectionParameters, Parity, StopBits
from .exceptions import ParameterError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_FILE = 'eagle_automation.yaml'

# Accepted spellings for parity / stop bits, keyed by lowercase name
PARITY_NAMES = {
    'none': Parity.NONE, 'n': Parity.NONE,
    'odd': Parity.ODD, 'o': Parity.ODD,
    'even': Parity.EVEN, 'e': Parity.EVEN,
    'mark': Parity.MARK, 'm': Parity.MARK,
    'space': Parity.SPACE, 's': Parity.SPACE,
}

STOPBITS_NAMES = {
    'none': StopBits.NONE, '0': StopBits.NONE,
    'one': StopBits.ONE, '1': StopBits.ONE,
    'two': StopBits.TWO, '2': StopBits.TWO,
    'onepointfive': StopBits.ONE_POINT_FIVE, '1.5': StopBits.ONE_POINT_FIVE,
}


def parse_parity(value: Union[str, Parity, None]) -> Parity:
    """'None'/'Odd'/'Even'/'Mark'/'Space' (case-insensitive) -> Parity"""
    if isinstance(value, Parity):
        return value
    # YAML reads a bare `None` as the string 'None' but `null` as None
    key = 'none' if value is None else str(value).strip().lower()
    try:
        return PARITY_NAMES[key]
    except KeyError:
        raise ParameterError(f"Unknown parity: {value!r}")


def parse_stop_bits(value: Union[str, int, float, StopBits, None]) -> StopBits:
    """'None'/'One'/'Two'/'OnePointFive' or 1/1.5/2 -> StopBits"""
    if isinstance(value, StopBits):
        return value
    key = 'none' if value is None else str(value).strip().lower()
    try:
        return STOPBITS_NAMES[key]
    except KeyError:
        raise ParameterError(f"Unknown stop bits: {value!r}")


@dataclass
class SerialPortConfig:
    """Serial port communication settings"""
    port_name: str = 'COM1'
    baud_rate: int = 19200
    data_bits: int = 8
    parity: str = 'None'
    stop_bits: str = 'One'
    read_timeout: int = 500
    write_timeout: int = 500

    def to_connection_parameters(self) -> ConnectionParameters:
        """
        Raises:
            ParameterError: invalid value
        """
        params = ConnectionParameters(
            port=self.port_name,
            baudrate=self.baud_rate,
            bytesize=self.data_bits,
            parity=parse_parity(self.parity),
            stopbits=parse_stop_bits(self.stop_bits),
            read_timeout_ms=self.read_timeout,
            write_timeout_ms=self.write_timeout,
        )
        params.validate()
        return params


@dataclass
class ConsoleConfig:
    """Console hardware description"""
    model: str = 'Otari Status 18R'
    channel_count: int = 32
    vca_groups: int = 8
    fader_min: int = 0
    fader_max: int = 100

    def validate(self) -> None:
        if not (1 <= self.channel_count <= 99):
            raise ParameterError(f"channel_count must be 1-99, got {self.channel_count}")
        if self.vca_groups < 0:
            raise ParameterError(f"vca_groups must be >= 0, got {self.vca_groups}")
        if not (0 <= self.fader_min < self.fader_max <= 9999):
            raise ParameterError(
                f"Fader range must satisfy 0 <= min < max <= 9999, "
                f"got {self.fader_min}-{self.fader_max}"
            )


@dataclass
class ProtocolConfig:
    validate_lrc: bool = True


@dataclass
class LoggingConfig:
    debug: bool = False
    log_directory: str = 'logs'
    capture_protocol: bool = True


@dataclass
class AppConfig:
    """Root configuration object"""
    serial_port: SerialPortConfig = field(default_factory=SerialPortConfig)
    console: ConsoleConfig = field(default_factory=ConsoleConfig)
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """
        Raises:
            ParameterError: first invalid value
        """
        self.serial_port.to_connection_parameters()
        self.console.validate()


_SECTIONS = {
    'serial_port': SerialPortConfig,
    'console': ConsoleConfig,
    'protocol': ProtocolConfig,
    'logging': LoggingConfig,
}


def _section_from_dict(name: str, cls, data: Any):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ParameterError(f"Section '{name}' must be a mapping")

    known = {f.name: f for f in fields(cls)}
    values = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown setting {name}.{key}")
            continue
        default = known[key].default
        # Keep ints ints and bools bools; parity/stop bits accept any scalar
        if isinstance(default, bool) and not isinstance(value, bool):
            raise ParameterError(f"{name}.{key} must be true/false, got {value!r}")
        if isinstance(default, int) and not isinstance(default, bool) \
                and (isinstance(value, bool) or not isinstance(value, int)):
            raise ParameterError(f"{name}.{key} must be an integer, got {value!r}")
        if isinstance(default, str) and value is not None and not isinstance(value, str):
            value = str(value)
        values[key] = value
    return cls(**values)


def config_from_dict(data: Dict[str, Any]) -> AppConfig:
    """
    Build and validate an AppConfig from parsed YAML

    Raises:
        ParameterError: invalid structure or value
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParameterError("Configuration root must be a mapping")

    for key in data:
        if key not in _SECTIONS:
            logger.warning(f"Ignoring unknown configuration section '{key}'")

    config = AppConfig(**{
        name: _section_from_dict(name, cls, data.get(name))
        for name, cls in _SECTIONS.items()
    })
    config.validate()
    return config


def config_to_dict(config: AppConfig) -> Dict[str, Any]:
    return asdict(config)


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_FILE, create_default: bool = False) -> AppConfig:
    """
    Load configuration from YAML

    Args:
        path: settings file
        create_default: write a default file when none exists

    Returns:
        AppConfig (defaults when the file is missing)

    Raises:
        ParameterError: unreadable YAML or invalid values
    """
    path = Path(path)

    if not path.exists():
        logger.info(f"Configuration file not found at {path}, using defaults")
        config = AppConfig()
        if create_default:
            try:
                save_config(config, path)
                logger.info(f"Created default configuration file at {path}")
            except OSError as e:
                logger.warning(f"Could not create default configuration file at {path}: {e}")
        return config

    try:
        with path.open('r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParameterError(f"Invalid YAML in {path}: {e}")

    config = config_from_dict(data)
    logger.info(
        f"Configuration loaded from {path}: "
        f"{config.serial_port.port_name} @ {config.serial_port.baud_rate} baud"
    )
    return config


def save_config(config: AppConfig, path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> None:
    """Write configuration as YAML"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as f:
        yaml.safe_dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)
    logger.debug(f"Configuration saved to {path}")
