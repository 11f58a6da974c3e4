"""
Configuration Unit Tests

- Defaults
- YAML load/save
- Value validation and lenient parity/stop bits names
"""

import pytest
import sys
import os

import yaml

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from eagle_automation.config import (
    AppConfig, SerialPortConfig, load_config, save_config,
    config_from_dict, parse_parity, parse_stop_bits
)
from eagle_automation.serial_comm import Parity, StopBits
from eagle_automation.exceptions import ParameterError


class TestDefaults:
    """Default configuration"""

    def test_defaults(self):
        config = AppConfig()

        assert config.serial_port.baud_rate == 19200
        assert config.console.model == 'Otari Status 18R'
        assert config.console.channel_count == 32
        assert config.protocol.validate_lrc is True
        assert config.logging.capture_protocol is True
        config.validate()

    def test_connection_parameters(self):
        params = SerialPortConfig(port_name='COM3', parity='Even', stop_bits='Two').to_connection_parameters()

        assert params.port == 'COM3'
        assert params.baudrate == 19200
        assert params.parity is Parity.EVEN
        assert params.stopbits is StopBits.TWO
        assert params.read_timeout_ms == 500


class TestNames:
    """Parity / stop bits spellings"""

    @pytest.mark.parametrize('value,expected', [
        ('None', Parity.NONE),
        ('none', Parity.NONE),
        (None, Parity.NONE),
        ('N', Parity.NONE),
        ('Odd', Parity.ODD),
        ('EVEN', Parity.EVEN),
        (Parity.MARK, Parity.MARK),
    ])
    def test_parity(self, value, expected):
        assert parse_parity(value) is expected

    @pytest.mark.parametrize('value,expected', [
        ('One', StopBits.ONE),
        (1, StopBits.ONE),
        ('Two', StopBits.TWO),
        (2, StopBits.TWO),
        ('OnePointFive', StopBits.ONE_POINT_FIVE),
        (1.5, StopBits.ONE_POINT_FIVE),
        ('None', StopBits.NONE),
    ])
    def test_stop_bits(self, value, expected):
        assert parse_stop_bits(value) is expected

    def test_unknown(self):
        with pytest.raises(ParameterError):
            parse_parity('Sometimes')
        with pytest.raises(ParameterError):
            parse_stop_bits('Three')


class TestFromDict:
    """config_from_dict"""

    def test_partial_sections(self):
        config = config_from_dict({'serial_port': {'port_name': 'COM3'}})

        assert config.serial_port.port_name == 'COM3'
        assert config.serial_port.baud_rate == 19200
        assert config.console.channel_count == 32

    def test_empty(self):
        assert config_from_dict(None) == AppConfig()
        assert config_from_dict({}) == AppConfig()

    def test_unknown_keys_ignored(self):
        config = config_from_dict({'console': {'colour': 'blue'}, 'plugins': {}})
        assert config == AppConfig()

    def test_scalar_parity_converted(self):
        config = config_from_dict({'serial_port': {'stop_bits': 2}})
        assert config.serial_port.stop_bits == '2'
        assert config.serial_port.to_connection_parameters().stopbits is StopBits.TWO

    @pytest.mark.parametrize('data', [
        {'serial_port': {'baud_rate': 'fast'}},
        {'serial_port': {'baud_rate': 0}},
        {'serial_port': {'port_name': ''}},
        {'serial_port': {'parity': 'Sometimes'}},
        {'console': {'channel_count': 0}},
        {'console': {'channel_count': 100}},
        {'console': {'fader_min': 50, 'fader_max': 10}},
        {'console': {'fader_max': 10000}},
        {'protocol': {'validate_lrc': 'yes please'}},
        {'logging': 'verbose'},
        ['serial_port'],
    ])
    def test_invalid(self, data):
        with pytest.raises(ParameterError):
            config_from_dict(data)


class TestLoadSave:
    """YAML file handling"""

    def test_missing_file_gives_defaults(self, tmp_path):
        path = tmp_path / 'eagle_automation.yaml'
        assert load_config(path) == AppConfig()
        assert not path.exists()

    def test_missing_file_created(self, tmp_path):
        path = tmp_path / 'eagle_automation.yaml'
        load_config(path, create_default=True)

        assert path.exists()
        assert load_config(path) == AppConfig()

    def test_load(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text(
            "serial_port:\n"
            "  port_name: /dev/ttyUSB0\n"
            "  baud_rate: 38400\n"
            "  parity: None\n"
            "console:\n"
            "  channel_count: 24\n"
            "  fader_max: 1023\n"
            "logging:\n"
            "  debug: true\n",
            encoding='utf-8'
        )

        config = load_config(path)

        assert config.serial_port.port_name == '/dev/ttyUSB0'
        assert config.serial_port.baud_rate == 38400
        assert config.serial_port.to_connection_parameters().parity is Parity.NONE
        assert config.console.channel_count == 24
        assert config.console.fader_max == 1023
        assert config.logging.debug is True

    def test_save_round_trip(self, tmp_path):
        config = AppConfig()
        config.serial_port.port_name = 'COM5'
        config.console.channel_count = 16

        path = tmp_path / 'nested' / 'settings.yaml'
        save_config(config, path)

        data = yaml.safe_load(path.read_text(encoding='utf-8'))
        assert list(data) == ['serial_port', 'console', 'protocol', 'logging']
        assert load_config(path) == config

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'broken.yaml'
        path.write_text("serial_port: [unclosed\n", encoding='utf-8')

        with pytest.raises(ParameterError):
            load_config(path)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
